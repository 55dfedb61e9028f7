"""Per-view state machine deciding when to fetch, reuse the cache, or skip.

Every (resource, view) pair moves through ``UNLOADED -> LOADING -> READY | ERROR``
driven by discrete events. Each fetch is tagged with a :class:`FetchTicket`
carrying the snapshot (page, sort, query text) that started it; a completion
is written to the cache only while that ticket is still the wanted one.
Superseded completions are dropped silently, so a slow old response can never
overwrite a newer fast one.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from indexlens.app.ports import ResourceDirectoryPort, SearchBackendPort
from indexlens.core.cache import ViewCache
from indexlens.core.errors import (
    CollaboratorError,
    InvalidQuery,
    StaleResponseDiscarded,
    ValidationError,
)
from indexlens.core.models import (
    LISTING_VIEWS,
    CacheEntry,
    ListingPage,
    PageState,
    Resource,
    SearchPage,
    SortOrder,
    ViewId,
)
from indexlens.core.presentation import total_pages
from indexlens.core.query import (
    DEFAULT_SEARCH_TEXT,
    build_query,
    build_search_query,
    format_query_text,
    parse_query_text,
)
from indexlens.core.selection import SelectionModel

logger = logging.getLogger(__name__)


class TabState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class TabEvent(str, Enum):
    ACTIVATE = "activate"
    CACHE_HIT = "cache_hit"
    REFRESH = "refresh"
    PAGE_CHANGED = "page_changed"
    SORT_CHANGED = "sort_changed"
    QUERY_CHANGED = "query_changed"
    MUTATION_COMPLETED = "mutation_completed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INVALIDATED = "invalidated"
    RESOURCE_SWITCHED = "resource_switched"


_FETCH_EVENTS = (
    TabEvent.REFRESH,
    TabEvent.PAGE_CHANGED,
    TabEvent.SORT_CHANGED,
    TabEvent.QUERY_CHANGED,
    TabEvent.MUTATION_COMPLETED,
)


def _build_transitions() -> dict[tuple[TabState, TabEvent], TabState]:
    table = {
        (TabState.UNLOADED, TabEvent.ACTIVATE): TabState.LOADING,
        (TabState.READY, TabEvent.ACTIVATE): TabState.LOADING,
        (TabState.ERROR, TabEvent.ACTIVATE): TabState.LOADING,
        (TabState.UNLOADED, TabEvent.CACHE_HIT): TabState.READY,
        (TabState.READY, TabEvent.CACHE_HIT): TabState.READY,
        (TabState.LOADING, TabEvent.SUCCEEDED): TabState.READY,
        (TabState.LOADING, TabEvent.FAILED): TabState.ERROR,
        # A stale slot keeps showing its data; a cancelled load falls back.
        (TabState.UNLOADED, TabEvent.INVALIDATED): TabState.UNLOADED,
        (TabState.LOADING, TabEvent.INVALIDATED): TabState.UNLOADED,
        (TabState.READY, TabEvent.INVALIDATED): TabState.READY,
        (TabState.ERROR, TabEvent.INVALIDATED): TabState.ERROR,
    }
    for state in TabState:
        for event in _FETCH_EVENTS:
            table[(state, event)] = TabState.LOADING
        table[(state, TabEvent.RESOURCE_SWITCHED)] = TabState.UNLOADED
    return table


TRANSITIONS = _build_transitions()


class InvalidTransition(RuntimeError):
    """Raised when an event has no transition from the current state."""

    pass


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Parameters that uniquely identify a fetch request."""

    page_state: PageState | None = None
    query_text: str | None = None


@dataclass(frozen=True, slots=True)
class FetchTicket:
    resource_id: str
    view: ViewId
    snapshot: Snapshot
    generation: int


class TabController:
    """Drives lazy loading of every view of the active resource."""

    def __init__(
        self,
        cache: ViewCache,
        selection: SelectionModel,
        backend: SearchBackendPort,
        directory: ResourceDirectoryPort,
    ) -> None:
        self._cache = cache
        self._selection = selection
        self._backend = backend
        self._directory = directory
        self._active_resource: str | None = None
        self._active_view = ViewId.OVERVIEW
        self._states: dict[tuple[str, ViewId], TabState] = {}
        self._errors: dict[tuple[str, ViewId], str] = {}
        self._pages: dict[tuple[str, ViewId], PageState] = {}
        self._search_text: dict[str, str] = {}
        self._search_errors: dict[str, str] = {}
        self._inflight: dict[tuple[str, ViewId], FetchTicket] = {}
        self._generations = itertools.count(1)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def active_resource(self) -> str | None:
        return self._active_resource

    @property
    def active_view(self) -> ViewId:
        return self._active_view

    def state(self, view: ViewId, resource_id: str | None = None) -> TabState:
        return self._states.get((self._resolve(resource_id), view), TabState.UNLOADED)

    def entry(self, view: ViewId, resource_id: str | None = None) -> CacheEntry | None:
        return self._cache.get(self._resolve(resource_id), view)

    def error(self, view: ViewId, resource_id: str | None = None) -> str | None:
        return self._errors.get((self._resolve(resource_id), view))

    def page_state(self, view: ViewId, resource_id: str | None = None) -> PageState:
        return self._pages.get((self._resolve(resource_id), view), PageState())

    def search_text(self, resource_id: str | None = None) -> str:
        return self._search_text.get(self._resolve(resource_id), DEFAULT_SEARCH_TEXT)

    def search_error(self, resource_id: str | None = None) -> str | None:
        """Message of the last rejected search body, if any."""
        return self._search_errors.get(self._resolve(resource_id))

    def is_in_flight(self, view: ViewId, resource_id: str | None = None) -> bool:
        return (self._resolve(resource_id), view) in self._inflight

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def select_resource(self, resource_id: str | None) -> TabState | None:
        """Switch the active resource and activate the current view on it.

        Page state and search text survive a switch away and back when the
        resource already has cached data; otherwise they start from defaults.
        The selection is always cleared.
        """
        if resource_id == self._active_resource:
            return self.state(self._active_view) if resource_id is not None else None

        self._selection.reset()
        self._active_resource = resource_id
        if resource_id is None:
            return None

        has_inflight = any(key[0] == resource_id for key in self._inflight)
        if not self._cache.has_data(resource_id) and not has_inflight:
            self._reset_resource(resource_id)
        return await self.activate_view(self._active_view)

    async def activate_view(self, view: ViewId) -> TabState:
        """Show ``view``; fetch only when no fresh cache entry exists."""
        resource_id = self._require_active()
        self._active_view = view
        if view in LISTING_VIEWS:
            self._selection.scope_to(resource_id, view)

        key = (resource_id, view)
        state = self.state(view)
        if state is TabState.LOADING:
            logger.debug("%s/%s already loading", resource_id, view.value)
            return state
        if state is not TabState.ERROR and self._cache.is_loaded(resource_id, view):
            logger.debug("Cache hit for %s/%s", resource_id, view.value)
            return self._transition(key, TabEvent.CACHE_HIT)
        return await self._fetch(resource_id, view, TabEvent.ACTIVATE)

    async def set_page(self, view: ViewId, page: int) -> TabState:
        """Move a listing view to ``page``.

        Raises:
            ValidationError: If ``page`` is below 1 or past the last known page
        """
        resource_id = self._require_active()
        self._require_listing(view)
        if page < 1:
            raise ValidationError(f"Page must be >= 1 (got {page})")

        entry = self._cache.get(resource_id, view)
        if entry is not None and entry.fetched_at > 0:
            last_page = max(1, total_pages(entry.data.total_hits))
            if page > last_page:
                raise ValidationError(f"Page {page} is out of range (1-{last_page})")

        current = self.page_state(view)
        if current.page == page:
            return self.state(view)
        self._pages[(resource_id, view)] = dataclasses.replace(current, page=page)
        return await self._snapshot_changed(resource_id, view, TabEvent.PAGE_CHANGED)

    async def set_sort(
        self,
        view: ViewId,
        field: str | None,
        order: SortOrder = SortOrder.ASC,
    ) -> TabState:
        """Sort a listing view by ``field``; ``None`` restores backend order."""
        resource_id = self._require_active()
        self._require_listing(view)

        current = self.page_state(view)
        if field is None:
            order = SortOrder.ASC
        if current.sort_field == field and current.sort_order is order:
            return self.state(view)
        self._pages[(resource_id, view)] = dataclasses.replace(
            current, sort_field=field, sort_order=order
        )
        return await self._snapshot_changed(resource_id, view, TabEvent.SORT_CHANGED)

    async def toggle_sort(self, view: ViewId, field: str) -> TabState:
        """Column-header click: flip order on the same field, else sort ascending."""
        current = self.page_state(view)
        if current.sort_field == field:
            return await self.set_sort(view, field, current.sort_order.flipped())
        return await self.set_sort(view, field, SortOrder.ASC)

    async def submit_search(self, text: str) -> TabState:
        """Run a new search body from page 1.

        Raises:
            InvalidQuery: If ``text`` is not a JSON object; the stored query
                text and the cached search results stay untouched
        """
        resource_id = self._require_active()
        try:
            body = parse_query_text(text)
        except InvalidQuery as exc:
            self._search_errors[resource_id] = str(exc)
            raise

        self._search_errors.pop(resource_id, None)
        self._search_text[resource_id] = format_query_text(body)
        key = (resource_id, ViewId.SEARCH)
        self._pages[key] = dataclasses.replace(self.page_state(ViewId.SEARCH), page=1)

        self._active_view = ViewId.SEARCH
        self._selection.scope_to(resource_id, ViewId.SEARCH)
        self._selection.clear()
        return await self._fetch(resource_id, ViewId.SEARCH, TabEvent.QUERY_CHANGED)

    async def refresh(self, view: ViewId | None = None) -> TabState:
        """Re-fetch ``view`` (default: the active view) regardless of cache state."""
        resource_id = self._require_active()
        return await self._fetch(resource_id, view or self._active_view, TabEvent.REFRESH)

    async def refresh_in_background(self, resource_id: str, view: ViewId) -> TabState:
        """Re-fetch a view that is not on screen, under the same discard rule."""
        return await self._fetch(resource_id, view, TabEvent.REFRESH)

    async def reload_after_mutation(self, resource_id: str, view: ViewId) -> TabState:
        return await self._fetch(resource_id, view, TabEvent.MUTATION_COMPLETED)

    def invalidate(self, resource_id: str, view: ViewId) -> None:
        """Mark a slot stale and abandon any fetch still in flight for it."""
        key = (resource_id, view)
        self._cache.invalidate(resource_id, view)
        self._inflight.pop(key, None)
        if key in self._states:
            self._transition(key, TabEvent.INVALIDATED)

    def forget_resource(self, resource_id: str) -> None:
        """Discard every trace of a deleted resource and deselect it."""
        self._cache.drop_resource(resource_id)
        for store in (self._states, self._errors, self._pages, self._inflight):
            for key in [key for key in store if key[0] == resource_id]:
                del store[key]
        self._search_text.pop(resource_id, None)
        self._search_errors.pop(resource_id, None)

        scope = self._selection.scope
        if scope is not None and scope[0] == resource_id:
            self._selection.reset()
        if self._active_resource == resource_id:
            self._active_resource = None
            self._active_view = ViewId.OVERVIEW

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, resource_id: str | None) -> str:
        if resource_id is not None:
            return resource_id
        return self._require_active()

    def _require_active(self) -> str:
        if self._active_resource is None:
            raise ValidationError("No resource selected")
        return self._active_resource

    @staticmethod
    def _require_listing(view: ViewId) -> None:
        if view not in LISTING_VIEWS:
            raise ValidationError(f"View '{view.value}' is not paginated")

    def _reset_resource(self, resource_id: str) -> None:
        self._cache.observe(resource_id)
        for view in ViewId:
            key = (resource_id, view)
            self._transition(key, TabEvent.RESOURCE_SWITCHED)
            self._errors.pop(key, None)
            if view in LISTING_VIEWS:
                self._pages[key] = PageState()
        self._search_text[resource_id] = DEFAULT_SEARCH_TEXT
        self._search_errors.pop(resource_id, None)

    def _transition(self, key: tuple[str, ViewId], event: TabEvent) -> TabState:
        current = self._states.get(key, TabState.UNLOADED)
        try:
            target = TRANSITIONS[(current, event)]
        except KeyError:
            raise InvalidTransition(
                f"No transition from {current.value} on {event.value} for {key[0]}/{key[1].value}"
            ) from None
        self._states[key] = target
        return target

    async def _snapshot_changed(
        self, resource_id: str, view: ViewId, event: TabEvent
    ) -> TabState:
        # The result set is replaced, so the old selection no longer applies.
        if self._selection.scope == (resource_id, view):
            self._selection.clear()
        if view is self._active_view:
            return await self._fetch(resource_id, view, event)
        self.invalidate(resource_id, view)
        return self.state(view)

    def _snapshot(self, resource_id: str, view: ViewId) -> Snapshot:
        if view is ViewId.DOCUMENTS:
            return Snapshot(page_state=self.page_state(view, resource_id))
        if view is ViewId.SEARCH:
            return Snapshot(
                page_state=self.page_state(view, resource_id),
                query_text=self.search_text(resource_id),
            )
        return Snapshot()

    def _is_current(self, ticket: FetchTicket) -> bool:
        key = (ticket.resource_id, ticket.view)
        return self._inflight.get(key) is ticket and ticket.snapshot == self._snapshot(
            ticket.resource_id, ticket.view
        )

    def _check_current(self, ticket: FetchTicket) -> None:
        if not self._is_current(ticket):
            raise StaleResponseDiscarded(
                f"{ticket.resource_id}/{ticket.view.value} generation {ticket.generation}"
            )

    async def _fetch(self, resource_id: str, view: ViewId, event: TabEvent) -> TabState:
        key = (resource_id, view)
        self._cache.observe(resource_id)
        ticket = FetchTicket(
            resource_id=resource_id,
            view=view,
            snapshot=self._snapshot(resource_id, view),
            generation=next(self._generations),
        )
        self._inflight[key] = ticket
        self._errors.pop(key, None)
        self._transition(key, event)
        logger.debug(
            "Fetching %s/%s (generation %d, %s)",
            resource_id,
            view.value,
            ticket.generation,
            event.value,
        )

        try:
            data = await self._load(ticket)
            self._check_current(ticket)
        except StaleResponseDiscarded as exc:
            logger.debug("Discarded stale response: %s", exc)
            return self.state(view, resource_id)
        except CollaboratorError as exc:
            return self._fail(ticket, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error loading %s for %s", view.value, resource_id)
            return self._fail(ticket, f"{type(exc).__name__}: {exc}")

        del self._inflight[key]
        self._cache.put(resource_id, view, data)
        state = self._transition(key, TabEvent.SUCCEEDED)
        if self._selection.scope == key:
            self._selection.prune()
        return state

    def _fail(self, ticket: FetchTicket, message: str) -> TabState:
        key = (ticket.resource_id, ticket.view)
        if not self._is_current(ticket):
            logger.debug(
                "Discarded stale failure for %s/%s: %s",
                ticket.resource_id,
                ticket.view.value,
                message,
            )
            return self.state(ticket.view, ticket.resource_id)
        del self._inflight[key]
        self._errors[key] = message
        logger.warning("Failed to load %s for %s: %s", ticket.view.value, ticket.resource_id, message)
        return self._transition(key, TabEvent.FAILED)

    async def _load(self, ticket: FetchTicket) -> Any:
        resource_id = ticket.resource_id
        snapshot = ticket.snapshot

        if ticket.view is ViewId.OVERVIEW:
            return await self._describe(resource_id)
        if ticket.view is ViewId.DOCUMENTS:
            assert snapshot.page_state is not None
            hits = await self._backend.execute_query(resource_id, build_query(snapshot.page_state))
            return ListingPage(rows=hits.rows, total_hits=hits.total_hits)
        if ticket.view is ViewId.SEARCH:
            assert snapshot.page_state is not None and snapshot.query_text is not None
            query = build_search_query(snapshot.page_state, snapshot.query_text)
            hits = await self._backend.execute_query(resource_id, query)
            return SearchPage(
                rows=hits.rows,
                total_hits=hits.total_hits,
                query_text=snapshot.query_text,
            )
        if ticket.view is ViewId.MAPPINGS:
            return await self._backend.get_schema(resource_id)
        return await self._backend.get_config(resource_id)

    async def _describe(self, resource_id: str) -> Resource:
        for resource in await self._directory.list_resources():
            if resource.name == resource_id:
                return resource
        raise CollaboratorError(f"Resource '{resource_id}' not found")
