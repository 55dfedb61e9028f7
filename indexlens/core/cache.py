"""Per-resource, per-view store of last accepted fetch results."""

from __future__ import annotations

import dataclasses
import itertools
import logging
from typing import Any

from indexlens.core.models import CacheEntry, ListingPage, SearchPage, ViewId
from indexlens.core.query import DEFAULT_SEARCH_TEXT

logger = logging.getLogger(__name__)


def empty_data(view: ViewId) -> Any:
    """Placeholder data of a never-fetched slot."""
    if view is ViewId.DOCUMENTS:
        return ListingPage()
    if view is ViewId.SEARCH:
        return SearchPage(query_text=DEFAULT_SEARCH_TEXT)
    return None


class ViewCache:
    """Keyed store of :class:`CacheEntry` values.

    At most one entry exists per (resource, view). Every write swaps in a new
    immutable entry, so readers only ever observe a complete entry.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, ViewId], CacheEntry] = {}
        self._ticks = itertools.count(1)

    def observe(self, resource_id: str) -> None:
        """Create empty slots for ``resource_id`` if it has never been seen."""
        for view in ViewId:
            self._entries.setdefault(
                (resource_id, view),
                CacheEntry(loaded=False, data=empty_data(view), fetched_at=0),
            )

    def get(self, resource_id: str, view: ViewId) -> CacheEntry | None:
        return self._entries.get((resource_id, view))

    def put(self, resource_id: str, view: ViewId, data: Any) -> CacheEntry:
        """Mark the slot loaded with ``data``, replacing the previous entry."""
        entry = CacheEntry(loaded=True, data=data, fetched_at=next(self._ticks))
        self._entries[(resource_id, view)] = entry
        logger.debug("Cached %s/%s at tick %d", resource_id, view.value, entry.fetched_at)
        return entry

    def invalidate(self, resource_id: str, view: ViewId) -> None:
        """Mark the slot stale; its data stays displayable until the next write."""
        entry = self._entries.get((resource_id, view))
        if entry is None or not entry.loaded:
            return
        self._entries[(resource_id, view)] = dataclasses.replace(entry, loaded=False)
        logger.debug("Invalidated %s/%s", resource_id, view.value)

    def drop_resource(self, resource_id: str) -> None:
        """Remove every slot of ``resource_id``."""
        for view in ViewId:
            self._entries.pop((resource_id, view), None)

    def is_loaded(self, resource_id: str, view: ViewId) -> bool:
        entry = self._entries.get((resource_id, view))
        return entry is not None and entry.loaded

    def has_data(self, resource_id: str) -> bool:
        """Return True when any view of ``resource_id`` was fetched at least once."""
        return any(
            entry.fetched_at > 0
            for (resource, _), entry in self._entries.items()
            if resource == resource_id
        )

    def resources(self) -> set[str]:
        return {resource for resource, _ in self._entries}
