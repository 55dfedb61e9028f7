"""Create/delete operations and the cache invalidation they fan out to.

Mutations never patch cached rows. After the backend confirms a change the
coordinator drops deleted ids from the selection, invalidates every view whose
result set may now be wrong, refetches the one on screen, and tells the
resource directory to refresh index-level metadata.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections import Counter
from collections.abc import AsyncIterator, Awaitable, Iterable
from contextlib import asynccontextmanager
from typing import Any

from indexlens.app.ports import ResourceChangeNotifierPort, SearchBackendPort
from indexlens.core.cache import ViewCache
from indexlens.core.errors import CollaboratorError, ValidationError
from indexlens.core.models import Ack, ViewId
from indexlens.core.selection import SelectionModel
from indexlens.core.tabs import TabController

logger = logging.getLogger(__name__)

DOCUMENT_DEPENDENT_VIEWS: tuple[ViewId, ...] = (
    ViewId.DOCUMENTS,
    ViewId.SEARCH,
    ViewId.OVERVIEW,
)
"""Views whose data changes whenever documents are added or removed."""

_FORBIDDEN_NAME_CHARS = re.compile(r'[\\/*?"<>| ,#:]')
_MAX_NAME_BYTES = 255


def validate_resource_name(name: str) -> str:
    """Check an index name against the backend's naming rules.

    Raises:
        ValidationError: If the name cannot be used for an index
    """
    if not name:
        raise ValidationError("Index name must not be empty")
    if name != name.lower():
        raise ValidationError(f"Index name '{name}' must be lowercase")
    if name in (".", ".."):
        raise ValidationError(f"Index name '{name}' is reserved")
    if name[0] in "-_+":
        raise ValidationError(f"Index name '{name}' must not start with '-', '_' or '+'")
    if _FORBIDDEN_NAME_CHARS.search(name):
        raise ValidationError(
            f"Index name '{name}' must not contain spaces or any of \\ / * ? \" < > | , # :"
        )
    if len(name.encode("utf-8")) > _MAX_NAME_BYTES:
        raise ValidationError(f"Index name '{name[:32]}...' exceeds {_MAX_NAME_BYTES} bytes")
    return name


def parse_document(document: dict[str, Any] | str) -> dict[str, Any]:
    """Accept a document as a mapping or as JSON text typed by the user."""
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            raise ValidationError(
                f"Invalid JSON. Please check your document format. ({exc})"
            ) from exc
    if not isinstance(document, dict):
        raise ValidationError("A document must be a JSON object")
    return document


class MutationCoordinator:
    """Serializes mutations per resource and keeps cached views coherent."""

    def __init__(
        self,
        backend: SearchBackendPort,
        cache: ViewCache,
        tabs: TabController,
        selection: SelectionModel,
        notifier: ResourceChangeNotifierPort,
        *,
        refresh_inactive_views: bool = False,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._tabs = tabs
        self._selection = selection
        self._notifier = notifier
        self._refresh_inactive_views = refresh_inactive_views
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()
        self._background: set[asyncio.Task[Any]] = set()

    async def create_document(
        self,
        resource_id: str,
        document: dict[str, Any] | str,
        doc_id: str | None = None,
    ) -> Ack:
        """Index a new document; a blank ``doc_id`` lets the backend assign one."""
        body = parse_document(document)
        doc_id = doc_id.strip() if doc_id else None

        async with self._serialized(resource_id):
            ack = await self._call(
                "create document",
                self._backend.create_document(resource_id, body, doc_id or None),
            )
            logger.info("Created document %s in %s", ack.id or "<auto>", resource_id)
            await self._documents_changed(resource_id)
        return ack

    async def delete_documents(self, resource_id: str, ids: Iterable[str]) -> int:
        """Delete documents by id.

        A deleted count below the number requested is still a success; which
        ids survived is not reconciled, the refetch shows the real state.
        """
        requested = list(dict.fromkeys(ids))
        if not requested:
            raise ValidationError("No documents selected for deletion")
        if any(not isinstance(doc_id, str) or not doc_id for doc_id in requested):
            raise ValidationError("Document ids must be non-empty strings")

        async with self._serialized(resource_id):
            deleted = await self._call(
                "delete documents",
                self._backend.delete_documents(resource_id, requested),
            )
            if deleted < len(requested):
                logger.warning(
                    "Deleted %d of %d requested documents from %s",
                    deleted,
                    len(requested),
                    resource_id,
                )
            else:
                logger.info("Deleted %d documents from %s", deleted, resource_id)
            self._selection.discard(requested)
            await self._documents_changed(resource_id)
        return deleted

    async def clear_all_documents(self, resource_id: str) -> int:
        """Delete every document in the resource, keeping the resource."""
        async with self._serialized(resource_id):
            deleted = await self._call(
                "delete all documents",
                self._backend.clear_all_documents(resource_id),
            )
            logger.info("Cleared %d documents from %s", deleted, resource_id)
            scope = self._selection.scope
            if scope is not None and scope[0] == resource_id:
                self._selection.clear()
            await self._documents_changed(resource_id)
        return deleted

    async def create_resource(self, resource_id: str, shards: int = 1, replicas: int = 1) -> Ack:
        """Create an empty resource."""
        validate_resource_name(resource_id)
        if shards < 1:
            raise ValidationError(f"Shard count must be >= 1 (got {shards})")
        if replicas < 0:
            raise ValidationError(f"Replica count must be >= 0 (got {replicas})")

        async with self._serialized(resource_id):
            ack = await self._call(
                "create index",
                self._backend.create_resource(resource_id, shards, replicas),
            )
            # Leftover slots from an earlier resource of the same name are meaningless.
            self._tabs.forget_resource(resource_id)
            logger.info("Created index %s (%d shards, %d replicas)", resource_id, shards, replicas)
            self._spawn(self._notify(resource_id, deleted=False))
        return ack

    async def delete_resource(self, resource_id: str) -> Ack:
        """Delete the resource, drop its cache slots and deselect it."""
        async with self._serialized(resource_id):
            ack = await self._call(
                "delete index",
                self._backend.delete_resource(resource_id),
            )
            self._tabs.forget_resource(resource_id)
            logger.info("Deleted index %s", resource_id)
            self._spawn(self._notify(resource_id, deleted=True))
        return ack

    async def drain(self) -> None:
        """Wait for outstanding notifications and background refreshes."""
        while self._background:
            pending = list(self._background)
            await asyncio.gather(*pending, return_exceptions=True)
            self._background.difference_update(pending)

    @asynccontextmanager
    async def _serialized(self, resource_id: str) -> AsyncIterator[None]:
        # A lock lives only while some mutation holds or awaits it.
        lock = self._locks.setdefault(resource_id, asyncio.Lock())
        self._lock_users[resource_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[resource_id] -= 1
            if not self._lock_users[resource_id]:
                del self._lock_users[resource_id]
                del self._locks[resource_id]

    async def _call(self, operation: str, pending: Awaitable[Any]) -> Any:
        try:
            return await pending
        except CollaboratorError as exc:
            logger.warning("Failed to %s: %s", operation, exc)
            raise

    async def _documents_changed(self, resource_id: str) -> None:
        for view in DOCUMENT_DEPENDENT_VIEWS:
            self._tabs.invalidate(resource_id, view)

        active_view = (
            self._tabs.active_view if self._tabs.active_resource == resource_id else None
        )
        if active_view in DOCUMENT_DEPENDENT_VIEWS:
            await self._tabs.reload_after_mutation(resource_id, active_view)

        if self._refresh_inactive_views:
            for view in DOCUMENT_DEPENDENT_VIEWS:
                entry = self._cache.get(resource_id, view)
                if view is active_view or entry is None or entry.fetched_at == 0:
                    continue
                self._spawn(self._tabs.refresh_in_background(resource_id, view))

        self._spawn(self._notify(resource_id, deleted=False))

    async def _notify(self, resource_id: str, *, deleted: bool) -> None:
        try:
            await self._notifier.resource_changed(resource_id, deleted=deleted)
        except CollaboratorError as exc:
            logger.warning("Failed to refresh directory after change to %s: %s", resource_id, exc)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
