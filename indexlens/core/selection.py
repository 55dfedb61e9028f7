"""Row selection within the active listing view."""

from __future__ import annotations

from collections.abc import Iterable

from indexlens.core.cache import ViewCache
from indexlens.core.errors import ValidationError
from indexlens.core.models import LISTING_VIEWS, ViewId


class SelectionModel:
    """Set of selected row ids scoped to one (resource, listing view).

    The selection is always a subset of the ids in the scoped view's cached
    rows. Changing scope clears it.
    """

    def __init__(self, cache: ViewCache) -> None:
        self._cache = cache
        self._scope: tuple[str, ViewId] | None = None
        self._ids: set[str] = set()

    @property
    def scope(self) -> tuple[str, ViewId] | None:
        return self._scope

    @property
    def selected(self) -> frozenset[str]:
        return frozenset(self._ids)

    def scope_to(self, resource_id: str, view: ViewId) -> None:
        """Bind the selection to a listing view, clearing it on change."""
        if view not in LISTING_VIEWS:
            raise ValidationError(f"View '{view.value}' has no selectable rows")
        if self._scope != (resource_id, view):
            self._scope = (resource_id, view)
            self._ids.clear()

    def toggle(self, row_id: str) -> bool:
        """Flip selection of ``row_id``; returns True when it is now selected."""
        if row_id not in self._row_ids():
            raise ValidationError(f"Row '{row_id}' is not in the current result page")
        if row_id in self._ids:
            self._ids.discard(row_id)
            return False
        self._ids.add(row_id)
        return True

    def select_all(self, view: ViewId | None = None) -> frozenset[str]:
        """Select every row currently cached for ``view``, or clear if all are.

        Only fetched rows count; unfetched pages matching the query are never
        selected. Calling this twice on an unchanged row set restores an empty
        selection.
        """
        resource_id, scoped_view = self._require_scope()
        if view is not None and view is not scoped_view:
            self.scope_to(resource_id, view)

        ids = set(self._row_ids())
        if ids and self._ids == ids:
            self._ids.clear()
        else:
            self._ids = ids
        return self.selected

    def clear(self) -> None:
        self._ids.clear()

    def reset(self) -> None:
        """Clear the selection and drop its scope."""
        self._ids.clear()
        self._scope = None

    def discard(self, ids: Iterable[str]) -> None:
        self._ids.difference_update(ids)

    def prune(self) -> None:
        """Drop ids no longer present in the scoped view's rows."""
        if self._scope is None:
            return
        self._ids.intersection_update(self._row_ids())

    def _require_scope(self) -> tuple[str, ViewId]:
        if self._scope is None:
            raise ValidationError("No listing view is active")
        return self._scope

    def _row_ids(self) -> list[str]:
        resource_id, view = self._require_scope()
        entry = self._cache.get(resource_id, view)
        if entry is None:
            return []
        return entry.data.ids
