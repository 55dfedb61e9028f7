"""Tests for the per-resource view cache."""

from indexlens.core.cache import ViewCache
from indexlens.core.models import ListingPage, Row, SearchPage, ViewId
from indexlens.core.query import DEFAULT_SEARCH_TEXT


def _page(*ids: str) -> ListingPage:
    return ListingPage(rows=tuple(Row(id=doc_id) for doc_id in ids), total_hits=len(ids))


def test_observe_creates_empty_slots_for_every_view():
    cache = ViewCache()

    cache.observe("logs")

    for view in ViewId:
        entry = cache.get("logs", view)
        assert entry is not None
        assert entry.loaded is False
        assert entry.fetched_at == 0
    assert cache.get("logs", ViewId.DOCUMENTS).data == ListingPage()
    search = cache.get("logs", ViewId.SEARCH).data
    assert isinstance(search, SearchPage)
    assert search.query_text == DEFAULT_SEARCH_TEXT
    assert cache.get("logs", ViewId.MAPPINGS).data is None


def test_observe_keeps_existing_entries():
    cache = ViewCache()
    cache.put("logs", ViewId.DOCUMENTS, _page("a"))

    cache.observe("logs")

    assert cache.get("logs", ViewId.DOCUMENTS).data.ids == ["a"]


def test_put_replaces_entry_with_increasing_tick():
    cache = ViewCache()

    first = cache.put("logs", ViewId.DOCUMENTS, _page("a"))
    second = cache.put("logs", ViewId.DOCUMENTS, _page("b"))

    assert first.loaded and second.loaded
    assert second.fetched_at > first.fetched_at
    assert cache.get("logs", ViewId.DOCUMENTS) is second
    assert first.data.ids == ["a"]


def test_invalidate_keeps_data_displayable():
    cache = ViewCache()
    written = cache.put("logs", ViewId.DOCUMENTS, _page("a", "b"))

    cache.invalidate("logs", ViewId.DOCUMENTS)

    entry = cache.get("logs", ViewId.DOCUMENTS)
    assert entry.loaded is False
    assert entry.data == written.data
    assert entry.fetched_at == written.fetched_at
    assert cache.is_loaded("logs", ViewId.DOCUMENTS) is False


def test_invalidate_unknown_slot_is_noop():
    cache = ViewCache()

    cache.invalidate("logs", ViewId.SETTINGS)

    assert cache.get("logs", ViewId.SETTINGS) is None


def test_drop_resource_removes_all_slots():
    cache = ViewCache()
    cache.put("logs", ViewId.DOCUMENTS, _page("a"))
    cache.put("metrics", ViewId.DOCUMENTS, _page("m"))

    cache.drop_resource("logs")

    assert all(cache.get("logs", view) is None for view in ViewId)
    assert cache.resources() == {"metrics"}


def test_has_data_requires_a_completed_fetch():
    cache = ViewCache()
    cache.observe("logs")

    assert cache.has_data("logs") is False

    cache.put("logs", ViewId.SETTINGS, {"index": {}})
    cache.invalidate("logs", ViewId.SETTINGS)

    assert cache.has_data("logs") is True
