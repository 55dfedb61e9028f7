"""Tests for the in-process search backend."""

from __future__ import annotations

import pytest

from indexlens.core.errors import CollaboratorError

LOGS = "logs-2024"


def _ids(hits) -> list[str]:
    return [row.id for row in hits.rows]


class TestSorting:
    @pytest.mark.parametrize(
        "sort",
        [
            ["seq"],
            "seq",
            {"seq": "asc"},
            [{"seq": "asc"}],
            [{"seq": {"order": "asc"}}],
        ],
    )
    async def test_accepted_sort_shapes(self, memory_backend, sort):
        hits = await memory_backend.execute_query(LOGS, {"sort": sort, "size": 3})

        assert _ids(hits) == ["log-001", "log-002", "log-003"]

    async def test_descending_sort(self, memory_backend):
        hits = await memory_backend.execute_query(
            LOGS, {"sort": [{"seq": {"order": "desc"}}], "size": 2}
        )

        assert _ids(hits) == ["log-045", "log-044"]

    async def test_mixed_types_sort_numbers_before_text(self, memory_backend):
        memory_backend.seed(
            "mixed",
            {"a": {"seq": "abc"}, "b": {"seq": 2}, "c": {}, "d": {"seq": 1.5}},
        )

        hits = await memory_backend.execute_query("mixed", {"sort": ["seq"]})

        assert _ids(hits) == ["d", "b", "a", "c"]

    @pytest.mark.parametrize(
        "sort",
        [[42], [{"seq": "sideways"}], [["seq"]]],
    )
    async def test_unsupported_sort_is_rejected(self, memory_backend, sort):
        with pytest.raises(CollaboratorError, match="unsupported sort") as excinfo:
            await memory_backend.execute_query(LOGS, {"sort": sort})

        assert excinfo.value.status_code == 400


class TestQueries:
    async def test_match_is_case_insensitive_substring(self, memory_backend):
        hits = await memory_backend.execute_query(
            LOGS, {"query": {"match": {"message": "NUMBER 4"}}, "size": 50}
        )

        assert _ids(hits)[:2] == ["log-004", "log-040"]
        assert hits.total_hits == 7

    async def test_bool_must_combines_clauses(self, memory_backend):
        hits = await memory_backend.execute_query(
            LOGS,
            {
                "query": {
                    "bool": {
                        "must": [
                            {"term": {"level": "error"}},
                            {"ids": {"values": ["log-005", "log-006"]}},
                        ]
                    }
                }
            },
        )

        assert _ids(hits) == ["log-005"]

    @pytest.mark.parametrize(
        "query",
        [
            {"term": {"level": "error", "seq": 5}},
            {"match": {}},
            {"match": "error"},
        ],
    )
    async def test_multi_field_clauses_are_rejected(self, memory_backend, query):
        with pytest.raises(CollaboratorError, match="unsupported (term|match) clause") as excinfo:
            await memory_backend.execute_query(LOGS, {"query": query})

        assert excinfo.value.status_code == 400

    async def test_unknown_clause_is_rejected(self, memory_backend):
        with pytest.raises(CollaboratorError, match="unsupported query clause"):
            await memory_backend.execute_query(LOGS, {"query": {"fuzzy": {"message": "evnt"}}})

    async def test_missing_index_is_not_found(self, memory_backend):
        with pytest.raises(CollaboratorError, match="no such index") as excinfo:
            await memory_backend.execute_query("nope", {})

        assert excinfo.value.status_code == 404
