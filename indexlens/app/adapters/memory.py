"""In-process backend for tests and offline demos."""

from __future__ import annotations

import copy
import itertools
import json
from dataclasses import dataclass, field
from typing import Any

from indexlens.core.errors import CollaboratorError
from indexlens.core.models import Ack, ClusterHealth, QueryHits, Resource, Row


@dataclass(slots=True)
class _MemoryIndex:
    shards: int = 1
    replicas: int = 1
    documents: dict[str, dict[str, Any]] = field(default_factory=dict)


def _infer_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "long"
    if isinstance(value, float):
        return "double"
    if isinstance(value, dict):
        return "object"
    return "text"


def _sort_key(value: Any) -> tuple[int, int, Any]:
    # Missing values sort last; numbers sort before text.
    if value is None:
        return (1, 0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, 0, value)
    return (0, 1, str(value))


def _unsupported(what: str, value: Any) -> CollaboratorError:
    return CollaboratorError(
        f"execute query failed: 400 unsupported {what} {json.dumps(value, default=str)}",
        status_code=400,
    )


def _sort_clauses(sort: Any) -> list[tuple[str, str]]:
    """Normalise the accepted sort shapes to (field, order) pairs."""
    entries = sort if isinstance(sort, list) else [sort]
    clauses: list[tuple[str, str]] = []
    for entry in entries:
        if isinstance(entry, str):
            clauses.append((entry, "asc"))
            continue
        if not isinstance(entry, dict):
            raise _unsupported("sort", entry)
        for name, options in entry.items():
            order = options.get("order", "asc") if isinstance(options, dict) else options
            if order not in ("asc", "desc"):
                raise _unsupported("sort", entry)
            clauses.append((name, order))
    return clauses


def _single_field(kind: str, clause: Any) -> tuple[str, Any]:
    if not isinstance(clause, dict) or len(clause) != 1:
        raise _unsupported(f"{kind} clause", clause)
    ((name, expected),) = clause.items()
    return name, expected


class InMemoryBackend:
    """Minimal search backend keeping documents in dictionaries.

    Supports ``match_all``, ``ids``, ``term``, ``match`` and ``bool.must``
    queries, field sorting and ``from``/``size`` pagination. Unsupported
    clauses raise :class:`CollaboratorError` just like a real cluster would
    reject them.
    """

    def __init__(self, cluster_name: str = "memory") -> None:
        self.cluster_name = cluster_name
        self._indices: dict[str, _MemoryIndex] = {}
        self._ids = itertools.count(1)

    def seed(
        self,
        resource_id: str,
        documents: dict[str, dict[str, Any]],
        *,
        shards: int = 1,
        replicas: int = 1,
    ) -> None:
        """Create ``resource_id`` (if needed) holding ``documents`` keyed by id."""
        index = self._indices.setdefault(resource_id, _MemoryIndex(shards, replicas))
        for doc_id, source in documents.items():
            index.documents[doc_id] = copy.deepcopy(source)

    # Directory -------------------------------------------------------------

    async def list_resources(self) -> list[Resource]:
        return [self._describe(name, index) for name, index in sorted(self._indices.items())]

    async def cluster_health(self) -> ClusterHealth:
        return ClusterHealth(
            cluster_name=self.cluster_name,
            status="green",
            number_of_nodes=1,
            number_of_data_nodes=1,
            active_primary_shards=sum(index.shards for index in self._indices.values()),
            active_shards=sum(index.shards for index in self._indices.values()),
        )

    # Backend ---------------------------------------------------------------

    async def execute_query(self, resource_id: str, query: dict[str, Any]) -> QueryHits:
        index = self._get(resource_id)
        matches = [
            (doc_id, source)
            for doc_id, source in index.documents.items()
            if self._matches(doc_id, source, query.get("query", {"match_all": {}}))
        ]
        for sort_field, order in reversed(_sort_clauses(query.get("sort") or [])):
            matches.sort(
                key=lambda item: _sort_key(item[1].get(sort_field)),
                reverse=order == "desc",
            )

        start = int(query.get("from", 0))
        size = int(query.get("size", 10))
        page = matches[start : start + size]
        return QueryHits(
            rows=tuple(Row(id=doc_id, fields=copy.deepcopy(source)) for doc_id, source in page),
            total_hits=len(matches),
        )

    async def create_document(
        self,
        resource_id: str,
        document: dict[str, Any],
        doc_id: str | None = None,
    ) -> Ack:
        index = self._get(resource_id)
        new_id = doc_id or f"doc-{next(self._ids)}"
        index.documents[new_id] = copy.deepcopy(document)
        return Ack(acknowledged=True, id=new_id)

    async def delete_documents(self, resource_id: str, ids: list[str]) -> int:
        index = self._get(resource_id)
        return sum(1 for doc_id in ids if index.documents.pop(doc_id, None) is not None)

    async def clear_all_documents(self, resource_id: str) -> int:
        index = self._get(resource_id)
        deleted = len(index.documents)
        index.documents.clear()
        return deleted

    async def create_resource(self, resource_id: str, shards: int, replicas: int) -> Ack:
        if resource_id in self._indices:
            raise CollaboratorError(
                f"create index failed: 400 resource_already_exists_exception [{resource_id}]",
                status_code=400,
            )
        self._indices[resource_id] = _MemoryIndex(shards=shards, replicas=replicas)
        return Ack(acknowledged=True, id=resource_id)

    async def delete_resource(self, resource_id: str) -> Ack:
        self._get(resource_id)
        del self._indices[resource_id]
        return Ack(acknowledged=True, id=resource_id)

    async def get_schema(self, resource_id: str) -> Any:
        index = self._get(resource_id)
        properties: dict[str, Any] = {}
        for source in index.documents.values():
            for name, value in source.items():
                properties.setdefault(name, {"type": _infer_type(value)})
        return {"properties": properties}

    async def get_config(self, resource_id: str) -> Any:
        index = self._get(resource_id)
        return {
            "index": {
                "number_of_shards": str(index.shards),
                "number_of_replicas": str(index.replicas),
                "provided_name": resource_id,
            }
        }

    # Internals -------------------------------------------------------------

    def _get(self, resource_id: str) -> _MemoryIndex:
        try:
            return self._indices[resource_id]
        except KeyError:
            raise CollaboratorError(
                f"404 index_not_found_exception: no such index [{resource_id}]",
                status_code=404,
            ) from None

    def _describe(self, name: str, index: _MemoryIndex) -> Resource:
        size = sum(len(json.dumps(source)) for source in index.documents.values())
        return Resource(
            name=name,
            health="green" if index.replicas == 0 else "yellow",
            status="open",
            docs_count=len(index.documents),
            storage_size=f"{size}b",
            primary_shards=index.shards,
            replica_shards=index.replicas,
        )

    def _matches(self, doc_id: str, source: dict[str, Any], clause: dict[str, Any]) -> bool:
        if not isinstance(clause, dict):
            raise _unsupported("query clause", clause)
        if not clause or "match_all" in clause:
            return True
        if "ids" in clause:
            return doc_id in clause["ids"].get("values", [])
        if "term" in clause:
            name, expected = _single_field("term", clause["term"])
            if isinstance(expected, dict):
                expected = expected.get("value")
            return source.get(name) == expected
        if "match" in clause:
            name, expected = _single_field("match", clause["match"])
            if isinstance(expected, dict):
                expected = expected.get("query")
            value = source.get(name)
            if isinstance(value, str) and isinstance(expected, str):
                return expected.lower() in value.lower()
            return value == expected
        if "bool" in clause:
            must = clause["bool"].get("must", [])
            if isinstance(must, dict):
                must = [must]
            return all(self._matches(doc_id, source, sub) for sub in must)
        raise CollaboratorError(
            f"execute query failed: 400 unsupported query clause {sorted(clause)}",
            status_code=400,
        )
