"""Elasticsearch REST adapter implementing the backend and directory ports."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from indexlens.config import Settings
from indexlens.core.errors import CollaboratorError
from indexlens.core.models import Ack, ClusterHealth, QueryHits, Resource, Row

logger = logging.getLogger(__name__)

_HEALTH_VALUES = {"green", "yellow", "red"}


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _total_hits(hits: dict[str, Any]) -> int:
    """Read ``hits.total`` in both the object (7.x+) and integer (6.x) forms."""
    total = hits.get("total", 0)
    if isinstance(total, dict):
        return _to_int(total.get("value", 0))
    return _to_int(total)


def resource_from_cat(record: dict[str, Any]) -> Resource:
    """Convert one ``_cat/indices?format=json`` record to a :class:`Resource`."""
    health = record.get("health")
    status = record.get("status")
    return Resource(
        name=record.get("index", ""),
        health=health if health in _HEALTH_VALUES else None,
        status="close" if status == "close" else "open",
        docs_count=_to_int(record.get("docs.count")),
        docs_deleted=_to_int(record.get("docs.deleted")),
        storage_size=record.get("store.size") or "",
        primary_shards=_to_int(record.get("pri")),
        replica_shards=_to_int(record.get("rep")),
    )


def row_from_hit(hit: dict[str, Any]) -> Row:
    return Row(id=str(hit.get("_id", "")), fields=dict(hit.get("_source") or {}))


class ElasticsearchAdapter:
    """Talks to an Elasticsearch cluster over its REST API.

    Every transport error and non-2xx response is raised as
    :class:`CollaboratorError` carrying the operation name and the server's
    reply, so callers can show it to the user verbatim.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.url.rstrip("/"),
            auth=settings.get_auth(),
            headers=settings.get_headers(),
            timeout=settings.timeout_seconds,
            verify=settings.verify_certs,
            transport=transport,
        )

    async def __aenter__(self) -> ElasticsearchAdapter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Directory -------------------------------------------------------------

    async def list_resources(self) -> list[Resource]:
        records = await self._request(
            "GET", "/_cat/indices", "list indices", expect=list, params={"format": "json"}
        )
        return [resource_from_cat(record) for record in records]

    async def cluster_health(self) -> ClusterHealth:
        body = await self._request("GET", "/_cluster/health", "get cluster health")
        return ClusterHealth.model_validate(
            {key: value for key, value in body.items() if key in ClusterHealth.model_fields}
        )

    # Backend ---------------------------------------------------------------

    async def execute_query(self, resource_id: str, query: dict[str, Any]) -> QueryHits:
        body = await self._request(
            "POST", f"/{_path(resource_id)}/_search", "execute query", json=query
        )
        hits = body.get("hits")
        if not isinstance(hits, dict) or not isinstance(hits.get("hits"), list):
            raise CollaboratorError("execute query failed: invalid response format")
        return QueryHits(
            rows=tuple(row_from_hit(hit) for hit in hits["hits"]),
            total_hits=_total_hits(hits),
        )

    async def create_document(
        self,
        resource_id: str,
        document: dict[str, Any],
        doc_id: str | None = None,
    ) -> Ack:
        if doc_id:
            method, path = "PUT", f"/{_path(resource_id)}/_doc/{_path(doc_id)}"
        else:
            method, path = "POST", f"/{_path(resource_id)}/_doc"
        body = await self._request(
            method, path, "create document", json=document, params={"refresh": "true"}
        )
        return Ack(acknowledged=True, id=body.get("_id"))

    async def delete_documents(self, resource_id: str, ids: list[str]) -> int:
        body = await self._request(
            "POST",
            f"/{_path(resource_id)}/_delete_by_query",
            "delete documents",
            json={"query": {"ids": {"values": ids}}},
            params={"refresh": "true"},
        )
        return _to_int(body.get("deleted"))

    async def clear_all_documents(self, resource_id: str) -> int:
        body = await self._request(
            "POST",
            f"/{_path(resource_id)}/_delete_by_query",
            "delete all documents",
            json={"query": {"match_all": {}}},
            params={"refresh": "true"},
        )
        return _to_int(body.get("deleted"))

    async def create_resource(self, resource_id: str, shards: int, replicas: int) -> Ack:
        body = await self._request(
            "PUT",
            f"/{_path(resource_id)}",
            "create index",
            json={"settings": {"number_of_shards": shards, "number_of_replicas": replicas}},
        )
        return Ack(acknowledged=bool(body.get("acknowledged", False)), id=resource_id)

    async def delete_resource(self, resource_id: str) -> Ack:
        body = await self._request("DELETE", f"/{_path(resource_id)}", "delete index")
        return Ack(acknowledged=bool(body.get("acknowledged", False)), id=resource_id)

    async def get_schema(self, resource_id: str) -> Any:
        body = await self._request("GET", f"/{_path(resource_id)}/_mapping", "get mappings")
        return (body.get(resource_id) or {}).get("mappings")

    async def get_config(self, resource_id: str) -> Any:
        body = await self._request("GET", f"/{_path(resource_id)}/_settings", "get settings")
        return (body.get(resource_id) or {}).get("settings")

    # Transport -------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        expect: type = dict,
        **kwargs: Any,
    ) -> Any:
        logger.debug("%s %s (%s)", method, path, operation)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise CollaboratorError(
                f"{operation} failed: {exc}. This may be due to an invalid SSL "
                "certificate, a network issue, or incorrect connection details."
            ) from exc

        if response.is_error:
            raise CollaboratorError(
                f"{operation} failed: {response.status_code} {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise CollaboratorError(f"{operation} failed: response is not JSON") from exc
        if not isinstance(body, expect):
            raise CollaboratorError(f"{operation} failed: invalid response format")
        return body


def _path(segment: str) -> str:
    return quote(segment, safe="")
