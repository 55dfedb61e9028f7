"""Closed data types shared by the view/cache core and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PAGE_SIZE = 20
"""Fixed listing page size; not user-settable."""


class ViewId(str, Enum):
    """Dependent read surfaces available for every resource."""

    OVERVIEW = "overview"
    DOCUMENTS = "documents"
    SEARCH = "search"
    MAPPINGS = "mappings"
    SETTINGS = "settings"


LISTING_VIEWS: frozenset[ViewId] = frozenset({ViewId.DOCUMENTS, ViewId.SEARCH})


class SortOrder(str, Enum):
    """Sort direction for listing views."""

    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> SortOrder:
        return SortOrder.DESC if self is SortOrder.ASC else SortOrder.ASC


class Resource(BaseModel):
    """Immutable snapshot of a search index as reported by the directory."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique index name")
    health: Literal["green", "yellow", "red"] | None = Field(
        None, description="Cluster health of the index"
    )
    status: Literal["open", "close"] = Field("open", description="Open/close status")
    docs_count: int = Field(0, ge=0, description="Number of live documents")
    docs_deleted: int = Field(0, ge=0, description="Number of deleted documents")
    storage_size: str = Field("", description="Human readable store size")
    primary_shards: int = Field(0, ge=0, description="Primary shard count")
    replica_shards: int = Field(0, ge=0, description="Replica shard count")


class ClusterHealth(BaseModel):
    """Basic cluster health information."""

    model_config = ConfigDict(frozen=True)

    cluster_name: str
    status: str
    number_of_nodes: int = 0
    number_of_data_nodes: int = 0
    active_primary_shards: int = 0
    active_shards: int = 0
    relocating_shards: int = 0
    initializing_shards: int = 0
    unassigned_shards: int = 0
    pending_tasks: int = 0


class Row(BaseModel):
    """A single document row; ``id`` is assigned by the backend."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Backend-assigned document identifier")
    fields: dict[str, Any] = Field(default_factory=dict, description="Document source fields")


class QueryHits(BaseModel):
    """Result of executing one query against a resource."""

    model_config = ConfigDict(frozen=True)

    rows: tuple[Row, ...] = ()
    total_hits: int = Field(0, ge=0)


class Ack(BaseModel):
    """Acknowledgement returned by create/delete operations."""

    model_config = ConfigDict(frozen=True)

    acknowledged: bool = True
    id: str | None = None


class ListingPage(BaseModel):
    """Cached data of the ``documents`` view."""

    model_config = ConfigDict(frozen=True)

    rows: tuple[Row, ...] = ()
    total_hits: int = 0

    @property
    def ids(self) -> list[str]:
        return [row.id for row in self.rows]


class SearchPage(ListingPage):
    """Cached data of the ``search`` view, including the query that produced it."""

    query_text: str


@dataclass(frozen=True, slots=True)
class PageState:
    """Pagination and sort parameters of one listing view."""

    page: int = 1
    page_size: int = PAGE_SIZE
    sort_field: str | None = None
    sort_order: SortOrder = SortOrder.ASC


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Last accepted result for a (resource, view) pair.

    Entries are immutable; writers replace the whole value.
    """

    loaded: bool
    data: Any
    fetched_at: int
    """Logical tick of the write; 0 means never fetched."""
