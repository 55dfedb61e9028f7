"""Backend port interface for query execution and mutations."""

from typing import Any, Protocol

from indexlens.core.models import Ack, QueryHits


class SearchBackendPort(Protocol):
    """Port interface for reading and mutating a search index.

    Adapters: Elasticsearch REST (httpx), in-memory.

    Side effects: Network calls (Elasticsearch adapter). Every method raises
    ``CollaboratorError`` on failure.
    """

    async def execute_query(self, resource_id: str, query: dict[str, Any]) -> QueryHits:
        """Run a paginated query.

        Args:
            resource_id: Index name
            query: Query object with ``from``/``size``/``sort`` already merged

        Returns:
            Rows of the requested page plus the total hit count
        """
        ...

    async def create_document(
        self,
        resource_id: str,
        document: dict[str, Any],
        doc_id: str | None = None,
    ) -> Ack:
        """Index a document, letting the backend assign an id when omitted."""
        ...

    async def delete_documents(self, resource_id: str, ids: list[str]) -> int:
        """Delete documents by id.

        Returns:
            Number of documents actually deleted
        """
        ...

    async def clear_all_documents(self, resource_id: str) -> int:
        """Delete every document in the index, keeping the index itself."""
        ...

    async def create_resource(self, resource_id: str, shards: int, replicas: int) -> Ack:
        """Create an empty index."""
        ...

    async def delete_resource(self, resource_id: str) -> Ack:
        """Delete the index and all of its documents."""
        ...

    async def get_schema(self, resource_id: str) -> Any:
        """Return the index mappings (opaque)."""
        ...

    async def get_config(self, resource_id: str) -> Any:
        """Return the index settings (opaque)."""
        ...
