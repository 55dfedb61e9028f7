"""Directory port interfaces for resource listing and change notification."""

from typing import Protocol

from indexlens.core.models import ClusterHealth, Resource


class ResourceDirectoryPort(Protocol):
    """Port interface for listing resources.

    Snapshots are replaced wholesale on every listing; the core never patches
    individual resource attributes.
    """

    async def list_resources(self) -> list[Resource]:
        """Return every resource visible on the cluster."""
        ...

    async def cluster_health(self) -> ClusterHealth:
        """Return cluster-level health information."""
        ...


class ResourceChangeNotifierPort(Protocol):
    """Port notified after a mutation changed resource-level metadata."""

    async def resource_changed(self, resource_id: str, *, deleted: bool = False) -> None:
        """Refresh metadata (doc count, size) for ``resource_id``.

        Args:
            resource_id: Index whose metadata changed
            deleted: True when the index itself no longer exists
        """
        ...
