"""Resource directory keeping the last listing snapshot."""

from __future__ import annotations

import logging

from indexlens.app.ports import ResourceDirectoryPort
from indexlens.core.models import ClusterHealth, Resource

logger = logging.getLogger(__name__)


class ResourceDirectory:
    """Lists resources through a source port and remembers the result.

    The snapshot is always replaced wholesale; individual resources are never
    patched. Doubles as the change notifier the mutation coordinator calls.
    """

    def __init__(self, source: ResourceDirectoryPort) -> None:
        self._source = source
        self._snapshot: tuple[Resource, ...] = ()

    @property
    def snapshot(self) -> tuple[Resource, ...]:
        return self._snapshot

    async def list_resources(self) -> list[Resource]:
        """Re-list resources from the source, sorted by name."""
        resources = sorted(await self._source.list_resources(), key=lambda r: r.name)
        self._snapshot = tuple(resources)
        logger.debug("Directory refreshed: %d resources", len(resources))
        return resources

    async def cluster_health(self) -> ClusterHealth:
        return await self._source.cluster_health()

    async def refresh(self) -> tuple[Resource, ...]:
        await self.list_resources()
        return self._snapshot

    def get(self, name: str) -> Resource | None:
        for resource in self._snapshot:
            if resource.name == name:
                return resource
        return None

    def filter(self, term: str) -> list[Resource]:
        """Resources whose name contains ``term``, ignoring case."""
        needle = term.lower()
        return [resource for resource in self._snapshot if needle in resource.name.lower()]

    async def resource_changed(self, resource_id: str, *, deleted: bool = False) -> None:
        if deleted:
            self._snapshot = tuple(r for r in self._snapshot if r.name != resource_id)
        await self.list_resources()
