"""Application bootstrap wiring ports, adapters, and the view/cache core."""

from __future__ import annotations

from dataclasses import dataclass

from indexlens.app.adapters import ElasticsearchAdapter, InMemoryBackend, ResourceDirectory
from indexlens.config import Settings, get_settings
from indexlens.core.cache import ViewCache
from indexlens.core.mutations import MutationCoordinator
from indexlens.core.selection import SelectionModel
from indexlens.core.tabs import TabController


@dataclass(slots=True)
class ApplicationContainer:
    """Aggregates the wired core components for the CLI layer."""

    settings: Settings
    backend: ElasticsearchAdapter | InMemoryBackend
    directory: ResourceDirectory
    cache: ViewCache
    selection: SelectionModel
    tabs: TabController
    mutations: MutationCoordinator

    async def aclose(self) -> None:
        """Wait for background work, then release the backend connection."""
        await self.mutations.drain()
        if isinstance(self.backend, ElasticsearchAdapter):
            await self.backend.aclose()


def create_backend(settings: Settings) -> ElasticsearchAdapter | InMemoryBackend:
    """Instantiate the backend adapter named by ``settings.backend``."""
    if settings.backend == "memory":
        return InMemoryBackend()
    return ElasticsearchAdapter(settings)


def bootstrap_application(
    settings: Settings | None = None,
    *,
    backend: ElasticsearchAdapter | InMemoryBackend | None = None,
) -> ApplicationContainer:
    """Wire a fresh cache, selection, controller and coordinator.

    Args:
        settings: Configuration; defaults to the global settings
        backend: Pre-built backend adapter (tests, embedding applications)

    Returns:
        Container holding every wired component
    """
    active_settings = settings or get_settings()
    active_backend = backend if backend is not None else create_backend(active_settings)

    directory = ResourceDirectory(active_backend)
    cache = ViewCache()
    selection = SelectionModel(cache)
    tabs = TabController(cache, selection, active_backend, directory)
    mutations = MutationCoordinator(
        active_backend,
        cache,
        tabs,
        selection,
        directory,
        refresh_inactive_views=active_settings.refresh_inactive_views,
    )

    return ApplicationContainer(
        settings=active_settings,
        backend=active_backend,
        directory=directory,
        cache=cache,
        selection=selection,
        tabs=tabs,
        mutations=mutations,
    )
