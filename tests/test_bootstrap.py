"""Tests for application wiring."""

from indexlens.app.adapters import ElasticsearchAdapter, InMemoryBackend
from indexlens.bootstrap import bootstrap_application, create_backend


def test_memory_backend_selected_by_settings(override_settings):
    container = bootstrap_application(override_settings)

    assert isinstance(container.backend, InMemoryBackend)
    assert container.settings is override_settings


def test_elasticsearch_backend_is_default(override_settings):
    settings = override_settings.model_copy(update={"backend": "elasticsearch"})

    assert isinstance(create_backend(settings), ElasticsearchAdapter)


async def test_components_share_one_cache(container):
    await container.tabs.select_resource("metrics")

    assert container.cache.has_data("metrics")
    assert container.directory.snapshot
    await container.aclose()


async def test_aclose_closes_http_client(override_settings):
    settings = override_settings.model_copy(update={"backend": "elasticsearch"})
    container = bootstrap_application(settings)

    await container.aclose()

    assert container.backend._client.is_closed
