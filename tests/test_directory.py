"""Tests for the resource directory snapshot."""

import pytest

from indexlens.app.adapters import ResourceDirectory


@pytest.fixture
def directory(memory_backend) -> ResourceDirectory:
    memory_backend.seed("Access-Log", {"a": {"path": "/"}})
    return ResourceDirectory(memory_backend)


async def test_list_resources_replaces_snapshot_sorted(directory):
    assert directory.snapshot == ()

    resources = await directory.list_resources()

    assert [r.name for r in resources] == ["Access-Log", "logs-2024", "metrics"]
    assert directory.snapshot == tuple(resources)


async def test_filter_ignores_case(directory):
    await directory.refresh()

    assert [r.name for r in directory.filter("LOG")] == ["Access-Log", "logs-2024"]
    assert directory.filter("nothing") == []


async def test_get_reads_the_snapshot(directory, memory_backend):
    await directory.refresh()
    memory_backend.seed("fresh", {})

    assert directory.get("metrics").health == "green"
    assert directory.get("logs-2024").health == "yellow"
    assert directory.get("fresh") is None


async def test_resource_changed_relists(directory, memory_backend):
    await directory.refresh()
    await memory_backend.create_document("metrics", {"name": "net"}, "m-4")

    await directory.resource_changed("metrics")

    assert directory.get("metrics").docs_count == 4


async def test_deleted_resource_disappears(directory, memory_backend):
    await directory.refresh()
    await memory_backend.delete_resource("metrics")

    await directory.resource_changed("metrics", deleted=True)

    assert directory.get("metrics") is None


async def test_cluster_health(directory):
    health = await directory.cluster_health()

    assert health.cluster_name == "test-cluster"
    assert health.status == "green"
