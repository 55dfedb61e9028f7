"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from indexlens.app.adapters import InMemoryBackend
from indexlens.bootstrap import ApplicationContainer, bootstrap_application
from indexlens.config import Settings
from indexlens.core.models import Ack, ClusterHealth, QueryHits, Resource

LOGS = "logs-2024"
METRICS = "metrics"


def make_log_documents(count: int) -> dict[str, dict[str, Any]]:
    """Documents ``log-001`` .. ``log-NNN`` with a monotonically increasing ``seq``."""
    return {
        f"log-{seq:03d}": {
            "seq": seq,
            "level": "error" if seq % 5 == 0 else "info",
            "message": f"event number {seq}",
        }
        for seq in range(1, count + 1)
    }


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def override_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[Settings, None, None]:
    """Provide isolated IndexLens settings scoped to tests."""

    import indexlens.config as config_module

    for name in ("URL", "BACKEND", "AUTH_TYPE", "USERNAME", "PASSWORD", "API_KEY"):
        monkeypatch.delenv(f"INDEXLENS_{name}", raising=False)

    original_settings = getattr(config_module, "_settings", None)
    settings = config_module.Settings(
        _env_file=None,
        url="http://es.test:9200",
        backend="memory",
    )
    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    """Backend holding 45 log documents and a small replica-less metrics index."""
    backend = InMemoryBackend(cluster_name="test-cluster")
    backend.seed(LOGS, make_log_documents(45))
    backend.seed(
        METRICS,
        {
            "m-1": {"name": "cpu", "value": 0.5},
            "m-2": {"name": "memory", "value": 0.75},
            "m-3": {"name": "disk", "value": 0.25},
        },
        replicas=0,
    )
    return backend


@pytest.fixture
def container(memory_backend: InMemoryBackend, override_settings: Settings) -> ApplicationContainer:
    return bootstrap_application(override_settings, backend=memory_backend)


@dataclass
class PendingCall:
    """A backend call held open until the test resolves it."""

    method: str
    args: tuple[Any, ...]
    future: asyncio.Future[None] = field(repr=False)

    def release(self) -> None:
        self.future.set_result(None)

    def fail(self, error: BaseException) -> None:
        self.future.set_exception(error)


class GatedBackend:
    """Backend fake whose gated calls complete only when the test releases them.

    Results are computed when the call is issued, so a released call returns
    what the backend held at request time, as a slow server response would.
    """

    def __init__(self, inner: InMemoryBackend, gated: tuple[str, ...] = ("execute_query",)) -> None:
        self.inner = inner
        self.gated = set(gated)
        self.pending: list[PendingCall] = []
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def wait_pending(self, count: int) -> list[PendingCall]:
        """Yield to the event loop until ``count`` calls are waiting."""
        for _ in range(100):
            if len(self.pending) >= count:
                return list(self.pending)
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} pending calls, have {len(self.pending)}")

    def take(self) -> PendingCall:
        return self.pending.pop(0)

    async def _invoke(self, method: str, *args: Any) -> Any:
        self.calls.append((method, args))
        result = await getattr(self.inner, method)(*args)
        if method in self.gated:
            call = PendingCall(method, args, asyncio.get_running_loop().create_future())
            self.pending.append(call)
            await call.future
        return result

    async def list_resources(self) -> list[Resource]:
        return await self._invoke("list_resources")

    async def cluster_health(self) -> ClusterHealth:
        return await self._invoke("cluster_health")

    async def execute_query(self, resource_id: str, query: dict[str, Any]) -> QueryHits:
        return await self._invoke("execute_query", resource_id, query)

    async def create_document(
        self, resource_id: str, document: dict[str, Any], doc_id: str | None = None
    ) -> Ack:
        return await self._invoke("create_document", resource_id, document, doc_id)

    async def delete_documents(self, resource_id: str, ids: list[str]) -> int:
        return await self._invoke("delete_documents", resource_id, ids)

    async def clear_all_documents(self, resource_id: str) -> int:
        return await self._invoke("clear_all_documents", resource_id)

    async def create_resource(self, resource_id: str, shards: int, replicas: int) -> Ack:
        return await self._invoke("create_resource", resource_id, shards, replicas)

    async def delete_resource(self, resource_id: str) -> Ack:
        return await self._invoke("delete_resource", resource_id)

    async def get_schema(self, resource_id: str) -> Any:
        return await self._invoke("get_schema", resource_id)

    async def get_config(self, resource_id: str) -> Any:
        return await self._invoke("get_config", resource_id)


@pytest.fixture
def gated_backend(memory_backend: InMemoryBackend) -> GatedBackend:
    return GatedBackend(memory_backend)


@pytest.fixture
def gated_container(
    gated_backend: GatedBackend, override_settings: Settings
) -> ApplicationContainer:
    return bootstrap_application(override_settings, backend=gated_backend)  # type: ignore[arg-type]
