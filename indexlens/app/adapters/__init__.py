"""Concrete adapters wiring application ports to built-in implementations."""

from __future__ import annotations

from .directory import ResourceDirectory
from .elasticsearch import ElasticsearchAdapter
from .memory import InMemoryBackend

__all__ = [
    "ElasticsearchAdapter",
    "InMemoryBackend",
    "ResourceDirectory",
]
