"""Port interfaces for the IndexLens application layer.

These protocol interfaces define contracts for adapters.
The view/cache core depends on these ports, never on concrete implementations.
"""

__all__ = [
    "ResourceChangeNotifierPort",
    "ResourceDirectoryPort",
    "SearchBackendPort",
]

from indexlens.app.ports.backend import SearchBackendPort
from indexlens.app.ports.directory import ResourceChangeNotifierPort, ResourceDirectoryPort
