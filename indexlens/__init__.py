"""IndexLens - cache-consistent browser client for search indices.

Browse a single index through lazily loaded views (overview, documents,
search, mappings, settings) while mutations keep every cached view coherent.
"""

__version__ = "0.1.0"
__author__ = "IndexLens Contributors"

from indexlens.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
