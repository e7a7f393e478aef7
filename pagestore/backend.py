"""
Pluggable storage backend factory.

Creates the storage backend and hierarchy service from configuration.
Built-in backends are ``sqlite`` (default) and ``memory``. External
backends register via the ``pagestore.backends`` entry point group.

External backend packages provide a factory function::

    def create_backend(config: StoreConfig) -> StorageBackendProtocol:
        ...

and register it in their pyproject.toml::

    [project.entry-points."pagestore.backends"]
    my-backend = "my_package.backend:create_backend"
"""

from .config import StoreConfig
from .protocol import HierarchyServiceProtocol, StorageBackendProtocol

DATABASE_FILENAME = "pages.db"


def create_backend(config: StoreConfig) -> StorageBackendProtocol:
    """
    Create the storage backend named by ``config.backend``.

    Raises:
        ValueError: If no backend of that name exists
    """
    if config.backend == "sqlite":
        from .document_store import DocumentStore
        return DocumentStore(config.path / DATABASE_FILENAME)
    if config.backend == "memory":
        from .memory_store import MemoryDocumentStore
        return MemoryDocumentStore()
    return _load_backend(config.backend, config)


def create_hierarchy(config: StoreConfig) -> HierarchyServiceProtocol:
    """HTTP client when a hierarchy URL is configured, else in-memory."""
    if config.hierarchy_url:
        from .hierarchy import HttpHierarchyClient
        return HttpHierarchyClient(config.hierarchy_url, config.hierarchy_api_key)
    from .hierarchy import InMemoryHierarchy
    return InMemoryHierarchy()


def _load_backend(name: str, config: StoreConfig) -> StorageBackendProtocol:
    """Load a backend by entry point name."""
    from importlib.metadata import entry_points

    eps = entry_points(group="pagestore.backends")
    for ep in eps:
        if ep.name == name:
            factory = ep.load()
            return factory(config)

    available = [ep.name for ep in eps]
    if available:
        raise ValueError(
            f"Unknown backend: {name!r}. Available: {available}"
        )
    raise ValueError(
        f"Unknown backend: {name!r}. No external backends registered "
        f"(built-in: 'sqlite', 'memory')."
    )
