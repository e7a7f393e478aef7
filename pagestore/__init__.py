"""
pagestore

Persistence core for rich-content pages: conflict-checked saves with a
version fencing token, a derived prefix-search field kept in step with
content, and a size-bounded revision history.

Quick Start:
    from pagestore import PageStore

    store = PageStore()  # uses ~/.pagestore or PAGESTORE_STORE_PATH
    page = store.create_page("user-1", "Notes")
    result = store.save(page.id, "Notes", {"type": "doc", "content": [...]},
                        expected_version=page.version, editor="user-1")
    if not result.ok:
        # Conflict: reconcile with result.current_content, resubmit with
        # expected_version=result.current_version
        ...

Environment Variables:
    PAGESTORE_STORE_PATH         - Override default store location
    PAGESTORE_HIERARCHY_API_KEY  - API key for the hierarchy service

Configuration is persisted in pagestore.toml within the store directory.
"""

from .api import PageStore
from .errors import (
    HierarchyServiceError,
    InternalError,
    NotFoundError,
    PageStoreError,
    StorageError,
    UnauthorizedError,
)
from .extract import build_search_text, extract_text
from .revisions import RevisionManager, prune_revisions
from .search import SearchIndex
from .types import (
    Accepted,
    Conflict,
    ContainerNode,
    Notebook,
    PageRecord,
    RevisionRecord,
    SaveResult,
    SearchHit,
    Section,
    TextNode,
)
from .versioning import OMITTED, VersionedDocumentStore

__version__ = "0.1.0"
__all__ = [
    "PageStore",
    "VersionedDocumentStore",
    "RevisionManager",
    "SearchIndex",
    "prune_revisions",
    "extract_text",
    "build_search_text",
    "OMITTED",
    "Accepted",
    "Conflict",
    "SaveResult",
    "PageRecord",
    "RevisionRecord",
    "Section",
    "Notebook",
    "SearchHit",
    "TextNode",
    "ContainerNode",
    "PageStoreError",
    "NotFoundError",
    "UnauthorizedError",
    "InternalError",
    "StorageError",
    "HierarchyServiceError",
]
