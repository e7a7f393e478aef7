"""
Public API for the page persistence core.

PageStore wires the pieces together for one store directory:
- save(): conflict-checked write, search field kept in step with content
- capture_revision(): snapshot + retention pruning
- search(): prefix lookup joined to Section / Notebook
- restore_revision(): snapshot the current page, then save an old one back
"""

import logging
from pathlib import Path
from typing import Any, Optional

from .backend import create_backend, create_hierarchy
from .config import StoreConfig, get_default_store_path, load_or_create_config
from .errors import NotFoundError, require_identity
from .logging_config import configure_ops_log, remove_ops_log
from .protocol import HierarchyServiceProtocol, StorageBackendProtocol
from .revisions import RevisionManager
from .search import SearchIndex
from .types import REASON_BEFORE_RESTORE, PageRecord, RevisionRecord, SaveResult, SearchHit
from .versioning import OMITTED, VersionedDocumentStore

logger = logging.getLogger(__name__)


class PageStore:
    """
    Pages, revisions and search over one backend.

    Each call is independent; concurrency control lives in the backend's
    conditional write, not in this object.
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        backend: Optional[StorageBackendProtocol] = None,
        hierarchy: Optional[HierarchyServiceProtocol] = None,
    ) -> None:
        """
        Open (or create) a page store.

        Args:
            store_path: Store directory. Uses PAGESTORE_STORE_PATH or
                ~/.pagestore if not specified.
            config: Pre-loaded StoreConfig (skips filesystem config discovery).
            backend: Injected storage backend (skips default backend creation).
            hierarchy: Injected hierarchy service.
        """
        # --- Config resolution ---
        if config is not None:
            self._config = config
        else:
            path = Path(store_path).resolve() if store_path is not None else get_default_store_path()
            self._config = load_or_create_config(path)
        self._store_path = self._config.path

        # --- Backends ---
        # Hierarchy first: it can reject its URL before anything is opened
        self._ops_log_handler: Optional[logging.Handler] = None
        owns_hierarchy = hierarchy is None
        if hierarchy is None:
            hierarchy = create_hierarchy(self._config)
        if backend is None:
            try:
                backend = create_backend(self._config)
            except Exception:
                if owns_hierarchy and hasattr(hierarchy, "close"):
                    hierarchy.close()
                raise
            if self._config.backend == "sqlite":
                self._ops_log_handler = configure_ops_log(self._store_path)
        self._backend = backend
        self._hierarchy = hierarchy

        # --- Components ---
        self._revisions = RevisionManager(
            backend,
            retention=self._config.retention,
            fetch_window=self._config.fetch_window,
        )
        self._documents = VersionedDocumentStore(
            backend,
            initial_version=self._config.initial_version,
            revisions=self._revisions,
            preserve_conflicting_edits=self._config.preserve_conflicting_edits,
        )
        self._search = SearchIndex(
            backend,
            hierarchy,
            limit=self._config.search_limit,
            min_query_length=self._config.min_query_length,
        )

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def hierarchy(self) -> HierarchyServiceProtocol:
        return self._hierarchy

    @property
    def documents(self) -> VersionedDocumentStore:
        return self._documents

    @property
    def revisions(self) -> RevisionManager:
        return self._revisions

    # -------------------------------------------------------------------------
    # Pages
    # -------------------------------------------------------------------------

    def create_page(
        self,
        owner: str,
        title: str,
        content: Any = None,
        *,
        section_id: str = "",
        id: Optional[str] = None,
    ) -> PageRecord:
        """Create a page at the configured initial version."""
        return self._documents.create(
            owner, title, content, section_id=section_id, document_id=id,
        )

    def get_page(self, owner: str, id: str) -> PageRecord:
        """Fetch a page; NotFoundError if absent."""
        return self._documents.get(owner, id)

    def save(
        self,
        id: str,
        title: str,
        content: Any = OMITTED,
        *,
        expected_version: int,
        editor: str,
        canvas_color: Optional[str] = None,
    ) -> SaveResult:
        """Conflict-checked save. See VersionedDocumentStore.save."""
        return self._documents.save(
            id, title, content,
            expected_version=expected_version,
            editor=editor,
            canvas_color=canvas_color,
        )

    # -------------------------------------------------------------------------
    # Revisions
    # -------------------------------------------------------------------------

    def capture_revision(
        self,
        id: str,
        title: str,
        snapshot: Any,
        author_id: str,
        *,
        reason: Optional[str] = None,
    ) -> str:
        """Store a snapshot of a page and prune its history. Returns revision id."""
        return self._revisions.capture(id, title, snapshot, author_id, reason=reason)

    def list_revisions(
        self, id: str, author_id: str, limit: Optional[int] = None
    ) -> list[RevisionRecord]:
        """Revisions of a page, newest first."""
        return self._revisions.list_revisions(id, author_id, limit)

    def get_revision(self, revision_id: str, author_id: str) -> RevisionRecord:
        return self._revisions.get_revision(revision_id, author_id)

    def restore_revision(
        self,
        id: str,
        revision_id: str,
        *,
        expected_version: int,
        editor: str,
    ) -> SaveResult:
        """
        Put an old revision back as the page's current content.

        The current page is first captured as a "before-restore" revision,
        then the revision's title and snapshot are saved with the usual
        version check. On Conflict the page is untouched; the extra
        revision is kept.

        Raises:
            NotFoundError: If the page or revision does not exist for editor,
                or the revision belongs to another page
        """
        owner = require_identity(editor)
        revision = self._revisions.get_revision(revision_id, owner)
        if revision.document_id != id:
            raise NotFoundError(f"Revision {revision_id} does not belong to page {id}")

        current = self._documents.get(owner, id)
        self._revisions.capture(
            id, current.title, current.content, editor, reason=REASON_BEFORE_RESTORE,
        )
        result = self._documents.save(
            id, revision.title, revision.snapshot,
            expected_version=expected_version,
            editor=editor,
        )
        logger.info("Restore of %s from revision %s: %s", id, revision_id, result)
        return result

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search(self, owner: str, query: str) -> list[SearchHit]:
        """Prefix search over the owner's pages."""
        return self._search.query(owner, query)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close backend connections and detach the ops log."""
        self._backend.close()
        close_hierarchy = getattr(self._hierarchy, "close", None)
        if close_hierarchy is not None:
            close_hierarchy()
        if self._ops_log_handler is not None:
            remove_ops_log(self._ops_log_handler)
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
