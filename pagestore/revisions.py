"""
Revision history for pages.

A revision is an immutable snapshot of a page's title and content. Every
capture is followed by a prune that keeps only the newest ``retention``
revisions of that page. Pruning is scoped to one page and idempotent, so
a failed prune is simply corrected by the next one.
"""

import logging
import uuid
from typing import Any, Callable, Optional

from .config import DEFAULT_FETCH_WINDOW, DEFAULT_RETENTION
from .errors import InternalError, NotFoundError, require_identity
from .protocol import StorageBackendProtocol
from .types import RevisionRecord, check_text, storable_content, utc_now

logger = logging.getLogger(__name__)


def prune_revisions(
    backend: StorageBackendProtocol,
    owner: str,
    document_id: str,
    keep: int = DEFAULT_RETENTION,
    window: int = DEFAULT_FETCH_WINDOW,
) -> int:
    """
    Delete all but the newest ``keep`` revisions of a page.

    Fetches up to ``window`` newest revisions; everything past the first
    ``keep`` is deleted in one batch. Running it again when the page is
    already at or below ``keep`` does nothing.

    Args:
        backend: Revision storage
        owner: Owning user
        document_id: Page whose history to trim
        keep: Retention bound
        window: Look-ahead fetch size, must exceed ``keep``

    Returns:
        Number of revisions deleted

    Raises:
        ValueError: If keep < 0 or window <= keep
        StorageError: If the fetch or the batch delete fails
    """
    if keep < 0:
        raise ValueError(f"keep must be >= 0 (got {keep})")
    if window <= keep:
        raise ValueError(f"window ({window}) must exceed keep ({keep})")

    recent = backend.recent_revisions(owner, document_id, window)
    if len(recent) <= keep:
        return 0

    excess = [rev.id for rev in recent[keep:]]
    deleted = backend.delete_revisions(owner, excess)
    logger.info(
        "Pruned %d revision(s) of %s (keeping %d)", deleted, document_id, keep
    )
    return deleted


class RevisionManager:
    """
    Captures and trims page history.

    Shares the backend with VersionedDocumentStore but is independent of
    it: a save need not produce a revision, and a revision never changes
    the page.
    """

    def __init__(
        self,
        backend: StorageBackendProtocol,
        *,
        retention: int = DEFAULT_RETENTION,
        fetch_window: int = DEFAULT_FETCH_WINDOW,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        if fetch_window <= retention:
            raise ValueError(
                f"fetch_window ({fetch_window}) must exceed retention ({retention})"
            )
        self._backend = backend
        self._retention = retention
        self._fetch_window = fetch_window
        self._clock = clock

    def capture(
        self,
        document_id: str,
        title: str,
        snapshot: Any,
        author_id: str,
        *,
        reason: Optional[str] = None,
    ) -> str:
        """
        Store a snapshot of a page, then prune its history.

        Args:
            document_id: Page the snapshot belongs to
            title: Title at capture time
            snapshot: Full content at capture time
            author_id: Verified identity of the caller (also the owner scope)
            reason: Optional label, e.g. "conflict-save-attempt"

        Returns:
            The new revision id

        Raises:
            UnauthorizedError: If author_id is empty
            ValueError: If title or snapshot cannot be stored
            NotFoundError: If the page does not exist for author_id
            StorageError: If the revision could not be inserted
        """
        owner = require_identity(author_id)
        if not isinstance(title, str) or not title.strip():
            raise ValueError("Revision title is required")
        check_text(title, "Revision title")
        check_text(document_id, "document_id")
        snapshot = storable_content(snapshot)
        if self._backend.get(owner, document_id) is None:
            raise NotFoundError(f"Page not found: {document_id}")

        revision = RevisionRecord(
            id=uuid.uuid4().hex,
            owner=owner,
            document_id=document_id,
            title=title,
            snapshot=snapshot,
            created_at=self._clock(),
            author_id=author_id,
            reason=reason,
        )
        self._backend.insert_revision(revision)
        logger.info(
            "Captured revision %s of %s%s",
            revision.id, document_id, f" ({reason})" if reason else "",
        )

        try:
            self.prune(document_id, owner)
        except InternalError as e:
            # Over the bound until the next successful prune
            logger.warning("Pruning revisions of %s failed: %s", document_id, e)

        return revision.id

    def prune(self, document_id: str, owner: str) -> int:
        """Trim a page's history to the retention bound. Returns count deleted."""
        return prune_revisions(
            self._backend, owner, document_id,
            keep=self._retention, window=self._fetch_window,
        )

    def list_revisions(
        self,
        document_id: str,
        author_id: str,
        limit: Optional[int] = None,
    ) -> list[RevisionRecord]:
        """
        Revisions of a page, newest first.

        Args:
            document_id: Page identifier
            author_id: Caller identity (owner scope)
            limit: Maximum to return; defaults to the retention bound
        """
        owner = require_identity(author_id)
        if limit is None:
            limit = self._retention
        check_text(document_id, "document_id")
        return self._backend.recent_revisions(owner, document_id, limit)

    def get_revision(self, revision_id: str, author_id: str) -> RevisionRecord:
        """
        Fetch one revision.

        Raises:
            NotFoundError: If the revision does not exist for author_id
        """
        owner = require_identity(author_id)
        check_text(revision_id, "revision_id")
        revision = self._backend.get_revision(owner, revision_id)
        if revision is None:
            raise NotFoundError(f"Revision not found: {revision_id}")
        return revision
