"""
Conflict-checked page writes.

Every save carries the version the writer last saw. The store reads the
page, compares versions and writes through the backend's conditional put,
so of two writers holding the same version exactly one commits and the
other gets a Conflict with the current state. Conflicts are reported,
never retried here: a blind retry would overwrite the other edit.
"""

import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Optional

from .config import DEFAULT_INITIAL_VERSION
from .errors import InternalError, NotFoundError, require_identity
from .extract import build_search_text
from .protocol import StorageBackendProtocol
from .revisions import RevisionManager
from .types import (
    REASON_CONFLICT,
    Accepted,
    Conflict,
    PageRecord,
    SaveResult,
    check_text,
    storable_content,
    utc_now,
)

logger = logging.getLogger(__name__)


class _Omitted:
    """Marker for a save that does not touch content."""

    def __repr__(self) -> str:
        return "OMITTED"


OMITTED: Any = _Omitted()


def _check_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValueError("Page title is required")
    return check_text(title, "Page title")


def _check_version(expected_version: Any) -> int:
    # bool is an int subclass; True is not a version
    if (
        isinstance(expected_version, bool)
        or not isinstance(expected_version, int)
        or expected_version < 0
    ):
        raise ValueError(
            f"expected_version must be a non-negative integer (got {expected_version!r})"
        )
    return expected_version


class VersionedDocumentStore:
    """
    Owns page title, content and version; performs compare-and-swap saves.

    The search field is recomputed here and only here, as part of the same
    conditional write that stores new content.
    """

    def __init__(
        self,
        backend: StorageBackendProtocol,
        *,
        initial_version: int = DEFAULT_INITIAL_VERSION,
        revisions: Optional[RevisionManager] = None,
        preserve_conflicting_edits: bool = False,
        clock: Callable[[], str] = utc_now,
    ) -> None:
        """
        Args:
            backend: Page storage with get / conditional_put
            initial_version: Version assigned to new pages
            revisions: Used to keep rejected edits when
                preserve_conflicting_edits is on
            preserve_conflicting_edits: Capture the content of a rejected
                save as a "conflict-save-attempt" revision
            clock: Timestamp source
        """
        if preserve_conflicting_edits and revisions is None:
            raise ValueError("preserve_conflicting_edits requires a RevisionManager")
        self._backend = backend
        self._initial_version = initial_version
        self._revisions = revisions
        self._preserve_conflicts = preserve_conflicting_edits
        self._clock = clock

    # -------------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------------

    def create(
        self,
        owner: str,
        title: str,
        content: Any = None,
        *,
        section_id: str = "",
        document_id: Optional[str] = None,
    ) -> PageRecord:
        """
        Create a page at the initial version.

        Raises:
            UnauthorizedError: If owner is empty
            ValueError: If title is blank or the id is already taken
        """
        owner = require_identity(owner)
        title = _check_title(title)
        content = storable_content(content)
        section_id = check_text(section_id, "section_id")
        if document_id is not None:
            document_id = check_text(document_id, "document_id")
        now = self._clock()
        record = PageRecord(
            id=document_id or uuid.uuid4().hex,
            owner=owner,
            section_id=section_id,
            title=title,
            content=content,
            version=self._initial_version,
            search_text=build_search_text(title, content),
            created_at=now,
            updated_at=now,
            last_edited_by=owner,
        )
        self._backend.insert(record)
        logger.info("Created page %s at version %d", record.id, record.version)
        return record

    def get(self, owner: str, document_id: str) -> PageRecord:
        """
        Fetch a page.

        Raises:
            UnauthorizedError: If owner is empty
            NotFoundError: If the page does not exist for owner
        """
        owner = require_identity(owner)
        document_id = check_text(document_id, "document_id")
        record = self._backend.get(owner, document_id)
        if record is None:
            raise NotFoundError(f"Page not found: {document_id}")
        return record

    # -------------------------------------------------------------------------
    # Save
    # -------------------------------------------------------------------------

    def save(
        self,
        document_id: str,
        title: str,
        content: Any = OMITTED,
        *,
        expected_version: int,
        editor: str,
        canvas_color: Optional[str] = None,
    ) -> SaveResult:
        """
        Write a page if nobody else has written it since expected_version.

        Args:
            document_id: Page to write
            title: New title (required, non-blank)
            content: New content tree. Leave out for a title-only save,
                which keeps both content and search text as they are.
            expected_version: The version the editor last saw
            editor: Verified identity of the writer (also the owner scope)
            canvas_color: Optional presentation colour; kept when None

        Returns:
            Accepted(new_version, search_text) once the write is durable,
            or Conflict(current_version, ...) with nothing written

        Raises:
            UnauthorizedError: If editor is empty
            ValueError: If title, content or expected_version is invalid
            NotFoundError: If the page does not exist for editor
            StorageError: If the backend fails (nothing was written)
        """
        owner = require_identity(editor)
        document_id = check_text(document_id, "document_id")
        title = _check_title(title)
        expected_version = _check_version(expected_version)
        if content is not OMITTED:
            content = storable_content(content)
        if canvas_color is not None:
            canvas_color = check_text(canvas_color, "canvas_color")

        current = self._backend.get(owner, document_id)
        if current is None:
            raise NotFoundError(f"Page not found: {document_id}")

        if current.version != expected_version:
            return self._conflict(current, expected_version, title, content, editor)

        has_content = content is not OMITTED
        updated = replace(
            current,
            title=title,
            version=current.version + 1,
            updated_at=self._clock(),
            last_edited_by=editor,
        )
        if has_content:
            updated.content = content
            updated.search_text = build_search_text(title, updated.content)
        if canvas_color is not None:
            updated.canvas_color = canvas_color

        if not self._backend.conditional_put(updated, expected_version):
            # Another writer committed between our read and our write
            winner = self._backend.get(owner, document_id)
            if winner is None:
                raise NotFoundError(f"Page not found: {document_id}")
            return self._conflict(winner, expected_version, title, content, editor)

        logger.info(
            "Saved page %s: version %d -> %d%s",
            document_id, expected_version, updated.version,
            "" if has_content else " (title only)",
        )
        return Accepted(new_version=updated.version, search_text=updated.search_text)

    def _conflict(
        self,
        current: PageRecord,
        expected_version: int,
        title: str,
        content: Any,
        editor: str,
    ) -> Conflict:
        logger.info(
            "Conflict on page %s: expected version %d, current %d",
            current.id, expected_version, current.version,
        )
        if self._preserve_conflicts and content is not OMITTED:
            try:
                self._revisions.capture(
                    current.id, title, content, editor, reason=REASON_CONFLICT,
                )
            except InternalError as e:
                logger.warning(
                    "Could not keep rejected edit of %s as a revision: %s",
                    current.id, e,
                )
        return Conflict(
            current_version=current.version,
            current_title=current.title,
            current_content=current.content,
        )
