"""
Page and revision storage using SQLite.

The store is the source of truth for:
- Page identity, title, content and version
- The derived search_text field (written only together with content)
- Revisions, partitioned by (owner, document_id)

Writes are compare-and-swap: ``conditional_put`` updates a page only
where its version still matches, in a single statement. That holds across
threads (one connection behind a lock) and across processes (SQLite file
locking, WAL journal, busy timeout).
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import StorageError
from .types import PageRecord, RevisionRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# SQLite's default host parameter limit is 999; stay well under it
_DELETE_CHUNK = 500

_PAGE_COLUMNS = (
    "owner, id, section_id, title, content_json, version, search_text, "
    "canvas_color, created_at, updated_at, last_edited_by"
)
_REVISION_COLUMNS = (
    "id, owner, document_id, title, snapshot_json, created_at, author_id, reason"
)


class DocumentStore:
    """
    SQLite-backed store for pages and their revisions.

    Implements StorageBackendProtocol.
    """

    def __init__(self, store_path: Path):
        """
        Args:
            store_path: Path to SQLite database file
        """
        self._db_path = Path(store_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None: every statement commits on its own unless
        # wrapped in an explicit BEGIN
        self._conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrent access across processes
        self._conn.execute("PRAGMA journal_mode=WAL")
        # Wait up to 5 seconds for locks instead of failing immediately
        self._conn.execute("PRAGMA busy_timeout=5000")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS pages (
                owner TEXT NOT NULL,
                id TEXT NOT NULL,
                section_id TEXT NOT NULL DEFAULT '',
                title TEXT NOT NULL,
                content_json TEXT NOT NULL DEFAULT 'null',
                version INTEGER NOT NULL,
                search_text TEXT NOT NULL DEFAULT '',
                canvas_color TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                last_edited_by TEXT NOT NULL DEFAULT '',
                PRIMARY KEY (owner, id)
            )
        """)

        # Prefix range scans
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_pages_search
            ON pages(owner, search_text)
        """)

        # seq breaks created_at ties so revision order is total
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS revisions (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                owner TEXT NOT NULL,
                document_id TEXT NOT NULL,
                title TEXT NOT NULL,
                snapshot_json TEXT NOT NULL DEFAULT 'null',
                created_at TEXT NOT NULL,
                author_id TEXT NOT NULL,
                reason TEXT
            )
        """)

        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_revisions_document
            ON revisions(owner, document_id, created_at)
        """)

        current = self._conn.execute("PRAGMA user_version").fetchone()[0]
        if current < SCHEMA_VERSION:
            self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Serialize access and translate sqlite errors to StorageError."""
        if self._conn is None:
            raise StorageError(f"{operation}: store is closed")
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as e:
                raise StorageError(f"{operation} failed: {e}") from e

    @staticmethod
    def _row_to_page(row: sqlite3.Row) -> PageRecord:
        return PageRecord(
            id=row["id"],
            owner=row["owner"],
            section_id=row["section_id"],
            title=row["title"],
            content=json.loads(row["content_json"]),
            version=row["version"],
            search_text=row["search_text"],
            canvas_color=row["canvas_color"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            last_edited_by=row["last_edited_by"],
        )

    @staticmethod
    def _row_to_revision(row: sqlite3.Row) -> RevisionRecord:
        return RevisionRecord(
            id=row["id"],
            owner=row["owner"],
            document_id=row["document_id"],
            title=row["title"],
            snapshot=json.loads(row["snapshot_json"]),
            created_at=row["created_at"],
            author_id=row["author_id"],
            reason=row["reason"],
        )

    # -------------------------------------------------------------------------
    # Pages
    # -------------------------------------------------------------------------

    def get(self, owner: str, id: str) -> Optional[PageRecord]:
        """
        Get a page by ID.

        Args:
            owner: Owning user
            id: Page identifier

        Returns:
            PageRecord if found, None otherwise
        """
        with self._guard("get") as conn:
            row = conn.execute(f"""
                SELECT {_PAGE_COLUMNS} FROM pages
                WHERE owner = ? AND id = ?
            """, (owner, id)).fetchone()
        if row is None:
            return None
        return self._row_to_page(row)

    def insert(self, record: PageRecord) -> None:
        """
        Insert a new page.

        Raises:
            ValueError: If a page with this id already exists for the owner
        """
        content_json = json.dumps(record.content, ensure_ascii=False)
        with self._guard("insert") as conn:
            try:
                conn.execute(f"""
                    INSERT INTO pages ({_PAGE_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.owner, record.id, record.section_id, record.title,
                    content_json, record.version, record.search_text,
                    record.canvas_color, record.created_at, record.updated_at,
                    record.last_edited_by,
                ))
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Page already exists: {record.id}") from e

    def conditional_put(self, record: PageRecord, expected_version: int) -> bool:
        """
        Replace a page only if its stored version equals expected_version.

        The version check and the write are one UPDATE statement, so two
        writers holding the same expected_version cannot both succeed.

        Returns:
            True if the row was written, False if the version moved on
            or the page is gone
        """
        content_json = json.dumps(record.content, ensure_ascii=False)
        with self._guard("conditional_put") as conn:
            cursor = conn.execute("""
                UPDATE pages
                SET section_id = ?, title = ?, content_json = ?, version = ?,
                    search_text = ?, canvas_color = ?, updated_at = ?,
                    last_edited_by = ?
                WHERE owner = ? AND id = ? AND version = ?
            """, (
                record.section_id, record.title, content_json, record.version,
                record.search_text, record.canvas_color, record.updated_at,
                record.last_edited_by,
                record.owner, record.id, expected_version,
            ))
            return cursor.rowcount == 1

    def scan_search_text(
        self, owner: str, lower: str, upper: str, limit: int
    ) -> list[PageRecord]:
        """
        Range scan over search_text.

        BINARY collation compares UTF-8 bytes, which orders the same as
        Python code point comparison.
        """
        with self._guard("scan_search_text") as conn:
            rows = conn.execute(f"""
                SELECT {_PAGE_COLUMNS} FROM pages
                WHERE owner = ? AND search_text >= ? AND search_text < ?
                ORDER BY search_text
                LIMIT ?
            """, (owner, lower, upper, limit)).fetchall()
        return [self._row_to_page(row) for row in rows]

    # -------------------------------------------------------------------------
    # Revisions
    # -------------------------------------------------------------------------

    def insert_revision(self, revision: RevisionRecord) -> None:
        """Insert an immutable revision row."""
        snapshot_json = json.dumps(revision.snapshot, ensure_ascii=False)
        with self._guard("insert_revision") as conn:
            conn.execute(f"""
                INSERT INTO revisions ({_REVISION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                revision.id, revision.owner, revision.document_id,
                revision.title, snapshot_json, revision.created_at,
                revision.author_id, revision.reason,
            ))

    def get_revision(self, owner: str, id: str) -> Optional[RevisionRecord]:
        """Get a revision by ID, or None."""
        with self._guard("get_revision") as conn:
            row = conn.execute(f"""
                SELECT {_REVISION_COLUMNS} FROM revisions
                WHERE owner = ? AND id = ?
            """, (owner, id)).fetchone()
        if row is None:
            return None
        return self._row_to_revision(row)

    def recent_revisions(
        self, owner: str, document_id: str, limit: int
    ) -> list[RevisionRecord]:
        """
        Newest revisions of a page.

        Args:
            owner: Owning user
            document_id: Page identifier
            limit: Maximum number to return

        Returns:
            RevisionRecords, newest first
        """
        with self._guard("recent_revisions") as conn:
            rows = conn.execute(f"""
                SELECT {_REVISION_COLUMNS} FROM revisions
                WHERE owner = ? AND document_id = ?
                ORDER BY created_at DESC, seq DESC
                LIMIT ?
            """, (owner, document_id, limit)).fetchall()
        return [self._row_to_revision(row) for row in rows]

    def delete_revisions(self, owner: str, ids: list[str]) -> int:
        """
        Delete revisions as a single batch.

        All-or-nothing: either every listed revision is removed or none is.

        Returns:
            Number of rows deleted
        """
        if not ids:
            return 0
        with self._guard("delete_revisions") as conn:
            deleted = 0
            conn.execute("BEGIN IMMEDIATE")
            try:
                for start in range(0, len(ids), _DELETE_CHUNK):
                    chunk = ids[start:start + _DELETE_CHUNK]
                    placeholders = ",".join("?" * len(chunk))
                    cursor = conn.execute(f"""
                        DELETE FROM revisions
                        WHERE owner = ? AND id IN ({placeholders})
                    """, (owner, *chunk))
                    deleted += cursor.rowcount
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            return deleted

    def count_revisions(self, owner: str, document_id: str) -> int:
        """Count revisions stored for a page."""
        with self._guard("count_revisions") as conn:
            return conn.execute("""
                SELECT COUNT(*) FROM revisions
                WHERE owner = ? AND document_id = ?
            """, (owner, document_id)).fetchone()[0]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
