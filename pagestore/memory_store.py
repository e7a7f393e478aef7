"""
In-process storage backend.

Same contract as the SQLite DocumentStore, held in dicts behind a lock.
Used for tests and for embedding pagestore where durability is handled
elsewhere. Records are deep-copied on the way in and out so callers can
never mutate stored state.
"""

import copy
import itertools
import threading
from typing import Optional

from .types import PageRecord, RevisionRecord


class MemoryDocumentStore:
    """Dict-backed store for pages and revisions (StorageBackendProtocol)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pages: dict[tuple[str, str], PageRecord] = {}
        # id -> (seq, revision); seq breaks created_at ties
        self._revisions: dict[str, tuple[int, RevisionRecord]] = {}
        self._seq = itertools.count(1)

    # -- Pages --

    def get(self, owner: str, id: str) -> Optional[PageRecord]:
        with self._lock:
            record = self._pages.get((owner, id))
            return copy.deepcopy(record) if record is not None else None

    def insert(self, record: PageRecord) -> None:
        key = (record.owner, record.id)
        with self._lock:
            if key in self._pages:
                raise ValueError(f"Page already exists: {record.id}")
            self._pages[key] = copy.deepcopy(record)

    def conditional_put(self, record: PageRecord, expected_version: int) -> bool:
        key = (record.owner, record.id)
        with self._lock:
            current = self._pages.get(key)
            if current is None or current.version != expected_version:
                return False
            self._pages[key] = copy.deepcopy(record)
            return True

    def scan_search_text(
        self, owner: str, lower: str, upper: str, limit: int
    ) -> list[PageRecord]:
        with self._lock:
            matches = [
                p for (o, _), p in self._pages.items()
                if o == owner and lower <= p.search_text < upper
            ]
            matches.sort(key=lambda p: p.search_text)
            return [copy.deepcopy(p) for p in matches[:limit]]

    # -- Revisions --

    def insert_revision(self, revision: RevisionRecord) -> None:
        with self._lock:
            if revision.id in self._revisions:
                raise ValueError(f"Revision already exists: {revision.id}")
            self._revisions[revision.id] = (next(self._seq), copy.deepcopy(revision))

    def get_revision(self, owner: str, id: str) -> Optional[RevisionRecord]:
        with self._lock:
            entry = self._revisions.get(id)
            if entry is None or entry[1].owner != owner:
                return None
            return copy.deepcopy(entry[1])

    def recent_revisions(
        self, owner: str, document_id: str, limit: int
    ) -> list[RevisionRecord]:
        with self._lock:
            entries = [
                (seq, rev) for seq, rev in self._revisions.values()
                if rev.owner == owner and rev.document_id == document_id
            ]
            entries.sort(key=lambda e: (e[1].created_at, e[0]), reverse=True)
            return [copy.deepcopy(rev) for _, rev in entries[:limit]]

    def delete_revisions(self, owner: str, ids: list[str]) -> int:
        with self._lock:
            doomed = [
                i for i in dict.fromkeys(ids)
                if i in self._revisions and self._revisions[i][1].owner == owner
            ]
            for i in doomed:
                del self._revisions[i]
            return len(doomed)

    def count_revisions(self, owner: str, document_id: str) -> int:
        with self._lock:
            return sum(
                1 for _, rev in self._revisions.values()
                if rev.owner == owner and rev.document_id == document_id
            )

    def close(self) -> None:
        pass
