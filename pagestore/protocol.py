"""
Protocol definitions for pagestore storage backends and collaborators.

Defines interface contracts at two levels:
- PageBackendProtocol / RevisionBackendProtocol: the storage boundary
  (SQLite locally, in-memory for tests, third-party engines via the
  ``pagestore.backends`` entry point group)
- HierarchyServiceProtocol: the external Section / Notebook lookup used
  to enrich search results

The page boundary is deliberately a compare-and-swap: ``get`` plus
``conditional_put``. Any engine with an atomic conditional write can
implement it; no locking is expected from callers.
"""

from typing import Optional, Protocol, runtime_checkable

from .types import Notebook, PageRecord, RevisionRecord, Section


@runtime_checkable
class PageBackendProtocol(Protocol):
    """
    Page storage.

    Implemented by:
    - DocumentStore (local SQLite)
    - MemoryDocumentStore (in-process dict)
    """

    def get(self, owner: str, id: str) -> Optional[PageRecord]: ...

    def insert(self, record: PageRecord) -> None:
        """Insert a new page. Raises ValueError if the id is taken."""
        ...

    def conditional_put(self, record: PageRecord, expected_version: int) -> bool:
        """
        Replace the stored page only if its version is still ``expected_version``.

        Returns False (and writes nothing) if the page changed or vanished.
        Returns True once the write is durable.
        """
        ...

    def scan_search_text(
        self, owner: str, lower: str, upper: str, limit: int
    ) -> list[PageRecord]:
        """Pages with ``lower <= search_text < upper``, ordered by search_text."""
        ...


@runtime_checkable
class RevisionBackendProtocol(Protocol):
    """Revision storage, partitioned by (owner, document_id)."""

    def insert_revision(self, revision: RevisionRecord) -> None: ...

    def get_revision(self, owner: str, id: str) -> Optional[RevisionRecord]: ...

    def recent_revisions(
        self, owner: str, document_id: str, limit: int
    ) -> list[RevisionRecord]:
        """Newest first by (created_at, insertion order)."""
        ...

    def delete_revisions(self, owner: str, ids: list[str]) -> int:
        """Delete the given revisions as one batch. Returns count deleted."""
        ...

    def count_revisions(self, owner: str, document_id: str) -> int: ...


@runtime_checkable
class StorageBackendProtocol(PageBackendProtocol, RevisionBackendProtocol, Protocol):
    """A backend holding both pages and revisions."""

    def close(self) -> None: ...


@runtime_checkable
class HierarchyServiceProtocol(Protocol):
    """
    Section / Notebook lookup.

    Missing ids are omitted from the returned dicts.
    """

    def get_sections(self, owner: str, ids: list[str]) -> dict[str, Section]: ...

    def get_notebooks(self, owner: str, ids: list[str]) -> dict[str, Notebook]: ...
