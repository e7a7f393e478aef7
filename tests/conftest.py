"""
Shared pytest fixtures for pagestore tests.

Provides both storage engines so contract tests run against each, plus a
small notebook / section hierarchy for search tests.
"""

from pathlib import Path

import pytest

from pagestore.document_store import DocumentStore
from pagestore.hierarchy import InMemoryHierarchy
from pagestore.memory_store import MemoryDocumentStore
from pagestore.revisions import RevisionManager
from pagestore.search import SearchIndex
from pagestore.types import Notebook, Section
from pagestore.versioning import VersionedDocumentStore

OWNER = "user-1"


def doc(*paragraphs: str) -> dict:
    """Editor JSON with one paragraph per argument."""
    return {
        "type": "doc",
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": p}]}
            for p in paragraphs
        ],
    }


class FailingBackend:
    """Backend wrapper that raises on selected methods."""

    def __init__(self, real):
        self._real = real
        self.fail = set()
        self.calls: dict[str, int] = {}

    def __getattr__(self, name):
        attr = getattr(self._real, name)
        if not callable(attr):
            return attr

        def wrapper(*args, **kwargs):
            self.calls[name] = self.calls.get(name, 0) + 1
            if name in self.fail:
                from pagestore.errors import StorageError
                raise StorageError(f"simulated {name} failure")
            return attr(*args, **kwargs)
        return wrapper


@pytest.fixture
def sqlite_store(tmp_path: Path):
    """SQLite DocumentStore in a temporary directory."""
    store = DocumentStore(tmp_path / "pages.db")
    yield store
    store.close()


@pytest.fixture
def memory_store():
    return MemoryDocumentStore()


@pytest.fixture(params=["sqlite", "memory"])
def backend(request, tmp_path: Path):
    """Each storage engine in turn."""
    if request.param == "sqlite":
        store = DocumentStore(tmp_path / "pages.db")
    else:
        store = MemoryDocumentStore()
    yield store
    store.close()


@pytest.fixture
def revisions(backend):
    return RevisionManager(backend)


@pytest.fixture
def documents(backend, revisions):
    return VersionedDocumentStore(backend, revisions=revisions)


@pytest.fixture
def hierarchy():
    """One notebook with two sections, plus a section whose notebook is gone."""
    h = InMemoryHierarchy()
    h.add_notebook(OWNER, Notebook(id="nb-1", title="Work"))
    h.add_section(OWNER, Section(id="sec-1", notebook_id="nb-1", title="Meetings"))
    h.add_section(OWNER, Section(id="sec-2", notebook_id="nb-1", title="Ideas"))
    h.add_section(OWNER, Section(id="sec-lost", notebook_id="nb-deleted"))
    return h


@pytest.fixture
def search_index(backend, hierarchy):
    return SearchIndex(backend, hierarchy)
