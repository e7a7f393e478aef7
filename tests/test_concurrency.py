"""
Concurrency tests for conflict-checked saves.

Threads exercise the compare-and-swap on both engines, with a barrier
forcing every writer to read the same version before any of them writes.
Processes exercise the SQLite engine the way separate request handlers
would.
"""

import multiprocessing
import threading
from pathlib import Path

import pytest

from pagestore.types import Accepted, Conflict
from pagestore.versioning import VersionedDocumentStore

from conftest import OWNER, doc


class InterleavingBackend:
    """
    Holds each thread's first read at a barrier.

    Every writer therefore observes the same version before any of them
    reaches conditional_put. Later reads (conflict re-reads) pass straight
    through.
    """

    def __init__(self, real, parties: int):
        self._real = real
        self._barrier = threading.Barrier(parties, timeout=10)
        self._local = threading.local()

    def __getattr__(self, name):
        return getattr(self._real, name)

    def get(self, owner, id):
        record = self._real.get(owner, id)
        if not getattr(self._local, "waited", False):
            self._local.waited = True
            self._barrier.wait()
        return record


def _run_threads(target, count: int) -> list:
    results: list = [None] * count
    errors: list = []

    def run(i):
        try:
            results[i] = target(i)
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=run, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    assert not errors, errors
    return results


class TestSameVersionRace:
    @pytest.mark.parametrize("writers", [2, 8])
    def test_exactly_one_writer_wins(self, backend, writers):
        page = VersionedDocumentStore(backend).create(OWNER, "Race")
        store = VersionedDocumentStore(InterleavingBackend(backend, writers))

        results = _run_threads(
            lambda i: store.save(page.id, f"Writer {i}", doc(f"body {i}"),
                                 expected_version=1, editor=OWNER),
            writers,
        )

        accepted = [r for r in results if isinstance(r, Accepted)]
        conflicts = [r for r in results if isinstance(r, Conflict)]
        assert len(accepted) == 1
        assert len(conflicts) == writers - 1
        assert accepted[0].new_version == 2
        assert all(c.current_version == 2 for c in conflicts)

        final = backend.get(OWNER, page.id)
        assert final.version == 2
        # The stored search text belongs to the winner's content
        winner = results.index(accepted[0])
        assert final.search_text == f"writer {winner} body {winner}"

    def test_repeated_rounds(self, backend):
        page = VersionedDocumentStore(backend).create(OWNER, "Rounds")
        for round_no in range(5):
            store = VersionedDocumentStore(InterleavingBackend(backend, 4))
            expected = 1 + round_no
            results = _run_threads(
                lambda i: store.save(page.id, f"R{round_no}W{i}",
                                     expected_version=expected, editor=OWNER),
                4,
            )
            assert sum(isinstance(r, Accepted) for r in results) == 1
        assert backend.get(OWNER, page.id).version == 6


class TestRetryLoop:
    def test_no_lost_updates_under_contention(self, backend):
        """Writers that re-fetch and resubmit on Conflict; every accepted
        save gets its own version number."""
        store = VersionedDocumentStore(backend)
        page = store.create(OWNER, "Counter")
        saves_per_writer = 10

        def writer(i):
            versions = []
            for n in range(saves_per_writer):
                while True:
                    current = store.get(OWNER, page.id)
                    result = store.save(page.id, f"w{i} n{n}", doc(f"{i}:{n}"),
                                        expected_version=current.version, editor=OWNER)
                    if isinstance(result, Accepted):
                        versions.append(result.new_version)
                        break
            return versions

        results = _run_threads(writer, 4)
        all_versions = sorted(v for vs in results for v in vs)
        assert all_versions == list(range(2, 2 + 4 * saves_per_writer))
        assert store.get(OWNER, page.id).version == 1 + 4 * saves_per_writer


# Worker functions must be top-level for multiprocessing spawn compatibility


def _worker_save(db_path: str, page_id: str, worker_id: int) -> str:
    from pagestore.document_store import DocumentStore
    from pagestore.types import Accepted
    from pagestore.versioning import VersionedDocumentStore

    backend = DocumentStore(Path(db_path))
    try:
        store = VersionedDocumentStore(backend)
        result = store.save(page_id, f"Process {worker_id}",
                            {"type": "text", "text": str(worker_id)},
                            expected_version=1, editor="user-1")
        return "accepted" if isinstance(result, Accepted) else "conflict"
    finally:
        backend.close()


class TestCrossProcess:
    def test_one_process_wins(self, tmp_path):
        from pagestore.document_store import DocumentStore

        db_path = tmp_path / "pages.db"
        setup = DocumentStore(db_path)
        page = VersionedDocumentStore(setup).create(OWNER, "Shared")
        setup.close()

        ctx = multiprocessing.get_context("spawn")
        with ctx.Pool(4) as pool:
            outcomes = pool.starmap(
                _worker_save, [(str(db_path), page.id, w) for w in range(6)]
            )

        assert outcomes.count("accepted") == 1
        assert outcomes.count("conflict") == 5

        check = DocumentStore(db_path)
        try:
            assert check.get(OWNER, page.id).version == 2
        finally:
            check.close()
