"""Tests for prefix search over the page search field."""

import pytest

from pagestore.errors import UnauthorizedError
from pagestore.hierarchy import InMemoryHierarchy
from pagestore.search import SearchIndex
from pagestore.types import PageRecord
from pagestore.versioning import VersionedDocumentStore

from conftest import OWNER, doc


def _put(backend, id, search_text, section_id="sec-1", owner=OWNER):
    """Insert a page with a given search_text directly."""
    backend.insert(PageRecord(
        id=id, owner=owner, title=id, content=None, version=1,
        search_text=search_text, created_at="2026-01-01T00:00:00.000000",
        updated_at="2026-01-01T00:00:00.000000", last_edited_by=owner,
        section_id=section_id,
    ))


class TestPrefixMatching:
    def test_prefix_not_substring(self, backend, search_index):
        _put(backend, "p1", "abacus tool")
        _put(backend, "p2", "banana split")
        _put(backend, "p3", "abandon ship")

        hits = search_index.query(OWNER, "ab")
        assert sorted(h.page.id for h in hits) == ["p1", "p3"]

    def test_results_ordered_by_search_text(self, backend, search_index):
        _put(backend, "p1", "abz")
        _put(backend, "p2", "aba")
        _put(backend, "p3", "abm")
        assert [h.page.id for h in search_index.query(OWNER, "ab")] == ["p2", "p3", "p1"]

    def test_query_is_lowercased(self, backend, search_index):
        _put(backend, "p1", "meeting notes")
        assert [h.page.id for h in search_index.query(OWNER, "MEET")] == ["p1"]

    def test_mid_string_words_do_not_match(self, backend, search_index):
        """Known limitation: only the start of the concatenated text is reachable."""
        _put(backend, "p1", "notes hello world")
        assert search_index.query(OWNER, "hello") == []
        assert len(search_index.query(OWNER, "notes hel")) == 1

    def test_exact_match(self, backend, search_index):
        _put(backend, "p1", "ab")
        assert len(search_index.query(OWNER, "ab")) == 1

    def test_non_ascii(self, backend, search_index):
        _put(backend, "p1", "über café")
        _put(backend, "p2", "uber ride")
        assert [h.page.id for h in search_index.query(OWNER, "Üb")] == ["p1"]

    @pytest.mark.parametrize("query", ["", "a"])
    def test_short_queries_return_nothing(self, backend, search_index, query):
        _put(backend, "p1", "abacus")
        assert search_index.query(OWNER, query) == []

    def test_no_match(self, backend, search_index):
        _put(backend, "p1", "abacus")
        assert search_index.query(OWNER, "zz") == []

    def test_limit(self, backend, hierarchy):
        for i in range(30):
            _put(backend, f"p{i:02d}", f"common {i:02d}")
        index = SearchIndex(backend, hierarchy)
        assert len(index.query(OWNER, "common")) == 20
        assert len(SearchIndex(backend, hierarchy, limit=5).query(OWNER, "common")) == 5

    def test_scoped_to_owner(self, backend, search_index):
        _put(backend, "p1", "abacus", owner="user-2")
        assert search_index.query(OWNER, "ab") == []

    def test_missing_identity(self, search_index):
        with pytest.raises(UnauthorizedError):
            search_index.query("", "ab")


class TestHierarchyJoin:
    def test_hits_carry_section_and_notebook(self, backend, search_index):
        _put(backend, "p1", "standup monday", section_id="sec-1")
        _put(backend, "p2", "standup tuesday", section_id="sec-2")
        hits = search_index.query(OWNER, "standup")
        assert [(h.page.id, h.section.id, h.notebook.id) for h in hits] == [
            ("p1", "sec-1", "nb-1"),
            ("p2", "sec-2", "nb-1"),
        ]
        assert hits[0].section.title == "Meetings"
        assert hits[0].notebook.title == "Work"

    def test_orphans_are_excluded(self, backend, search_index):
        _put(backend, "ok", "plan a", section_id="sec-1")
        _put(backend, "no-section", "plan b", section_id="sec-missing")
        _put(backend, "no-notebook", "plan c", section_id="sec-lost")
        _put(backend, "blank", "plan d", section_id="")
        assert [h.page.id for h in search_index.query(OWNER, "plan")] == ["ok"]

    def test_lookups_are_batched(self, backend):
        calls = []

        class CountingHierarchy(InMemoryHierarchy):
            def get_sections(self, owner, ids):
                calls.append(("sections", list(ids)))
                return super().get_sections(owner, ids)

            def get_notebooks(self, owner, ids):
                calls.append(("notebooks", list(ids)))
                return super().get_notebooks(owner, ids)

        from pagestore.types import Notebook, Section
        h = CountingHierarchy()
        h.add_notebook(OWNER, Notebook("nb"))
        h.add_section(OWNER, Section("s1", "nb"))
        h.add_section(OWNER, Section("s2", "nb"))
        for i in range(6):
            _put(backend, f"p{i}", f"batch {i}", section_id="s1" if i % 2 else "s2")

        hits = SearchIndex(backend, h).query(OWNER, "batch")
        assert len(hits) == 6
        assert calls == [("sections", ["s2", "s1"]), ("notebooks", ["nb"])]

    def test_no_hierarchy_calls_without_matches(self, backend):
        class ExplodingHierarchy:
            def get_sections(self, owner, ids):
                raise AssertionError("should not be called")

            def get_notebooks(self, owner, ids):
                raise AssertionError("should not be called")

        assert SearchIndex(backend, ExplodingHierarchy()).query(OWNER, "anything") == []


class TestIndexFollowsSaves:
    def test_search_reflects_latest_content(self, backend, search_index):
        store = VersionedDocumentStore(backend)
        page = store.create(OWNER, "Draft", section_id="sec-1")
        assert [h.page.id for h in search_index.query(OWNER, "draft")] == [page.id]

        store.save(page.id, "Groceries", doc("milk"), expected_version=1, editor=OWNER)
        assert search_index.query(OWNER, "draft") == []
        assert [h.page.id for h in search_index.query(OWNER, "groceries mi")] == [page.id]

    def test_title_only_save_keeps_old_search_text(self, backend, search_index):
        store = VersionedDocumentStore(backend)
        page = store.create(OWNER, "Draft", doc("body"), section_id="sec-1")
        store.save(page.id, "Renamed", expected_version=1, editor=OWNER)
        assert [h.page.id for h in search_index.query(OWNER, "draft body")] == [page.id]
        assert search_index.query(OWNER, "renamed") == []
