"""Tests for TOML configuration and the backend factory."""

from pathlib import Path

import pytest

from pagestore.backend import create_backend, create_hierarchy
from pagestore.config import (
    CONFIG_FILENAME,
    StoreConfig,
    get_default_store_path,
    load_config,
    load_or_create_config,
    save_config,
)
from pagestore.document_store import DocumentStore
from pagestore.hierarchy import HttpHierarchyClient, InMemoryHierarchy
from pagestore.memory_store import MemoryDocumentStore


class TestStoreConfig:
    def test_defaults(self, tmp_path):
        config = StoreConfig(path=tmp_path)
        assert config.backend == "sqlite"
        assert config.initial_version == 1
        assert config.retention == 20
        assert config.fetch_window == 50
        assert config.search_limit == 20
        assert config.min_query_length == 2
        assert config.preserve_conflicting_edits is False

    @pytest.mark.parametrize("kwargs", [
        {"retention": 20, "fetch_window": 20},
        {"retention": 50},
        {"retention": -1},
        {"initial_version": -1},
        {"search_limit": 0},
        {"min_query_length": 0},
    ])
    def test_invalid_values(self, tmp_path, kwargs):
        with pytest.raises(ValueError):
            StoreConfig(path=tmp_path, **kwargs)


class TestLoadSave:
    def test_round_trip(self, tmp_path):
        config = StoreConfig(
            path=tmp_path, retention=5, fetch_window=12, search_limit=7,
            preserve_conflicting_edits=True, hierarchy_url="https://h.example.com",
        )
        save_config(config)
        loaded = load_config(tmp_path)
        assert loaded.retention == 5
        assert loaded.fetch_window == 12
        assert loaded.search_limit == 7
        assert loaded.preserve_conflicting_edits is True
        assert loaded.hierarchy_url == "https://h.example.com"
        assert loaded.created == config.created

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_newer_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[store]\nversion = 99\n")
        with pytest.raises(ValueError, match="newer"):
            load_config(tmp_path)

    def test_invalid_window_in_file(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text(
            "[revisions]\nretention = 10\nfetch_window = 10\n"
        )
        with pytest.raises(ValueError, match="fetch_window"):
            load_config(tmp_path)

    def test_partial_file_uses_defaults(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[search]\nlimit = 3\n")
        config = load_config(tmp_path)
        assert config.search_limit == 3
        assert config.retention == 20

    def test_load_or_create_writes_file(self, tmp_path):
        store_dir = tmp_path / "new-store"
        config = load_or_create_config(store_dir)
        assert (store_dir / CONFIG_FILENAME).exists()
        assert load_or_create_config(store_dir).created == config.created

    def test_api_key_from_environment(self, tmp_path, monkeypatch):
        save_config(StoreConfig(path=tmp_path, hierarchy_api_key="from-file"))
        monkeypatch.setenv("PAGESTORE_HIERARCHY_API_KEY", "from-env")
        assert load_config(tmp_path).hierarchy_api_key == "from-env"

    def test_default_store_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PAGESTORE_STORE_PATH", str(tmp_path))
        assert get_default_store_path() == tmp_path.resolve()
        monkeypatch.delenv("PAGESTORE_STORE_PATH")
        assert get_default_store_path() == Path.home() / ".pagestore"


class TestBackendFactory:
    def test_sqlite(self, tmp_path):
        backend = create_backend(StoreConfig(path=tmp_path))
        try:
            assert isinstance(backend, DocumentStore)
            assert (tmp_path / "pages.db").exists()
        finally:
            backend.close()

    def test_memory(self, tmp_path):
        assert isinstance(create_backend(StoreConfig(path=tmp_path, backend="memory")),
                          MemoryDocumentStore)

    def test_unknown(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown backend"):
            create_backend(StoreConfig(path=tmp_path, backend="nonexistent"))

    def test_hierarchy_selection(self, tmp_path):
        assert isinstance(create_hierarchy(StoreConfig(path=tmp_path)), InMemoryHierarchy)
        client = create_hierarchy(
            StoreConfig(path=tmp_path, hierarchy_url="http://localhost:9000")
        )
        try:
            assert isinstance(client, HttpHierarchyClient)
        finally:
            client.close()
