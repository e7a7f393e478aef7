"""
Configuration management for page stores.

The configuration is stored as a TOML file in the store directory.
It selects the storage backend and sets the tunables for versioning,
revision retention, search and the hierarchy service.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import tomli_w  # tomllib is read-only


CONFIG_FILENAME = "pagestore.toml"
CONFIG_VERSION = 1

DEFAULT_INITIAL_VERSION = 1
DEFAULT_RETENTION = 20
# Look-ahead when pruning; must exceed the retention bound so a burst of
# captures is fully visible in one fetch
DEFAULT_FETCH_WINDOW = 50
DEFAULT_SEARCH_LIMIT = 20
DEFAULT_MIN_QUERY_LENGTH = 2


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    backend: str = "sqlite"

    # [documents]
    initial_version: int = DEFAULT_INITIAL_VERSION
    preserve_conflicting_edits: bool = False

    # [revisions]
    retention: int = DEFAULT_RETENTION
    fetch_window: int = DEFAULT_FETCH_WINDOW

    # [search]
    search_limit: int = DEFAULT_SEARCH_LIMIT
    min_query_length: int = DEFAULT_MIN_QUERY_LENGTH

    # [hierarchy]
    hierarchy_url: str = ""
    hierarchy_api_key: str = ""

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        validate_config(self)

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def validate_config(config: StoreConfig) -> None:
    """
    Check tunables for consistency.

    Raises:
        ValueError: If a value is out of range
    """
    if config.initial_version < 0:
        raise ValueError(f"initial_version must be >= 0 (got {config.initial_version})")
    if config.retention < 0:
        raise ValueError(f"retention must be >= 0 (got {config.retention})")
    if config.fetch_window <= config.retention:
        raise ValueError(
            f"fetch_window ({config.fetch_window}) must exceed "
            f"retention ({config.retention})"
        )
    if config.search_limit < 1:
        raise ValueError(f"search limit must be >= 1 (got {config.search_limit})")
    if config.min_query_length < 1:
        raise ValueError(
            f"min_query_length must be >= 1 (got {config.min_query_length})"
        )


def get_default_store_path() -> Path:
    """Store directory: PAGESTORE_STORE_PATH, else ~/.pagestore."""
    env_path = os.environ.get("PAGESTORE_STORE_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / ".pagestore"


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    store_path = Path(store_path)
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store: dict[str, Any] = data.get("store", {})
    documents: dict[str, Any] = data.get("documents", {})
    revisions: dict[str, Any] = data.get("revisions", {})
    search: dict[str, Any] = data.get("search", {})
    hierarchy: dict[str, Any] = data.get("hierarchy", {})

    # Validate version
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    return StoreConfig(
        path=store_path,
        version=version,
        created=store.get("created", ""),
        backend=store.get("backend", "sqlite"),
        initial_version=documents.get("initial_version", DEFAULT_INITIAL_VERSION),
        preserve_conflicting_edits=documents.get("preserve_conflicting_edits", False),
        retention=revisions.get("retention", DEFAULT_RETENTION),
        fetch_window=revisions.get("fetch_window", DEFAULT_FETCH_WINDOW),
        search_limit=search.get("limit", DEFAULT_SEARCH_LIMIT),
        min_query_length=search.get("min_query_length", DEFAULT_MIN_QUERY_LENGTH),
        hierarchy_url=hierarchy.get("url", ""),
        hierarchy_api_key=os.environ.get(
            "PAGESTORE_HIERARCHY_API_KEY", hierarchy.get("api_key", "")
        ),
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    # Ensure directory exists
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "backend": config.backend,
        },
        "documents": {
            "initial_version": config.initial_version,
            "preserve_conflicting_edits": config.preserve_conflicting_edits,
        },
        "revisions": {
            "retention": config.retention,
            "fetch_window": config.fetch_window,
        },
        "search": {
            "limit": config.search_limit,
            "min_query_length": config.min_query_length,
        },
        "hierarchy": {
            "url": config.hierarchy_url,
            "api_key": config.hierarchy_api_key,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    store_path = Path(store_path)
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    else:
        config = StoreConfig(path=store_path)
        save_config(config)
        return config
