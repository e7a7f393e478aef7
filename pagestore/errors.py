"""
Error taxonomy and error logging for pagestore.

Version conflicts are not errors: they come back as ``Conflict`` results.
Everything here is raised.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class PageStoreError(Exception):
    """Base class for pagestore errors."""


class NotFoundError(PageStoreError):
    """Referenced page or revision is absent or not accessible to the caller."""


class UnauthorizedError(PageStoreError):
    """Caller identity is missing or was rejected."""


class InternalError(PageStoreError):
    """Storage or collaborator failure."""


class StorageError(InternalError):
    """The backing store failed to read or write."""


class HierarchyServiceError(InternalError):
    """The hierarchy service could not be reached or gave a bad answer."""


def require_identity(identity: str) -> str:
    """Return the identity, or raise UnauthorizedError if it is empty."""
    if not identity or not isinstance(identity, str):
        raise UnauthorizedError("Caller identity could not be established")
    try:
        identity.encode("utf-8")
    except UnicodeEncodeError as e:
        raise UnauthorizedError("Caller identity is not valid Unicode text") from e
    return identity


def _error_log_path() -> Path:
    """Resolve error log path, respecting PAGESTORE_STORE_PATH."""
    store = os.environ.get("PAGESTORE_STORE_PATH")
    if store:
        return Path(store) / "pagestore-errors.log"
    return Path.home() / ".pagestore" / "pagestore-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Request handlers call this before showing a generic failure message.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., operation name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}] {type(exc).__name__}")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # error log is best-effort
    return log_path
