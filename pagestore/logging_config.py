"""
Logging configuration for pagestore.

The library only creates module loggers; handlers are attached here, on
request, by the embedding application or by PageStore.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


def enable_debug_mode() -> None:
    """Enable debug-level logging to stderr."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("pagestore").setLevel(logging.DEBUG)
    logging.getLogger("httpx").setLevel(logging.DEBUG)


def configure_ops_log(store_path) -> logging.Handler:
    """Configure a persistent operations log for a page store.

    Writes to {store_path}/pagestore-ops.log using a rotating file handler
    (1MB max, 3 backups). Returns the handler so it can be removed on close().
    """
    log_path = Path(store_path) / "pagestore-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    store_logger = logging.getLogger("pagestore")
    store_logger.addHandler(handler)
    # Let INFO through even when the application runs quieter
    if store_logger.level == logging.NOTSET or store_logger.level > logging.INFO:
        store_logger.setLevel(logging.INFO)

    return handler


def remove_ops_log(handler: logging.Handler) -> None:
    """Detach and close a handler returned by configure_ops_log."""
    logging.getLogger("pagestore").removeHandler(handler)
    handler.close()
