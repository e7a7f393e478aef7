"""
Section / Notebook lookup for search results.

Two implementations of HierarchyServiceProtocol:
- InMemoryHierarchy: dicts, for tests and single-process embedding
- HttpHierarchyClient: batched lookups against a remote hierarchy API
"""

from __future__ import annotations

import logging
import time
from typing import Iterable
from urllib.parse import quote, urlparse

import httpx

from .errors import HierarchyServiceError, UnauthorizedError
from .types import Notebook, Section

logger = logging.getLogger(__name__)

# Retry config for lookups
MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 0.5  # seconds

DEFAULT_TIMEOUT = 10.0


class InMemoryHierarchy:
    """Sections and notebooks held per owner in dicts."""

    def __init__(self) -> None:
        self._sections: dict[tuple[str, str], Section] = {}
        self._notebooks: dict[tuple[str, str], Notebook] = {}

    def add_notebook(self, owner: str, notebook: Notebook) -> Notebook:
        self._notebooks[(owner, notebook.id)] = notebook
        return notebook

    def add_section(self, owner: str, section: Section) -> Section:
        self._sections[(owner, section.id)] = section
        return section

    def get_sections(self, owner: str, ids: list[str]) -> dict[str, Section]:
        return {
            i: self._sections[(owner, i)]
            for i in ids if (owner, i) in self._sections
        }

    def get_notebooks(self, owner: str, ids: list[str]) -> dict[str, Notebook]:
        return {
            i: self._notebooks[(owner, i)]
            for i in ids if (owner, i) in self._notebooks
        }


class HttpHierarchyClient:
    """HTTP client for the hierarchy API.

    ``GET /v1/users/{owner}/sections?ids=a,b`` -> ``{"sections": [...]}``
    ``GET /v1/users/{owner}/notebooks?ids=a,b`` -> ``{"notebooks": [...]}``
    """

    def __init__(self, api_url: str, api_key: str):
        self._api_url = api_url.rstrip("/")

        # Refuse non-HTTPS for remote APIs (bearer token would be sent in cleartext)
        if not self._api_url.startswith("https://"):
            host = urlparse(self._api_url).hostname or ""
            if host not in ("localhost", "127.0.0.1", "::1"):
                raise ValueError(
                    f"Hierarchy API URL must use HTTPS (got {self._api_url}). "
                    "Use HTTPS to protect API credentials, or use localhost for local development."
                )

        self._client = httpx.Client(
            base_url=self._api_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=DEFAULT_TIMEOUT,
        )

    def get_sections(self, owner: str, ids: list[str]) -> dict[str, Section]:
        """Batched section lookup. Unknown ids are omitted."""
        items = self._fetch(owner, "sections", ids)
        try:
            return {
                s["id"]: Section(
                    id=s["id"],
                    notebook_id=s["notebook_id"],
                    title=s.get("title", ""),
                )
                for s in items
            }
        except (KeyError, TypeError) as e:
            raise HierarchyServiceError(f"Malformed section record: {e}") from e

    def get_notebooks(self, owner: str, ids: list[str]) -> dict[str, Notebook]:
        """Batched notebook lookup. Unknown ids are omitted."""
        items = self._fetch(owner, "notebooks", ids)
        try:
            return {
                n["id"]: Notebook(id=n["id"], title=n.get("title", ""))
                for n in items
            }
        except (KeyError, TypeError) as e:
            raise HierarchyServiceError(f"Malformed notebook record: {e}") from e

    def _fetch(self, owner: str, kind: str, ids: Iterable[str]) -> list:
        """GET one batch, retrying transient failures with backoff."""
        if owner in (".", ".."):
            raise UnauthorizedError("Caller identity could not be established")
        wanted = []
        for i in sorted(set(ids)):
            if "," in i:
                # Cannot be expressed in the comma-separated ids parameter
                logger.warning("Skipping %s id with a comma: %r", kind, i)
                continue
            wanted.append(i)
        if not wanted:
            return []
        path = f"/v1/users/{quote(owner, safe='')}/{kind}"
        params = {"ids": ",".join(wanted)}

        last_error: Exception | None = None
        for attempt in range(MAX_RETRIES):
            try:
                resp = self._client.get(path, params=params)
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status in (401, 403):
                    raise UnauthorizedError(
                        f"Hierarchy service rejected credentials: {status}"
                    ) from e
                if status < 500:
                    raise HierarchyServiceError(
                        f"Hierarchy lookup rejected: {status} {e.response.text}"
                    ) from e
                last_error = e
            except httpx.TransportError as e:
                last_error = e
            except httpx.HTTPError as e:
                raise HierarchyServiceError(f"Hierarchy request failed: {e}") from e
            except ValueError as e:
                raise HierarchyServiceError(f"Bad hierarchy response: {e}") from e
            else:
                if not isinstance(data, dict):
                    raise HierarchyServiceError(
                        f"Bad hierarchy response: expected an object, got {type(data).__name__}"
                    )
                items = data.get(kind, [])
                if not isinstance(items, list):
                    raise HierarchyServiceError(
                        f"Bad hierarchy response: {kind!r} is not a list"
                    )
                return items

            if attempt < MAX_RETRIES - 1:
                delay = RETRY_BACKOFF_BASE * (2 ** attempt)
                logger.warning(
                    "Hierarchy %s lookup attempt %d failed, retrying in %.1fs: %s",
                    kind, attempt + 1, delay, last_error,
                )
                time.sleep(delay)

        raise HierarchyServiceError(
            f"Hierarchy {kind} lookup failed after {MAX_RETRIES} attempts: {last_error}"
        ) from last_error

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
