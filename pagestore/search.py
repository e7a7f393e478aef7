"""
Prefix search over the page search field.

A lexicographic range scan ``[query, query + SENTINEL)`` over each page's
search_text. Because search_text is one concatenated string, this finds
pages whose text *starts with* the query (title first), not pages that
merely contain it.
"""

import logging

from .config import DEFAULT_MIN_QUERY_LENGTH, DEFAULT_SEARCH_LIMIT
from .errors import require_identity
from .protocol import HierarchyServiceProtocol, PageBackendProtocol
from .types import SearchHit, check_text

logger = logging.getLogger(__name__)

# Highest code point: every string starting with the prefix sorts below
# prefix + SENTINEL
SENTINEL = "\U0010ffff"


class SearchIndex:
    """Read path over search_text, joined to Section and Notebook."""

    def __init__(
        self,
        backend: PageBackendProtocol,
        hierarchy: HierarchyServiceProtocol,
        *,
        limit: int = DEFAULT_SEARCH_LIMIT,
        min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
    ) -> None:
        self._backend = backend
        self._hierarchy = hierarchy
        self._limit = limit
        self._min_query_length = min_query_length

    def query(self, owner: str, query_string: str) -> list[SearchHit]:
        """
        Find pages whose search text starts with query_string.

        Args:
            owner: Verified identity whose pages are searched
            query_string: Prefix; matched case-insensitively

        Returns:
            Up to ``limit`` hits ordered by search text. Queries shorter than
            ``min_query_length`` return an empty list, as do pages whose
            section or notebook no longer resolves.

        Raises:
            UnauthorizedError: If owner is empty
            ValueError: If the query is not valid Unicode text
            InternalError: On storage or hierarchy failure
        """
        owner = require_identity(owner)
        if not query_string or len(query_string) < self._min_query_length:
            return []

        check_text(query_string, "query")
        prefix = query_string.lower()
        pages = self._backend.scan_search_text(
            owner, prefix, prefix + SENTINEL, self._limit
        )
        if not pages:
            return []

        section_ids = list(dict.fromkeys(p.section_id for p in pages if p.section_id))
        sections = self._hierarchy.get_sections(owner, section_ids) if section_ids else {}

        notebook_ids = list(dict.fromkeys(s.notebook_id for s in sections.values()))
        notebooks = self._hierarchy.get_notebooks(owner, notebook_ids) if notebook_ids else {}

        hits = []
        for page in pages:
            section = sections.get(page.section_id)
            notebook = notebooks.get(section.notebook_id) if section else None
            if section is None or notebook is None:
                continue
            hits.append(SearchHit(page=page, section=section, notebook=notebook))

        if len(hits) < len(pages):
            logger.debug("Dropped %d orphaned page(s) from search", len(pages) - len(hits))
        return hits
