"""
Data types for the page persistence core.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union


# Reasons attached to revisions captured by the system rather than the user
REASON_CONFLICT = "conflict-save-attempt"
REASON_BEFORE_RESTORE = "before-restore"


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS.ffffff.

    All timestamps are UTC, stored without timezone suffix. Microseconds
    are kept so revisions captured in quick succession still sort.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")


# -----------------------------------------------------------------------------
# Content tree
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TextNode:
    """A leaf carrying inline text."""
    text: str


@dataclass(frozen=True)
class ContainerNode:
    """A node with ordered children (paragraph, heading, list, doc...)."""
    type: str = "doc"
    children: tuple = ()


ContentNode = Union[TextNode, ContainerNode]


def parse_node(obj: Any) -> Optional[ContentNode]:
    """
    Convert editor JSON into a content node.

    Accepts TipTap-style mappings: ``{"type": "text", "text": "..."}`` for
    leaves and ``{"type": "...", "content": [...]}`` for containers.
    Already-parsed nodes are returned unchanged. Anything else is None.
    """
    if isinstance(obj, (TextNode, ContainerNode)):
        return obj
    if not isinstance(obj, dict):
        return None
    if obj.get("type") == "text" and isinstance(obj.get("text"), str):
        return TextNode(obj["text"])
    children = obj.get("content")
    if isinstance(children, list):
        return ContainerNode(
            type=str(obj.get("type") or ""),
            children=tuple(parse_node(c) for c in children),
        )
    return None


def node_to_json(node: Any) -> Any:
    """Convert content nodes back to editor JSON for storage.

    Parsed nodes are converted wherever they appear, including inside
    mappings and lists. Other JSON values pass through untouched.
    """
    if isinstance(node, TextNode):
        return {"type": "text", "text": node.text}
    if isinstance(node, ContainerNode):
        children = node.children if isinstance(node.children, (list, tuple)) else ()
        return {
            "type": node.type,
            "content": [node_to_json(c) for c in children],
        }
    if isinstance(node, dict):
        return {k: node_to_json(v) for k, v in node.items()}
    if isinstance(node, (list, tuple)):
        return [node_to_json(v) for v in node]
    return node


def check_text(value: str, what: str = "text") -> str:
    """Reject strings that cannot be stored as UTF-8 (lone surrogates)."""
    if not isinstance(value, str):
        return value
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"{what} is not valid Unicode text: {e}") from e
    return value


def storable_content(content: Any) -> Any:
    """
    Editor JSON for content, checked to be storable by every backend.

    Raises:
        ValueError: If the content holds values JSON cannot represent,
            or text that is not valid UTF-8
    """
    try:
        data = node_to_json(content)
        json.dumps(data, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as e:
        raise ValueError(f"Content cannot be stored: {e}") from e
    return data


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------

@dataclass
class PageRecord:
    """
    A page as stored by a backend.

    ``content`` is editor JSON. ``search_text`` is derived from title and
    content and is only ever written together with them.
    """
    id: str
    owner: str
    title: str
    content: Any
    version: int
    search_text: str
    created_at: str
    updated_at: str
    last_edited_by: str
    section_id: str = ""
    canvas_color: Optional[str] = None


@dataclass(frozen=True)
class RevisionRecord:
    """An immutable point-in-time copy of a page."""
    id: str
    owner: str
    document_id: str
    title: str
    snapshot: Any
    created_at: str
    author_id: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class Section:
    id: str
    notebook_id: str
    title: str = ""


@dataclass(frozen=True)
class Notebook:
    id: str
    title: str = ""


@dataclass(frozen=True)
class SearchHit:
    """A search match joined to its parent hierarchy."""
    page: PageRecord
    section: Section
    notebook: Notebook


# -----------------------------------------------------------------------------
# Save results
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Accepted:
    """The save was committed."""
    new_version: int
    search_text: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Conflict:
    """
    The save was rejected because the page moved on.

    Carries the server state so the caller can reconcile and resubmit
    with ``current_version`` as the new expected version.
    """
    current_version: int
    current_title: str
    current_content: Any = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return False


SaveResult = Union[Accepted, Conflict]
