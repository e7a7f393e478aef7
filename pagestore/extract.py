"""
Text extraction for the search field.

Flattens a content tree into the lowercase string that prefix search
scans. Pure functions, no state.
"""

from typing import Any

from .types import ContainerNode, TextNode


def _children(node: Any):
    """Return a node's children, or None if it is not a container."""
    if isinstance(node, ContainerNode):
        if isinstance(node.children, (list, tuple)):
            return node.children
        return None
    if isinstance(node, dict):
        content = node.get("content")
        if isinstance(content, list):
            return content
    return None


def _leaf_text(node: Any) -> str:
    if isinstance(node, TextNode):
        return node.text if isinstance(node.text, str) else ""
    if isinstance(node, dict) and node.get("type") == "text":
        text = node.get("text")
        return text if isinstance(text, str) else ""
    return ""


def extract_text(node: Any) -> str:
    """
    Concatenate every text leaf in document order, each followed by a space.

    Accepts parsed nodes (``TextNode`` / ``ContainerNode``) or raw editor
    JSON. Unknown or malformed nodes contribute nothing; this never raises,
    however deep the tree.

    Example:
        >>> extract_text({"type": "doc", "content": [
        ...     {"type": "text", "text": "Hello"},
        ...     {"type": "text", "text": "World"}]})
        'Hello World '
    """
    parts: list[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        text = _leaf_text(current)
        if text:
            parts.append(text + " ")
            continue
        children = _children(current)
        if children:
            # Reversed so the leftmost child is popped first
            stack.extend(reversed(children))
    return "".join(parts)


def build_search_text(title: str, content: Any) -> str:
    """Combined index string: lowercase(trim(title + " " + text))."""
    return (f"{title or ''} {extract_text(content)}").strip().lower()
