"""
Dotted key paths and nested catalog trees.

A catalog is a tree whose branches are ``dict`` objects and whose leaves are
strings::

    {"welcome": {"title": "Hello", "body": "..."}}

Key paths address leaves with dots (``welcome.title``). Every function here
treats its input catalog as read-only: ``write`` copies the dicts along the
path it touches and shares the untouched subtrees with the original.

Example:
    >>> cat = write({}, to_path("a.b"), "Hello")
    >>> read(cat, to_path("a.b"))
    'Hello'
    >>> flatten(cat)
    {'a.b': 'Hello'}
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple, Union

from transmate.errors import InvalidKeyError

# Recursive node type: a leaf string or a branch mapping names to nodes
TranslationNode = Union[str, Dict[str, "TranslationNode"]]
Catalog = Dict[str, TranslationNode]
KeyPath = Tuple[str, ...]

SEPARATOR = "."


def to_path(dotted: str) -> KeyPath:
    """Split a dotted key into its segments.

    Raises:
        InvalidKeyError: if the key is empty or has an empty segment
            (leading, trailing or doubled dots).
    """
    if not isinstance(dotted, str) or not dotted.strip():
        raise InvalidKeyError(str(dotted), "key is empty")
    segments = tuple(dotted.split(SEPARATOR))
    if any(not s for s in segments):
        raise InvalidKeyError(dotted, "empty segment")
    return segments


def to_dotted(path: KeyPath) -> str:
    return SEPARATOR.join(path)


def is_valid_key(dotted: str) -> bool:
    try:
        to_path(dotted)
    except InvalidKeyError:
        return False
    return True


def read(catalog: Catalog, path: KeyPath) -> Optional[str]:
    """Return the leaf string at ``path`` or None.

    None is returned both when the path is absent and when it ends on a branch.
    """
    node: TranslationNode = catalog
    for segment in path:
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node if isinstance(node, str) else None


def find_conflict(catalog: Catalog, path: KeyPath) -> Optional[str]:
    """Return the dotted key whose content a write to ``path`` would destroy.

    Two shapes conflict: an intermediate segment that currently holds a leaf
    (the leaf becomes a branch) and a final segment that currently holds a
    non-empty branch (the branch becomes a leaf).
    """
    node: TranslationNode = catalog
    for depth, segment in enumerate(path):
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
        last = depth == len(path) - 1
        if not last and isinstance(node, str):
            return to_dotted(path[: depth + 1])
        if last and isinstance(node, dict) and node:
            return to_dotted(path)
    return None


def write(catalog: Catalog, path: KeyPath, value: str) -> Catalog:
    """Return a new catalog with ``value`` stored at ``path``.

    Missing intermediate branches are created. A leaf found where a branch is
    needed, or a branch found at the final segment, is replaced; callers
    should consult ``find_conflict`` first to report that.
    """
    if not path:
        raise InvalidKeyError("", "key is empty")
    if not isinstance(value, str):
        raise TypeError(f"Translation values must be strings, got {type(value).__name__}")

    head, rest = path[0], path[1:]
    updated = dict(catalog)
    if not rest:
        updated[head] = value
        return updated

    child = catalog.get(head)
    if not isinstance(child, dict):
        child = {}
    updated[head] = write(child, rest, value)
    return updated


def iter_leaves(catalog: Catalog, prefix: KeyPath = ()) -> Iterator[Tuple[KeyPath, str]]:
    """Yield (path, value) pairs depth-first in insertion order."""
    for name, node in catalog.items():
        path = prefix + (name,)
        if isinstance(node, dict):
            yield from iter_leaves(node, path)
        else:
            yield path, node


def flatten(catalog: Catalog) -> Dict[str, str]:
    """Flatten a catalog to ``{"dotted.key": value}``, preserving order."""
    return {to_dotted(path): value for path, value in iter_leaves(catalog)}


def unflatten(flat: Dict[str, str]) -> Catalog:
    """Inverse of ``flatten``."""
    catalog: Catalog = {}
    for dotted, value in flat.items():
        catalog = write(catalog, to_path(dotted), value)
    return catalog


def find_invalid_node(data, prefix: str = "") -> Optional[Tuple[str, str]]:
    """Locate the first node that is neither a string nor a string-keyed dict.

    Returns:
        ``(dotted_key, type_name)`` of the offending node, or None if the tree
        is a valid catalog.
    """
    if not isinstance(data, dict):
        return (prefix or "<root>", type(data).__name__)
    for name, node in data.items():
        dotted = f"{prefix}{SEPARATOR}{name}" if prefix else str(name)
        if isinstance(node, str):
            continue
        if isinstance(node, dict):
            found = find_invalid_node(node, dotted)
            if found:
                return found
            continue
        return (dotted, type(node).__name__)
    return None
