"""
Catalog trees and their JSON files.

- ``paths``: dotted key paths and copy-on-write tree edits
- ``store``: one JSON file per language, saved atomically
- ``validate``: cross-language consistency check
"""

from transmate.catalog.paths import (
    Catalog,
    KeyPath,
    flatten,
    iter_leaves,
    read,
    to_dotted,
    to_path,
    unflatten,
    write,
)
from transmate.catalog.store import CatalogStore

__all__ = [
    "Catalog",
    "KeyPath",
    "CatalogStore",
    "flatten",
    "iter_leaves",
    "read",
    "to_dotted",
    "to_path",
    "unflatten",
    "write",
]
