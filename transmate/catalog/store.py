"""
On-disk catalog storage: one JSON document per language.

The store resolves ``translationFilePath`` templates such as
``./src/locales/{language}.json``, validates what it loads, and writes
through a temporary file that is renamed over the target so an interrupted
save never leaves a truncated catalog behind.

The store knows nothing about dry runs. Callers decide whether to call
``save``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict

from transmate.catalog.paths import Catalog, find_invalid_node
from transmate.errors import CatalogIOError, CatalogNotFoundError, InvalidCatalogError

logger = logging.getLogger(__name__)

LANGUAGE_PLACEHOLDER = "{language}"

# One lock per resolved catalog path, shared by every store in the process
_path_locks: Dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.Lock()
        return lock


def dump_catalog(catalog: Catalog) -> str:
    """Serialize a catalog the way it is written to disk."""
    return json.dumps(catalog, ensure_ascii=False, indent=2) + "\n"


class CatalogStore:
    """Load and persist per-language catalogs.

    Usage:
        store = CatalogStore("./locales/{language}.json")
        catalog = store.load("fr", create=True)
        store.save("fr", catalog)
    """

    def __init__(self, path_template: str, base_dir: Path | None = None):
        if LANGUAGE_PLACEHOLDER not in path_template:
            raise ValueError(
                f"Translation file path must contain {LANGUAGE_PLACEHOLDER}: {path_template}"
            )
        self.path_template = path_template
        self.base_dir = Path(base_dir) if base_dir else None

    def path_for(self, language: str) -> Path:
        path = Path(self.path_template.replace(LANGUAGE_PLACEHOLDER, language))
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path
        return path

    def load(self, language: str, create: bool = False) -> Catalog:
        """Load the catalog for ``language``.

        Args:
            language: Language code substituted into the path template
            create: Return an empty catalog instead of failing when the file
                does not exist

        Raises:
            CatalogNotFoundError: file missing and ``create`` is false
            InvalidCatalogError: file is not JSON or not a tree of strings
            CatalogIOError: any other read failure
        """
        path = self.path_for(language)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            if create:
                logger.debug("Translation file not found: %s, starting empty", path)
                return {}
            raise CatalogNotFoundError(path)
        except UnicodeDecodeError as e:
            raise InvalidCatalogError(path, f"not valid UTF-8 ({e.reason})")
        except OSError as e:
            raise CatalogIOError(path, e.strerror or str(e))

        if not text.strip():
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidCatalogError(path, f"invalid JSON at line {e.lineno}: {e.msg}")

        invalid = find_invalid_node(data)
        if invalid:
            key, type_name = invalid
            raise InvalidCatalogError(
                path, f"value at {key!r} is {type_name}; only strings and objects are allowed"
            )
        return data

    def save(self, language: str, catalog: Catalog) -> Path:
        """Write ``catalog`` for ``language`` and return the file path.

        Parent directories are created. Writes for the same file are
        serialized across threads.
        """
        path = self.path_for(language)
        content = dump_catalog(catalog)
        with _lock_for(path):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                self._replace(path, content)
            except OSError as e:
                raise CatalogIOError(path, f"failed to write: {e.strerror or e}")
        logger.debug("Wrote %s", path)
        return path

    @staticmethod
    def _replace(path: Path, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
