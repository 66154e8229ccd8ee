"""
Translation key extraction from source files.

Keys are found with a regular expression whose first capturing group is the
key. The default pattern matches ``t("key")`` and ``t('key')``::

    extractor = KeyExtractor()
    files = find_source_files(["./src/**/*.{ts,tsx}"], ["./src/**/*.test.ts"])
    result = extractor.extract(files)
    result.keys          # ['welcome.title', 'nav.home', ...]

A file that cannot be decoded contributes no keys and is listed in
``result.failures``; the rest of the scan carries on.
"""

from __future__ import annotations

import glob
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from transmate.catalog.paths import is_valid_key
from transmate.config import DEFAULT_KEY_PATTERN
from transmate.errors import ConfigError, NoSourceFilesError

logger = logging.getLogger(__name__)

_BRACE = re.compile(r"\{([^{}]*,[^{}]*)\}")


@dataclass
class ExtractionResult:
    """Unique keys found in one scan, in first-seen order.

    Attributes:
        keys: Distinct keys; a key used many times appears once
        files_scanned: Number of candidate files
        failures: File path -> reason for files that could not be read
        invalid_keys: Captures rejected because they are not valid key paths
    """
    keys: List[str] = field(default_factory=list)
    files_scanned: int = 0
    failures: Dict[str, str] = field(default_factory=dict)
    invalid_keys: List[str] = field(default_factory=list)

    @property
    def key_set(self) -> frozenset:
        return frozenset(self.keys)

    def __len__(self) -> int:
        return len(self.keys)


def expand_braces(pattern: str) -> List[str]:
    """Expand shell-style ``{a,b}`` alternatives, which ``glob`` lacks.

    >>> expand_braces("src/**/*.{ts,tsx}")
    ['src/**/*.ts', 'src/**/*.tsx']
    """
    match = _BRACE.search(pattern)
    if not match:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


def expand_globs(patterns: Iterable[str], base_dir: Optional[Path] = None) -> Dict[str, Path]:
    """Resolve glob patterns to files, keyed by resolved path, in match order."""
    files: Dict[str, Path] = {}
    for pattern in patterns:
        for variant in expand_braces(pattern):
            if base_dir is not None and not Path(variant).is_absolute():
                variant = str(Path(base_dir) / variant)
            for match in sorted(glob.glob(variant, recursive=True)):
                path = Path(match)
                if path.is_file():
                    files.setdefault(str(path.resolve()), path)
    return files


def find_source_files(
    source_patterns: Sequence[str],
    ignore_patterns: Sequence[str] = (),
    base_dir: Optional[Path] = None,
) -> List[Path]:
    """Files matched by ``source_patterns`` minus those matched by ``ignore_patterns``.

    The difference is taken over resolved file paths, not pattern text.

    Raises:
        ConfigError: no source patterns were given
        NoSourceFilesError: nothing is left after exclusion
    """
    if not source_patterns:
        raise ConfigError("No source patterns provided")
    candidates = expand_globs(source_patterns, base_dir)
    ignored = expand_globs(ignore_patterns, base_dir) if ignore_patterns else {}
    files = [path for key, path in candidates.items() if key not in ignored]
    if not files:
        raise NoSourceFilesError(
            "No source files found matching the pattern: " + ", ".join(source_patterns)
        )
    logger.debug(
        "%d source files (%d ignored)", len(files), len(candidates) - len(files)
    )
    return files


def compile_key_pattern(pattern: Optional[str] = None) -> re.Pattern:
    """Compile a key pattern, requiring at least one capturing group."""
    source = pattern or DEFAULT_KEY_PATTERN
    try:
        compiled = re.compile(source)
    except re.error as e:
        raise ConfigError(f"Invalid key pattern {source!r}: {e}")
    if compiled.groups < 1:
        raise ConfigError(f"Key pattern {source!r} must contain a capturing group")
    return compiled


def scan_text(text: str, regex: re.Pattern) -> List[str]:
    """All first-group captures in ``text``, duplicates included."""
    return [m.group(1) for m in regex.finditer(text) if m.group(1)]


def scan_file(path: Path, regex: re.Pattern) -> List[str]:
    """Read ``path`` as UTF-8 text and return its captures.

    Raises:
        ValueError: the file looks binary or is not valid UTF-8
        OSError: the file cannot be read
    """
    text = Path(path).read_text(encoding="utf-8")
    if "\x00" in text:
        raise ValueError("binary content")
    return scan_text(text, regex)


class KeyExtractor:
    """Scan source files for translation keys.

    Args:
        pattern: Regex whose first group is the key; defaults to ``t("...")``
        max_workers: Threads used to read files
    """

    def __init__(self, pattern: Union[str, re.Pattern, None] = None, max_workers: int = 4):
        if isinstance(pattern, re.Pattern):
            if pattern.groups < 1:
                raise ConfigError(f"Key pattern {pattern.pattern!r} must contain a capturing group")
            self.regex = pattern
        else:
            self.regex = compile_key_pattern(pattern)
        self.max_workers = max(1, max_workers)

    def _scan(self, path: Path):
        try:
            return path, scan_file(path, self.regex), None
        except (OSError, ValueError) as e:
            # UnicodeDecodeError is a ValueError
            return path, [], str(e)

    def extract(self, file_paths: Iterable[Path]) -> ExtractionResult:
        """Collect the distinct keys used across ``file_paths``."""
        paths = [Path(p) for p in file_paths]
        result = ExtractionResult(files_scanned=len(paths))
        seen = set()

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            # map() yields in submission order, so merging here is deterministic
            for path, captures, error in pool.map(self._scan, paths):
                if error is not None:
                    logger.warning("Failed to parse %s: %s", path, error)
                    result.failures[str(path)] = error
                    continue
                for key in captures:
                    if key in seen:
                        continue
                    seen.add(key)
                    if not is_valid_key(key):
                        logger.warning("Ignoring malformed key %r in %s", key, path)
                        result.invalid_keys.append(key)
                        continue
                    result.keys.append(key)

        logger.debug("Found %d keys in %d files", len(result.keys), len(paths))
        return result
