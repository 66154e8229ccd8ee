"""
Operation reports.

Every engine operation returns an ``OperationReport``: which languages were
written, skipped because of a dry run, left unchanged or failed, and, for
each value that was set, where it came from (``human``, ``ai`` or
``fallback``). Reports are built incrementally with ``ReportBuilder`` and
frozen when the operation ends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


class Origin(str, Enum):
    """Where a written value came from."""
    HUMAN = "human"
    AI = "ai"
    FALLBACK = "fallback"


class LanguageStatus(str, Enum):
    """Outcome of an operation for one language catalog."""
    WRITTEN = "written"
    SKIPPED_DRY_RUN = "skipped-dry-run"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class TranslationEntry:
    """A value set for one (key, language) pair during an operation."""
    key: str
    language: str
    value: str
    origin: Origin
    previous: Optional[str] = None
    error: Optional[str] = None  # Provider error behind a fallback


@dataclass(frozen=True)
class LanguageOutcome:
    language: str
    status: LanguageStatus
    entries: Tuple[TranslationEntry, ...] = ()
    path: Optional[Path] = None
    error: Optional[str] = None

    def count(self, origin: Origin) -> int:
        return sum(1 for e in self.entries if e.origin == origin)

    @property
    def fell_back(self) -> bool:
        return any(e.origin == Origin.FALLBACK for e in self.entries)

    @property
    def origins(self) -> Dict[str, Origin]:
        """Key -> origin of the value set for that key."""
        return {e.key: e.origin for e in self.entries}


@dataclass(frozen=True)
class OperationReport:
    """Immutable result of one engine operation.

    Attributes:
        operation: 'add-key', 'extract-keys', 'sync-all' or 'sync-translations'
        dry_run: Whether writes were suppressed
        languages: Per-language outcomes in config order
        keys: Key paths the operation affected
        summary: One human-readable line
        warnings: Structural conflicts and other non-fatal problems
        stats: Counters specific to the operation (read-only)
    """
    operation: str
    dry_run: bool
    languages: Tuple[LanguageOutcome, ...]
    keys: Tuple[str, ...]
    summary: str
    warnings: Tuple[str, ...] = ()
    stats: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def outcome(self, language: str) -> Optional[LanguageOutcome]:
        for outcome in self.languages:
            if outcome.language == language:
                return outcome
        return None

    def entry(self, language: str, key: str) -> Optional[TranslationEntry]:
        outcome = self.outcome(language)
        if outcome is None:
            return None
        for e in outcome.entries:
            if e.key == key:
                return e
        return None

    @property
    def failed(self) -> List[str]:
        return [o.language for o in self.languages if o.status == LanguageStatus.FAILED]

    @property
    def fell_back(self) -> List[str]:
        return [o.language for o in self.languages if o.fell_back]

    @property
    def files_written(self) -> List[Path]:
        return [
            o.path for o in self.languages
            if o.status == LanguageStatus.WRITTEN and o.path is not None
        ]

    @property
    def ok(self) -> bool:
        return not self.failed


class ReportBuilder:
    """Mutable accumulator owned by a single operation run."""

    def __init__(self, operation: str, dry_run: bool):
        self.operation = operation
        self.dry_run = dry_run
        self._outcomes: Dict[str, LanguageOutcome] = {}
        self._keys: List[str] = []
        self.warnings: List[str] = []
        self.stats: Dict[str, int] = {}

    def add_keys(self, keys) -> None:
        for key in keys:
            if key not in self._keys:
                self._keys.append(key)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def bump(self, name: str, amount: int = 1) -> None:
        self.stats[name] = self.stats.get(name, 0) + amount

    def record(
        self,
        language: str,
        status: LanguageStatus,
        entries=(),
        path: Optional[Path] = None,
        error: Optional[str] = None,
    ) -> LanguageOutcome:
        outcome = LanguageOutcome(
            language=language,
            status=status,
            entries=tuple(entries),
            path=path,
            error=error,
        )
        self._outcomes[language] = outcome
        return outcome

    def failed_languages(self) -> List[str]:
        return [
            lang for lang, outcome in self._outcomes.items()
            if outcome.status == LanguageStatus.FAILED
        ]

    def build(self, summary: str, order=None) -> OperationReport:
        """Freeze the report; ``order`` fixes the language sequence."""
        languages = list(order) if order else list(self._outcomes)
        outcomes = tuple(self._outcomes[lang] for lang in languages if lang in self._outcomes)
        return OperationReport(
            operation=self.operation,
            dry_run=self.dry_run,
            languages=outcomes,
            keys=tuple(self._keys),
            summary=summary,
            warnings=tuple(self.warnings),
            stats=MappingProxyType(dict(self.stats)),
        )
