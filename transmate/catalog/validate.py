"""
Cross-language catalog consistency check.

Compares every non-default catalog against the default one:

- missing or unreadable files are errors
- a key that is a leaf in one catalog and a branch in the other is an error
- keys missing from, or extra to, a language are warnings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from transmate.catalog.paths import Catalog, flatten
from transmate.catalog.store import CatalogStore
from transmate.config import TransmateConfig
from transmate.errors import CatalogIOError, CatalogNotFoundError

PREVIEW = 3


@dataclass
class LanguageCheck:
    language: str
    missing: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class ConsistencyReport:
    languages: Dict[str, LanguageCheck] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _preview(keys: List[str]) -> str:
    text = ", ".join(keys[:PREVIEW])
    if len(keys) > PREVIEW:
        text += f" and {len(keys) - PREVIEW} more"
    return text


def shape_mismatches(default: Catalog, other: Catalog, prefix: str = "") -> List[str]:
    """Keys whose node kind (leaf or branch) differs between two catalogs."""
    found = []
    for name, node in default.items():
        dotted = f"{prefix}.{name}" if prefix else name
        if name not in other:
            continue
        counterpart = other[name]
        if isinstance(node, dict) and isinstance(counterpart, dict):
            found.extend(shape_mismatches(node, counterpart, dotted))
        elif isinstance(node, dict) != isinstance(counterpart, dict):
            found.append(dotted)
    return found


def check_catalogs(config: TransmateConfig) -> ConsistencyReport:
    """Validate every configured catalog against the default language."""
    store = CatalogStore(config.translation_file_path, base_dir=config.base_dir)
    report = ConsistencyReport()

    try:
        default_catalog = store.load(config.default_language)
    except CatalogIOError as e:
        report.errors.append(f"Default language file is missing or invalid: {e}")
        return report
    default_keys = flatten(default_catalog)

    for language in config.target_languages:
        check = LanguageCheck(language)
        report.languages[language] = check
        try:
            catalog = store.load(language)
        except CatalogNotFoundError:
            check.errors.append(f"Missing translation file for {language}")
            report.errors.extend(check.errors)
            continue
        except CatalogIOError as e:
            check.errors.append(f"Invalid translation file for {language}: {e}")
            report.errors.extend(check.errors)
            continue

        keys = flatten(catalog)
        check.missing = [k for k in default_keys if k not in keys]
        check.extra = [k for k in keys if k not in default_keys]
        for key in shape_mismatches(default_catalog, catalog):
            check.errors.append(f"Type mismatch in {language} for key \"{key}\"")

        report.errors.extend(check.errors)
        if check.missing:
            report.warnings.append(f"{language} is missing translations for: {_preview(check.missing)}")
        if check.extra:
            report.warnings.append(
                f"{language} has extra keys not in default language: {_preview(check.extra)}"
            )

    return report
