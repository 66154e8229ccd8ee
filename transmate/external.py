"""
Import translations from an external spreadsheet.

The source is a CSV file, local or served over HTTP, with a ``key`` column
and one column per language code::

    key,en,fr
    nav.home,Home,Accueil
    nav.about,About,À propos

Rows are merged into the matching catalogs with one of two strategies:
``override`` replaces existing values, ``keep-existing`` only fills gaps.
Languages in the sheet that the project does not configure are skipped.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Dict, List, Optional

import requests

from transmate.catalog.paths import read, to_path
from transmate.config import EXTERNAL_FORMATS, MERGE_STRATEGIES, TransmateConfig
from transmate.errors import CatalogIOError, ConfigError, InvalidKeyError, TransmateError
from transmate.report import LanguageStatus, OperationReport, Origin, ReportBuilder, TranslationEntry
from transmate.sync import stage_value, store_for

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class ExternalSourceError(TransmateError):
    """The external source could not be fetched or parsed."""


def fetch_rows(source: str, base_dir: Optional[Path] = None) -> List[List[str]]:
    """Read CSV rows from a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        try:
            response = requests.get(source, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExternalSourceError(f"Failed to fetch {source}: {e}") from e
        response.encoding = response.encoding or "utf-8"
        text = response.text
    else:
        path = Path(source)
        if base_dir is not None and not path.is_absolute():
            path = Path(base_dir) / path
        if not path.is_file():
            raise ExternalSourceError(f"File not found: {source}")
        try:
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise ExternalSourceError(f"Failed to read {source}: {e}") from e
    return list(csv.reader(io.StringIO(text)))


def parse_csv_translations(rows: List[List[str]]) -> Dict[str, Dict[str, str]]:
    """Turn CSV rows into ``{language: {key: value}}``.

    Empty cells are skipped, so a blank translation never erases a value.
    """
    if len(rows) < 2:
        raise ExternalSourceError("CSV file must have at least a header row and one data row")

    headers = [h.strip() for h in rows[0]]
    lowered = [h.lower() for h in headers]
    if "key" not in lowered:
        raise ExternalSourceError('CSV file must have a "key" column')
    key_index = lowered.index("key")

    result: Dict[str, Dict[str, str]] = {
        header: {} for i, header in enumerate(headers) if i != key_index and header
    }
    for row in rows[1:]:
        if len(row) <= key_index or not row[key_index].strip():
            continue
        key = row[key_index].strip()
        for i, header in enumerate(headers):
            if i == key_index or not header or i >= len(row):
                continue
            if row[i]:
                result[header][key] = row[i]
    return result


def sync_translations(
    config: TransmateConfig,
    source: Optional[str] = None,
    format: Optional[str] = None,
    merge: Optional[str] = None,
    dry_run: Optional[bool] = None,
) -> OperationReport:
    """Merge an external CSV into the project catalogs.

    Raises:
        ConfigError: no source, unsupported format or merge strategy
        ExternalSourceError: the source cannot be fetched or parsed, or lacks
            the default language
    """
    dry_run = config.dry_run if dry_run is None else dry_run
    ext = config.external_sync
    source = source or (ext.url if ext else "")
    if not source:
        raise ConfigError(
            "No external source URL provided. Please provide a source URL with --source option."
        )
    format = (format or (ext.format if ext else "csv")).lower()
    if format not in EXTERNAL_FORMATS:
        raise ConfigError(
            f"Unsupported format: {format}. Supported formats are: {', '.join(EXTERNAL_FORMATS)}"
        )
    merge = (merge or (ext.merge_strategy if ext else "override")).lower()
    if merge not in MERGE_STRATEGIES:
        raise ConfigError(
            f"Unsupported merge strategy: {merge}. "
            f"Supported strategies are: {', '.join(MERGE_STRATEGIES)}"
        )

    logger.info("Syncing translations from %s (%s)", source, format)
    sheet = parse_csv_translations(fetch_rows(source, base_dir=config.base_dir))
    if config.default_language not in sheet:
        raise ExternalSourceError(
            f'Default language "{config.default_language}" not found in the external source'
        )

    builder = ReportBuilder("sync-translations", dry_run)
    store = store_for(config)
    for language in sheet:
        if language not in config.languages:
            builder.warn(f'Language "{language}" from external source is not configured in your project')
            logger.warning('Language "%s" from external source is not configured', language)

    for language in config.languages:
        if language not in sheet:
            continue
        try:
            catalog = store.load(language, create=True)
        except CatalogIOError as e:
            logger.error("Failed to process %s translations: %s", language, e)
            builder.record(language, LanguageStatus.FAILED, path=store.path_for(language), error=str(e))
            continue

        entries = []
        for key, value in sheet[language].items():
            try:
                path = to_path(key)
            except InvalidKeyError as e:
                builder.warn(str(e))
                continue
            existing = read(catalog, path)
            if existing is not None and (merge == "keep-existing" or existing == value):
                builder.bump("skipped")
                continue
            builder.bump("updated" if existing is not None else "added")
            catalog = stage_value(catalog, path, value, language, builder.warnings)
            entries.append(TranslationEntry(key, language, value, Origin.HUMAN, existing))
        builder.add_keys(e.key for e in entries)

        if not entries:
            builder.record(language, LanguageStatus.UNCHANGED, path=store.path_for(language))
        elif dry_run:
            builder.record(language, LanguageStatus.SKIPPED_DRY_RUN, entries, path=store.path_for(language))
        else:
            try:
                path = store.save(language, catalog)
            except CatalogIOError as e:
                builder.record(language, LanguageStatus.FAILED, entries, path=store.path_for(language), error=str(e))
                continue
            builder.record(language, LanguageStatus.WRITTEN, entries, path=path)
        logger.info("%s: %d values merged", language, len(entries))

    added = builder.stats.get("added", 0)
    updated = builder.stats.get("updated", 0)
    skipped = builder.stats.get("skipped", 0)
    if dry_run:
        summary = (
            f"Dry run completed. Would add {added} keys, update {updated} keys, "
            f"and skip {skipped} keys."
        )
    else:
        summary = f"Sync completed. Added {added} keys, updated {updated} keys, and skipped {skipped} keys."
    failed = builder.failed_languages()
    if failed:
        summary += f" Failed: {', '.join(failed)}"
    return builder.build(summary, order=config.languages)
