"""
Catalog synchronization engine.

Three operations keep per-language catalogs in step with each other and with
the source code:

- ``add_key``: set one key in every language, optionally machine-translated
- ``extract_keys``: find keys used in source that the default catalog lacks
- ``sync_all``: translate every default-language key missing elsewhere

Each run validates its inputs before reading anything, stages all changes in
memory, and only then persists them unless it is a dry run. A provider
failure for one language falls back to the default-language value and never
stops the other languages; a catalog that cannot be read or written marks
that language as failed and the run moves on.

Usage:
    engine = SyncOrchestrator()
    report = engine.add_key(config, "nav.home", "Home", translate=True)
    print(report.summary)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from transmate.catalog.paths import (
    Catalog,
    KeyPath,
    find_conflict,
    iter_leaves,
    read,
    to_dotted,
    to_path,
    write,
)
from transmate.catalog.store import CatalogStore
from transmate.config import TransmateConfig
from transmate.errors import CatalogIOError, ConfigError, ProviderRequestError
from transmate.extract import KeyExtractor, find_source_files
from transmate.report import (
    LanguageOutcome,
    LanguageStatus,
    OperationReport,
    Origin,
    ReportBuilder,
    TranslationEntry,
)
from transmate.translate.provider import Credentials, TranslationProvider

logger = logging.getLogger(__name__)


def store_for(config: TransmateConfig) -> CatalogStore:
    return CatalogStore(config.translation_file_path, base_dir=config.base_dir)


def is_missing(catalog: Catalog, path: KeyPath) -> bool:
    """A key is missing when absent, not a leaf, or an empty string."""
    return not read(catalog, path)


def parse_languages(config: TransmateConfig, language: Optional[str]) -> Tuple[str, ...]:
    """Translation targets: all non-default languages, or the listed subset.

    ``language`` may be a comma-separated list. Order always follows the
    config.
    """
    targets = config.target_languages
    if not language:
        return targets
    requested = {code.strip() for code in language.split(",") if code.strip()}
    selected = tuple(lang for lang in targets if lang in requested)
    if not selected:
        raise ConfigError(
            f"No valid languages specified. Available languages: {', '.join(targets)}"
        )
    return selected


def stage_value(
    catalog: Catalog,
    path: KeyPath,
    value: str,
    language: str,
    warnings: List[str],
) -> Catalog:
    """Write ``value`` into a copy of ``catalog``, noting structural conflicts."""
    conflict = find_conflict(catalog, path)
    if conflict is not None:
        message = (
            f"{language}: writing '{to_dotted(path)}' replaces existing content at '{conflict}'"
        )
        logger.warning(message)
        warnings.append(message)
    return write(catalog, path, value)


class SyncOrchestrator:
    """Runs add-key, extract-keys and sync-all against a project config.

    Args:
        provider: Translation adapter; a default ``TranslationProvider`` is
            created when omitted
        extractor_workers: Threads used to scan source files
    """

    def __init__(
        self,
        provider: Optional[TranslationProvider] = None,
        extractor_workers: int = 4,
    ):
        self.provider = provider or TranslationProvider()
        self.extractor_workers = extractor_workers

    # ------------------------------------------------------------------
    # shared steps
    # ------------------------------------------------------------------

    @staticmethod
    def _persist(
        store: CatalogStore,
        builder: ReportBuilder,
        language: str,
        catalog: Catalog,
        entries: List[TranslationEntry],
    ) -> LanguageOutcome:
        path = store.path_for(language)
        if not entries:
            return builder.record(language, LanguageStatus.UNCHANGED, path=path)
        if builder.dry_run:
            return builder.record(language, LanguageStatus.SKIPPED_DRY_RUN, entries, path=path)
        try:
            store.save(language, catalog)
        except CatalogIOError as e:
            logger.error("Failed to save %s translations: %s", language, e)
            return builder.record(language, LanguageStatus.FAILED, entries, path=path, error=str(e))
        return builder.record(language, LanguageStatus.WRITTEN, entries, path=path)

    def _translate_or_fallback(
        self,
        config: TransmateConfig,
        text: str,
        language: str,
        key: str,
        credentials: Optional[Credentials] = None,
    ) -> Tuple[str, Origin, Optional[str]]:
        try:
            translated = self.provider.translate(
                text, config.default_language, language, config, credentials=credentials
            )
        except ProviderRequestError as e:
            logger.warning("%s: translation of '%s' failed, using default value: %s", language, key, e)
            return text, Origin.FALLBACK, str(e)
        return translated, Origin.AI, None

    # ------------------------------------------------------------------
    # add-key
    # ------------------------------------------------------------------

    def add_key(
        self,
        config: TransmateConfig,
        key: str,
        value: str = "",
        translate: bool = False,
        dry_run: Optional[bool] = None,
    ) -> OperationReport:
        """Add ``key`` to every language catalog.

        The default language gets ``value`` (or the key itself when empty).
        Other languages get a provider translation when ``translate`` is set
        and a value was given; otherwise, or when the provider fails for that
        language, they get the default value as a fallback.

        Raises:
            InvalidKeyError: malformed key, before any file is read
            ProviderDisabledError, MissingCredentialError: ``translate`` was
                requested but the provider is not usable
            CatalogIOError: the default-language catalog cannot be read
        """
        path = to_path(key)
        dry_run = config.dry_run if dry_run is None else dry_run
        credentials = self.provider.check_ready(config) if translate else None

        builder = ReportBuilder("add-key", dry_run)
        builder.add_keys([key])
        store = store_for(config)
        default = config.default_language
        default_value = value or key

        logger.info("Adding key '%s' to translation files", key)

        staged: Dict[str, Tuple[Catalog, List[TranslationEntry]]] = {}
        catalog = store.load(default, create=True)
        previous = read(catalog, path)
        catalog = stage_value(catalog, path, default_value, default, builder.warnings)
        staged[default] = (
            catalog,
            [TranslationEntry(key, default, default_value, Origin.HUMAN, previous)],
        )
        logger.info("%s: %r", default, default_value)

        for language in config.target_languages:
            try:
                catalog = store.load(language, create=True)
            except CatalogIOError as e:
                logger.error("Failed to process %s translations: %s", language, e)
                builder.record(language, LanguageStatus.FAILED, path=store.path_for(language), error=str(e))
                continue

            if translate and value:
                text, origin, error = self._translate_or_fallback(
                    config, value, language, key, credentials
                )
            else:
                text, origin, error = default_value, Origin.FALLBACK, None
            builder.bump(origin.value)

            previous = read(catalog, path)
            catalog = stage_value(catalog, path, text, language, builder.warnings)
            staged[language] = (
                catalog,
                [TranslationEntry(key, language, text, origin, previous, error)],
            )
            logger.info("%s: %r (%s)", language, text, origin.value)

        for language, (catalog, entries) in staged.items():
            self._persist(store, builder, language, catalog, entries)

        failed = builder.failed_languages()
        if dry_run:
            summary = "Dry run completed. No changes were made."
        else:
            written = len(config.languages) - len(failed)
            summary = f"Key '{key}' added to {written} of {len(config.languages)} language files"
        if failed:
            summary += f"; failed: {', '.join(failed)}"
        return builder.build(summary, order=config.languages)

    # ------------------------------------------------------------------
    # extract-keys
    # ------------------------------------------------------------------

    def extract_keys(
        self,
        config: TransmateConfig,
        pattern: Optional[str] = None,
        source: Optional[str] = None,
        add: bool = False,
        dry_run: Optional[bool] = None,
    ) -> OperationReport:
        """Find keys used in source files but missing from the default catalog.

        Only the default-language catalog is ever written (when ``add`` is
        set, each missing key gets its own path as value). Other languages
        are left to ``add_key`` and ``sync_all``.

        Raises:
            ConfigError: no source patterns or an invalid key pattern
            NoSourceFilesError: no files left after applying ignore patterns
        """
        dry_run = config.dry_run if dry_run is None else dry_run
        extractor = KeyExtractor(pattern or config.key_pattern, max_workers=self.extractor_workers)
        source_patterns = [source] if source else list(config.source_patterns)

        logger.info("Scanning source files...")
        files = find_source_files(source_patterns, config.ignore_patterns, base_dir=config.base_dir)
        extracted = extractor.extract(files)

        builder = ReportBuilder("extract-keys", dry_run)
        builder.stats.update(
            files=extracted.files_scanned,
            extracted=len(extracted),
            unreadable=len(extracted.failures),
        )
        for file_path, reason in extracted.failures.items():
            builder.warn(f"Failed to parse {file_path}: {reason}")
        for bad_key in extracted.invalid_keys:
            builder.warn(f"Ignored malformed key {bad_key!r}")

        store = store_for(config)
        default = config.default_language
        catalog = store.load(default, create=True)
        missing = [k for k in extracted.keys if is_missing(catalog, to_path(k))]
        builder.stats["missing"] = len(missing)
        builder.add_keys(missing)

        logger.info("Found %d keys, %d missing from translation files", len(extracted), len(missing))
        for key in missing:
            logger.info("- %s", key)

        if not missing:
            builder.record(default, LanguageStatus.UNCHANGED, path=store.path_for(default))
            return builder.build("No missing keys found")

        if not add:
            builder.record(default, LanguageStatus.UNCHANGED, path=store.path_for(default))
            return builder.build(
                f"Run with --add to add these {len(missing)} keys to translation files"
            )

        entries = []
        for key in missing:
            path = to_path(key)
            previous = read(catalog, path)
            catalog = stage_value(catalog, path, key, default, builder.warnings)
            entries.append(TranslationEntry(key, default, key, Origin.HUMAN, previous))

        outcome = self._persist(store, builder, default, catalog, entries)
        if dry_run:
            summary = f"Dry run completed. Would add {len(missing)} missing keys to translation files."
        elif outcome.status == LanguageStatus.FAILED:
            summary = f"Failed to add {len(missing)} missing keys: {outcome.error}"
        else:
            summary = f"Added {len(missing)} missing keys to translation files"
        return builder.build(summary)

    # ------------------------------------------------------------------
    # sync-all
    # ------------------------------------------------------------------

    def _sync_language(
        self,
        config: TransmateConfig,
        store: CatalogStore,
        language: str,
        leaves: List[Tuple[KeyPath, str]],
        force: bool,
        credentials: Optional[Credentials] = None,
    ) -> Tuple[Optional[Catalog], List[TranslationEntry], List[str], Optional[str]]:
        """Translate one language in memory.

        Returns (catalog, entries, warnings, load_error). Safe to run on a
        worker thread: it touches no shared state besides the provider.
        """
        warnings: List[str] = []
        try:
            catalog = store.load(language, create=True)
        except CatalogIOError as e:
            logger.error("Failed to process %s translations: %s", language, e)
            return None, [], warnings, str(e)

        entries: List[TranslationEntry] = []
        for path, source_value in leaves:
            key = to_dotted(path)
            existing = read(catalog, path)
            if existing and not force:
                continue

            text, origin, error = self._translate_or_fallback(
                config, source_value, language, key, credentials
            )
            if origin == Origin.FALLBACK and existing:
                # A failed overwrite keeps the translation that is already there
                message = f"{language}: kept existing value for '{key}' after failed translation"
                logger.warning(message)
                warnings.append(message)
                continue

            catalog = stage_value(catalog, path, text, language, warnings)
            entries.append(TranslationEntry(key, language, text, origin, existing, error))
            if existing:
                logger.debug("Updated %s: %r = %r (was: %r)", language, key, text, existing)
            else:
                logger.debug("Added %s: %r = %r", language, key, text)

        return catalog, entries, warnings, None

    def sync_all(
        self,
        config: TransmateConfig,
        target_language: Optional[str] = None,
        force: bool = False,
        dry_run: Optional[bool] = None,
    ) -> OperationReport:
        """Translate default-language keys that are missing in target languages.

        With ``force`` every key is retranslated. Each language is saved as
        soon as it is done, so an interrupted run keeps the languages that
        already finished.

        Raises:
            ProviderDisabledError, MissingCredentialError: provider unusable
            ConfigError: ``target_language`` names no configured language
            CatalogNotFoundError: the default-language catalog does not exist
        """
        dry_run = config.dry_run if dry_run is None else dry_run
        credentials = self.provider.check_ready(config)
        targets = parse_languages(config, target_language)

        store = store_for(config)
        default_catalog = store.load(config.default_language)
        leaves = list(iter_leaves(default_catalog))

        builder = ReportBuilder("sync-all", dry_run)
        if not leaves:
            return builder.build("No keys found in the default language file")

        logger.info("Translating missing keys for %s...", ", ".join(targets))

        def run(language):
            catalog, entries, warnings, error = self._sync_language(
                config, store, language, leaves, force, credentials
            )
            if error is None and entries and not dry_run:
                # Save from the worker so finished languages land on disk early
                try:
                    store.save(language, catalog)
                except CatalogIOError as e:
                    logger.error("Failed to save %s translations: %s", language, e)
                    error = str(e)
            return entries, warnings, error

        workers = min(config.max_concurrent, len(targets))
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(run, targets))
        else:
            results = [run(language) for language in targets]

        for language, (entries, warnings, error) in zip(targets, results):
            for message in warnings:
                builder.warn(message)
            path = store.path_for(language)
            if error is not None:
                builder.record(language, LanguageStatus.FAILED, entries, path=path, error=error)
            elif not entries:
                builder.record(language, LanguageStatus.UNCHANGED, path=path)
            elif dry_run:
                builder.record(language, LanguageStatus.SKIPPED_DRY_RUN, entries, path=path)
            else:
                builder.record(language, LanguageStatus.WRITTEN, entries, path=path)
            builder.add_keys(e.key for e in entries)
            for entry in entries:
                builder.bump("translated" if entry.origin == Origin.AI else "fallback")

        builder.stats.setdefault("translated", 0)
        builder.stats.setdefault("fallback", 0)
        total = builder.stats["translated"] + builder.stats["fallback"]

        failed = builder.failed_languages()
        if total == 0 and not failed:
            summary = "No missing keys found across language files"
        elif dry_run:
            summary = f"Dry run completed. Would translate {total} keys across {len(targets)} languages."
        else:
            summary = (
                f"Translated {builder.stats['translated']} keys across {len(targets)} languages"
                f" ({builder.stats['fallback']} fell back to {config.default_language})"
            )
        if failed:
            summary += f"; failed: {', '.join(failed)}"
        return builder.build(summary, order=targets)

    translate_all = sync_all


def add_key(
    config: TransmateConfig,
    key: str,
    value: str = "",
    translate: bool = False,
    dry_run: Optional[bool] = None,
    provider: Optional[TranslationProvider] = None,
) -> OperationReport:
    """Convenience wrapper around ``SyncOrchestrator.add_key``."""
    return SyncOrchestrator(provider).add_key(config, key, value, translate, dry_run)


def extract_keys(
    config: TransmateConfig,
    pattern: Optional[str] = None,
    source: Optional[str] = None,
    add: bool = False,
    dry_run: Optional[bool] = None,
) -> OperationReport:
    """Convenience wrapper around ``SyncOrchestrator.extract_keys``."""
    return SyncOrchestrator().extract_keys(config, pattern, source, add, dry_run)


def sync_all(
    config: TransmateConfig,
    target_language: Optional[str] = None,
    force: bool = False,
    dry_run: Optional[bool] = None,
    provider: Optional[TranslationProvider] = None,
) -> OperationReport:
    """Convenience wrapper around ``SyncOrchestrator.sync_all``."""
    return SyncOrchestrator(provider).sync_all(config, target_language, force, dry_run)


translate_all = sync_all
