"""
Tests for the sync engine: add-key, extract-keys and sync-all.

Run with: pytest tests/test_sync.py -v
"""

import pytest

from transmate.config import AITranslationConfig
from transmate.errors import (
    CatalogNotFoundError,
    ConfigError,
    InvalidKeyError,
    MissingCredentialError,
    NoSourceFilesError,
    ProviderDisabledError,
)
from transmate.report import LanguageStatus, Origin
from transmate.sync import SyncOrchestrator, parse_languages

from conftest import FakeTranslator, read_catalog, snapshot, write_catalog


@pytest.fixture
def engine(provider):
    return SyncOrchestrator(provider=provider)


class TestAddKey:
    """Tests for adding one key to every language."""

    def test_untranslated_scenario(self, engine, fake_translator, make_config, locales):
        """en/fr project, empty default catalog, add a.b without translation."""
        write_catalog(locales / "en.json", {})
        config = make_config(("en", "fr"))

        report = engine.add_key(config, "a.b", "Hello", translate=False, dry_run=False)

        assert read_catalog(locales / "en.json") == {"a": {"b": "Hello"}}
        assert read_catalog(locales / "fr.json") == {"a": {"b": "Hello"}}
        assert report.entry("fr", "a.b").origin == Origin.FALLBACK
        assert report.entry("en", "a.b").origin == Origin.HUMAN
        assert fake_translator.calls == []
        assert report.ok

    def test_never_calls_provider_without_translate(self, engine, fake_translator, make_config):
        config = make_config(("en", "fr", "de", "es"))
        engine.add_key(config, "x", "Value")
        engine.add_key(config, "y", "")
        assert len(fake_translator.calls) == 0

    def test_translate(self, engine, fake_translator, make_config, locales):
        config = make_config(("en", "fr", "de"))
        report = engine.add_key(config, "nav.home", "Home", translate=True)

        assert read_catalog(locales / "fr.json") == {"nav": {"home": "fr:Home"}}
        assert read_catalog(locales / "de.json") == {"nav": {"home": "de:Home"}}
        assert report.outcome("fr").origins == {"nav.home": Origin.AI}
        assert fake_translator.calls == [("Home", "en", "fr"), ("Home", "en", "de")]
        assert [o.language for o in report.languages] == ["en", "fr", "de"]

    def test_provider_failure_falls_back_per_language(self, key_manager, make_config, locales):
        from transmate.translate.provider import TranslationProvider

        fake = FakeTranslator(fail_for={"fr"})
        engine = SyncOrchestrator(TranslationProvider(key_manager, lambda *a, **k: fake))
        report = engine.add_key(make_config(("en", "fr", "de")), "greet", "Hi", translate=True)

        assert read_catalog(locales / "fr.json") == {"greet": "Hi"}
        assert read_catalog(locales / "de.json") == {"greet": "de:Hi"}
        assert report.fell_back == ["fr"]
        assert "timed out" in report.entry("fr", "greet").error
        assert report.ok

    def test_empty_value_uses_key(self, engine, make_config, locales):
        engine.add_key(make_config(), "page.title")
        assert read_catalog(locales / "en.json") == {"page": {"title": "page.title"}}

    def test_invalid_key_writes_nothing(self, engine, make_config, tmp_path):
        before = snapshot(tmp_path)
        with pytest.raises(InvalidKeyError):
            engine.add_key(make_config(), "a..b", "x")
        assert snapshot(tmp_path) == before

    def test_translate_requires_enabled_provider(self, engine, make_config, tmp_path):
        before = snapshot(tmp_path)
        with pytest.raises(ProviderDisabledError):
            engine.add_key(make_config(ai=False), "a", "x", translate=True)
        assert snapshot(tmp_path) == before

    def test_translate_requires_credentials(self, key_manager, make_config):
        from transmate.config import AITranslationConfig
        from transmate.translate.provider import TranslationProvider

        engine = SyncOrchestrator(TranslationProvider(key_manager))
        config = make_config().with_overrides(ai_translation=AITranslationConfig(enabled=True))
        with pytest.raises(MissingCredentialError):
            engine.add_key(config, "a", "x", translate=True)

    def test_without_translate_ignores_disabled_provider(self, engine, make_config):
        report = engine.add_key(make_config(ai=False), "a", "x")
        assert report.ok

    def test_dry_run_is_byte_identical(self, engine, make_config, locales, tmp_path):
        write_catalog(locales / "en.json", {"existing": "Value"})
        write_catalog(locales / "fr.json", {"existing": "Valeur"})
        before = snapshot(tmp_path)

        report = engine.add_key(make_config(), "new.key", "New", translate=True, dry_run=True)

        assert snapshot(tmp_path) == before
        assert report.dry_run
        assert {o.status for o in report.languages} == {LanguageStatus.SKIPPED_DRY_RUN}
        assert report.files_written == []
        assert report.summary == "Dry run completed. No changes were made."

    def test_config_dry_run_default(self, engine, make_config, tmp_path):
        before = snapshot(tmp_path)
        engine.add_key(make_config(dry_run=True), "a", "x")
        assert snapshot(tmp_path) == before

    def test_conflict_is_reported(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "leaf"})
        report = engine.add_key(make_config(), "a.b", "x")

        assert read_catalog(locales / "en.json") == {"a": {"b": "x"}}
        assert any("'a'" in w for w in report.warnings)

    def test_unreadable_language_fails_alone(self, engine, make_config, locales):
        locales.mkdir()
        (locales / "fr.json").write_text("{broken", encoding="utf-8")
        report = engine.add_key(make_config(("en", "fr", "de")), "k", "v")

        assert report.failed == ["fr"]
        assert report.outcome("de").status == LanguageStatus.WRITTEN
        assert read_catalog(locales / "de.json") == {"k": "v"}
        assert (locales / "fr.json").read_text(encoding="utf-8") == "{broken"
        assert not report.ok
        assert "failed: fr" in report.summary


class TestExtractKeys:
    """Tests for finding keys used in source code."""

    def test_report_only(self, engine, make_config, locales, tmp_path):
        write_catalog(locales / "en.json", {"old": {"key": "Old"}})
        src = tmp_path / "src" / "app.ts"
        src.parent.mkdir()
        src.write_text("t('old.key'); t('new.key');", encoding="utf-8")
        before = snapshot(tmp_path)

        report = engine.extract_keys(make_config(), add=False)

        assert report.keys == ("new.key",)
        assert report.files_written == []
        assert snapshot(tmp_path) == before
        assert report.stats["missing"] == 1
        assert "--add" in report.summary

    def test_add_writes_default_only(self, engine, make_config, locales, tmp_path):
        write_catalog(locales / "fr.json", {"old": "Vieux"})
        src = tmp_path / "src" / "app.tsx"
        src.parent.mkdir()
        src.write_text("t('old') t(\"menu.open\") t('empty')", encoding="utf-8")
        write_catalog(locales / "en.json", {"old": "Old", "empty": ""})

        report = engine.extract_keys(make_config(), add=True)

        assert read_catalog(locales / "en.json") == {
            "old": "Old",
            "empty": "empty",
            "menu": {"open": "menu.open"},
        }
        assert read_catalog(locales / "fr.json") == {"old": "Vieux"}
        assert report.files_written == [locales / "en.json"]

    def test_nothing_missing(self, engine, make_config, locales, tmp_path):
        write_catalog(locales / "en.json", {"a": "A"})
        src = tmp_path / "src" / "a.ts"
        src.parent.mkdir()
        src.write_text("t('a')", encoding="utf-8")

        report = engine.extract_keys(make_config(), add=True)
        assert report.summary == "No missing keys found"
        assert report.files_written == []

    def test_add_dry_run_is_byte_identical(self, engine, make_config, locales, tmp_path):
        write_catalog(locales / "en.json", {})
        src = tmp_path / "src" / "app.ts"
        src.parent.mkdir()
        src.write_text("t('new.key')", encoding="utf-8")
        before = snapshot(tmp_path)

        report = engine.extract_keys(make_config(), add=True, dry_run=True)

        assert snapshot(tmp_path) == before
        assert report.keys == ("new.key",)
        assert report.outcome("en").status == LanguageStatus.SKIPPED_DRY_RUN
        assert report.files_written == []
        assert report.summary.startswith("Dry run completed")

    def test_source_override_and_pattern(self, engine, make_config, tmp_path):
        vue = tmp_path / "web" / "App.vue"
        vue.parent.mkdir()
        vue.write_text("{{ $t('title') }}", encoding="utf-8")

        report = engine.extract_keys(
            make_config(), pattern=r"""\$t\(['"]([^'"]+)['"]""", source="web/*.vue"
        )
        assert report.keys == ("title",)

    def test_no_source_files(self, engine, make_config):
        with pytest.raises(NoSourceFilesError):
            engine.extract_keys(make_config())

    def test_unreadable_file_is_a_warning(self, engine, make_config, tmp_path):
        src = tmp_path / "src"
        src.mkdir()
        (src / "ok.ts").write_text("t('a')", encoding="utf-8")
        (src / "bad.ts").write_bytes(b"\xff\xfe\x00")

        report = engine.extract_keys(make_config())
        assert report.keys == ("a",)
        assert report.stats["unreadable"] == 1
        assert any("bad.ts" in w for w in report.warnings)


class TestSyncAll:
    """Tests for translating missing keys across languages."""

    def test_translates_missing_only(self, engine, fake_translator, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A", "b": {"c": "C"}})
        write_catalog(locales / "fr.json", {"a": "déjà"})

        report = engine.sync_all(make_config(("en", "fr", "de")))

        assert read_catalog(locales / "fr.json") == {"a": "déjà", "b": {"c": "fr:C"}}
        assert read_catalog(locales / "de.json") == {"a": "de:A", "b": {"c": "de:C"}}
        assert report.stats == {"translated": 3, "fallback": 0}
        assert report.keys == ("b.c", "a")

    def test_empty_value_counts_as_missing(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A"})
        write_catalog(locales / "fr.json", {"a": ""})
        engine.sync_all(make_config())
        assert read_catalog(locales / "fr.json") == {"a": "fr:A"}

    def test_force_overwrites(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A"})
        write_catalog(locales / "fr.json", {"a": "old"})
        report = engine.sync_all(make_config(), force=True)

        assert read_catalog(locales / "fr.json") == {"a": "fr:A"}
        assert report.entry("fr", "a").previous == "old"

    def test_failed_language_falls_back_others_complete(self, key_manager, make_config, locales):
        from transmate.translate.provider import TranslationProvider

        write_catalog(locales / "en.json", {"a": "A", "b": "B"})
        fake = FakeTranslator(fail_for={"fr"})
        engine = SyncOrchestrator(TranslationProvider(key_manager, lambda *a, **k: fake))

        report = engine.sync_all(make_config(("en", "fr", "de")))

        assert read_catalog(locales / "fr.json") == {"a": "A", "b": "B"}
        assert read_catalog(locales / "de.json") == {"a": "de:A", "b": "de:B"}
        fr = report.outcome("fr")
        assert fr.status == LanguageStatus.WRITTEN
        assert set(fr.origins.values()) == {Origin.FALLBACK}
        assert report.entry("fr", "a").value == "A"
        assert report.outcome("de").count(Origin.AI) == 2
        assert report.fell_back == ["fr"]
        assert report.ok

    def test_force_keeps_existing_on_failure(self, key_manager, make_config, locales):
        from transmate.translate.provider import TranslationProvider

        write_catalog(locales / "en.json", {"a": "A"})
        write_catalog(locales / "fr.json", {"a": "Humain"})
        fake = FakeTranslator(fail_for={"fr"})
        engine = SyncOrchestrator(TranslationProvider(key_manager, lambda *a, **k: fake))

        report = engine.sync_all(make_config(), force=True)
        assert read_catalog(locales / "fr.json") == {"a": "Humain"}
        assert report.outcome("fr").status == LanguageStatus.UNCHANGED
        assert report.warnings

    def test_language_subset(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A"})
        report = engine.sync_all(make_config(("en", "fr", "de", "es")), target_language="es,fr")

        assert [o.language for o in report.languages] == ["fr", "es"]
        assert not (locales / "de.json").exists()

    def test_unknown_language(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A"})
        with pytest.raises(ConfigError, match="No valid languages"):
            engine.sync_all(make_config(), target_language="xx")

    def test_missing_default_catalog(self, engine, make_config):
        with pytest.raises(CatalogNotFoundError):
            engine.sync_all(make_config())

    def test_requires_provider(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A"})
        with pytest.raises(ProviderDisabledError):
            engine.sync_all(make_config(ai=False))

    def test_nothing_to_do(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A"})
        write_catalog(locales / "fr.json", {"a": "Á"})
        report = engine.sync_all(make_config())

        assert report.summary == "No missing keys found across language files"
        assert report.outcome("fr").status == LanguageStatus.UNCHANGED

    def test_dry_run_is_byte_identical(self, engine, make_config, locales, tmp_path):
        write_catalog(locales / "en.json", {"a": "A", "b": "B"})
        write_catalog(locales / "fr.json", {"a": "x"})
        before = snapshot(tmp_path)

        report = engine.sync_all(make_config(("en", "fr", "de")), dry_run=True)

        assert snapshot(tmp_path) == before
        assert report.outcome("de").status == LanguageStatus.SKIPPED_DRY_RUN
        assert report.summary.startswith("Dry run completed. Would translate 3 keys")

    def test_concurrent_languages(self, engine, fake_translator, make_config, locales):
        languages = ("en", "fr", "de", "es", "it", "pt")
        write_catalog(locales / "en.json", {"k1": "One", "k2": "Two"})

        report = engine.sync_all(make_config(languages, max_concurrent=3))

        assert [o.language for o in report.languages] == list(languages[1:])
        for lang in languages[1:]:
            assert read_catalog(locales / f"{lang}.json") == {"k1": f"{lang}:One", "k2": f"{lang}:Two"}
        assert len(fake_translator.calls) == 10

    def test_api_key_looked_up_once(self, fake_translator, make_config, locales, tmp_path, monkeypatch):
        """The key manager is consulted once per run, not once per value."""
        from transmate.keys import KeyManager
        from transmate.translate.provider import TranslationProvider

        class CountingKeyManager(KeyManager):
            lookups = 0

            def get_key(self, service):
                self.lookups += 1
                return super().get_key(service)

        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        keys = CountingKeyManager(config_dir=tmp_path / "keys", use_keyring=False)
        engine = SyncOrchestrator(TranslationProvider(keys, lambda *a, **k: fake_translator))
        write_catalog(locales / "en.json", {"a": "A", "b": "B"})
        config = make_config(("en", "fr", "de")).with_overrides(
            ai_translation=AITranslationConfig(enabled=True)
        )

        report = engine.sync_all(config)

        assert report.stats["translated"] == 4
        assert keys.lookups == 1

    def test_stats_are_read_only(self, engine, make_config, locales):
        write_catalog(locales / "en.json", {"a": "A"})
        report = engine.sync_all(make_config())

        with pytest.raises(TypeError):
            report.stats["translated"] = 0
        assert report.stats["translated"] == 1

    def test_translate_all_alias(self):
        assert SyncOrchestrator.translate_all is SyncOrchestrator.sync_all


class TestParseLanguages:
    """Tests for the --language filter."""

    def test_all_targets(self, make_config):
        assert parse_languages(make_config(("en", "fr", "de")), None) == ("fr", "de")

    def test_config_order_and_default_excluded(self, make_config):
        config = make_config(("en", "fr", "de"))
        assert parse_languages(config, " de , en,fr") == ("fr", "de")
