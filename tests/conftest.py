"""Shared fixtures: a throwaway project directory and a scripted translator."""

import json
from pathlib import Path

import pytest

from transmate.config import AITranslationConfig, TransmateConfig
from transmate.keys import KeyManager
from transmate.translate.base import TranslationResult, Translator
from transmate.translate.provider import TranslationProvider


class FakeTranslator(Translator):
    """Prefixes the target language; raises for languages listed in ``fail_for``."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.calls = []

    @property
    def name(self) -> str:
        return "fake"

    def translate(self, text, context=None):
        self.calls.append((text, context.source_lang, context.target_lang))
        if context.target_lang in self.fail_for:
            raise TimeoutError("request timed out")
        return TranslationResult(text=f"{context.target_lang}:{text}", source_text=text)


def write_catalog(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


def read_catalog(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def snapshot(directory: Path):
    """Bytes of every file under ``directory``, keyed by relative path."""
    return {
        str(p.relative_to(directory)): p.read_bytes()
        for p in sorted(directory.rglob("*"))
        if p.is_file()
    }


@pytest.fixture(autouse=True)
def no_real_credentials(monkeypatch, tmp_path):
    """Keep tests away from the developer's keys and keychain."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("TRANSMATE_DEBUG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def locales(tmp_path) -> Path:
    return tmp_path / "locales"


@pytest.fixture
def make_config(tmp_path):
    """Build a config rooted at ``tmp_path``."""

    def _make(languages=("en", "fr"), ai=True, **kwargs):
        ai_config = AITranslationConfig(enabled=True, provider="openai", api_key="sk-test") if ai else None
        kwargs.setdefault("translation_file_path", "locales/{language}.json")
        kwargs.setdefault("source_patterns", ("src/**/*.{ts,tsx}",))
        return TransmateConfig(
            default_language=languages[0],
            languages=tuple(languages),
            ai_translation=ai_config,
            base_dir=tmp_path,
            **kwargs,
        )

    return _make


@pytest.fixture
def key_manager(tmp_path):
    return KeyManager(config_dir=tmp_path / "keys", use_keyring=False)


@pytest.fixture
def fake_translator():
    return FakeTranslator()


@pytest.fixture
def provider(fake_translator, key_manager):
    """A provider whose backend is ``fake_translator`` for every provider name."""
    return TranslationProvider(
        key_manager=key_manager,
        translator_factory=lambda *args, **kwargs: fake_translator,
    )
