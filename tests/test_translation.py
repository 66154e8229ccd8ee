"""
Tests for translator backends, the provider adapter and API key lookup.

No network access: the OpenAI backend is exercised with a stub client.

Run with: pytest tests/test_translation.py -v
"""

from types import SimpleNamespace

import pytest

from transmate.config import AITranslationConfig, TransmateConfig
from transmate.errors import (
    ConfigError,
    MissingCredentialError,
    ProviderDisabledError,
    ProviderRequestError,
)
from transmate.keys import KeyManager
from transmate.translate.base import (
    DummyTranslator,
    TranslationContext,
    TranslationResult,
    create_translator,
    language_name,
)
from transmate.translate.llm import OpenAITranslator, build_user_prompt, parse_response
from transmate.translate.provider import TranslationProvider, describe_error

from conftest import FakeTranslator


def config_with(ai=None):
    return TransmateConfig("en", ("en", "fr"), "{language}.json", ai_translation=ai)


class StubCompletions:
    def __init__(self, content):
        self.content = content
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.content is None:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def stub_client(content):
    completions = StubCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class TestBackends:
    """Tests for individual translators."""

    def test_dummy_modes(self):
        ctx = TranslationContext("en", "fr")
        assert DummyTranslator("prefix").translate("Hi", ctx).text == "[fr] Hi"
        assert DummyTranslator("echo").translate("Hi", ctx).text == "Hi"
        assert DummyTranslator("upper").translate("Hi", ctx).text == "HI"

    def test_factory(self):
        assert isinstance(create_translator("dummy"), DummyTranslator)
        translator = create_translator("openai", model="gpt-4o-mini", api_key="sk-x", timeout=5.0)
        assert isinstance(translator, OpenAITranslator)
        assert translator.config.timeout == 5.0
        with pytest.raises(ValueError, match="Unknown translation provider"):
            create_translator("babelfish")

    def test_language_names(self):
        assert language_name("fr") == "French"
        assert language_name("pt-BR") == language_name("pt")
        assert language_name("xx") == "xx"

    def test_prompt_names_languages(self):
        prompt = build_user_prompt("Save", TranslationContext("en", "de"))
        assert "from English to German" in prompt
        assert '"Save"' in prompt

    @pytest.mark.parametrize("raw, expected", [
        ("Bonjour", "Bonjour"),
        ('"Bonjour"', "Bonjour"),
        ("Translation: Bonjour", "Bonjour"),
        ("```\nBonjour\n```", "Bonjour"),
    ])
    def test_parse_response(self, raw, expected):
        assert parse_response(raw) == expected

    def test_openai_with_stub_client(self):
        translator = OpenAITranslator(api_key="sk-test")
        translator._client, completions = stub_client('"Bonjour"')

        result = translator.translate("Hello", TranslationContext("en", "fr"))
        assert result.text == "Bonjour"
        assert completions.requests[0]["model"] == "gpt-4o"

    def test_openai_no_choices(self):
        translator = OpenAITranslator(api_key="sk-test")
        translator._client, _ = stub_client(None)
        with pytest.raises(ValueError):
            translator.translate("Hello", TranslationContext("en", "fr"))


class TestProviderPreconditions:
    """Tests for checks made before any network traffic."""

    def test_disabled(self, key_manager):
        provider = TranslationProvider(key_manager=key_manager)
        with pytest.raises(ProviderDisabledError):
            provider.check_ready(config_with(None))
        with pytest.raises(ProviderDisabledError):
            provider.check_ready(config_with(AITranslationConfig(enabled=False)))

    def test_missing_credential(self, key_manager):
        provider = TranslationProvider(key_manager=key_manager)
        with pytest.raises(MissingCredentialError, match="OPENAI_API_KEY"):
            provider.translate("Hi", "en", "fr", config_with(AITranslationConfig(enabled=True)))

    def test_unknown_provider(self, key_manager):
        provider = TranslationProvider(key_manager=key_manager)
        with pytest.raises(ConfigError, match="Unsupported translation provider"):
            provider.check_ready(config_with(AITranslationConfig(enabled=True, provider="babelfish")))

    def test_key_from_environment(self, key_manager, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        provider = TranslationProvider(key_manager=key_manager)
        _, api_key = provider.check_ready(config_with(AITranslationConfig(enabled=True)))
        assert api_key == "sk-env"

    def test_config_key_wins(self, key_manager, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        provider = TranslationProvider(key_manager=key_manager)
        ai = AITranslationConfig(enabled=True, api_key="sk-config")
        assert provider.check_ready(config_with(ai))[1] == "sk-config"

    def test_dummy_needs_no_key(self, key_manager):
        provider = TranslationProvider(key_manager=key_manager)
        config = config_with(AITranslationConfig(enabled=True, provider="dummy"))
        assert provider.translate("Hi", "en", "fr", config) == "[fr] Hi"


class TestProviderCalls:
    """Tests for error normalisation and translator reuse."""

    def test_backend_failure_becomes_request_error(self, key_manager):
        fake = FakeTranslator(fail_for={"fr"})
        provider = TranslationProvider(key_manager, translator_factory=lambda *a, **k: fake)
        config = config_with(AITranslationConfig(enabled=True, api_key="sk-x"))

        with pytest.raises(ProviderRequestError) as excinfo:
            provider.translate("Hi", "en", "fr", config)
        assert "timed out" in excinfo.value.upstream_message
        assert excinfo.value.provider == "openai"

    def test_empty_result_is_an_error(self, key_manager):
        class Blank(FakeTranslator):
            def translate(self, text, context=None):
                return TranslationResult(text="  ", source_text=text)

        provider = TranslationProvider(key_manager, translator_factory=lambda *a, **k: Blank())
        config = config_with(AITranslationConfig(enabled=True, api_key="sk-x"))
        with pytest.raises(ProviderRequestError, match="empty response"):
            provider.translate("Hi", "en", "fr", config)

    def test_translator_built_once(self, key_manager):
        built = []

        def factory(name, **kwargs):
            built.append((name, kwargs))
            return FakeTranslator()

        provider = TranslationProvider(key_manager, translator_factory=factory)
        config = config_with(AITranslationConfig(enabled=True, api_key="sk-x", timeout=7.0))
        provider.translate("a", "en", "fr", config)
        provider.translate("b", "en", "de", config)

        assert len(built) == 1
        assert built[0][1]["timeout"] == 7.0
        assert built[0][1]["api_key"] == "sk-x"

    def test_describe_error(self):
        class StatusError(Exception):
            def __init__(self, status_code):
                super().__init__("boom")
                self.status_code = status_code

        class APITimeoutError(Exception):
            pass

        assert "401" in describe_error(StatusError(401))
        assert "429" in describe_error(StatusError(429))
        assert "HTTP 500" in describe_error(StatusError(500))
        assert "timed out" in describe_error(APITimeoutError())


class TestKeyManager:
    """Tests for API key storage without the OS keychain."""

    def test_set_get_delete(self, tmp_path):
        km = KeyManager(config_dir=tmp_path / "keys", use_keyring=False)
        assert km.get_key("openai") is None

        assert km.set_key("openai", "sk-abcdefghijklmnop") == "config"
        assert km.get_key("openai") == "sk-abcdefghijklmnop"
        info = km.get_key_info("openai")
        assert info.source == "config"
        assert info.masked_value == "sk-a...mnop"

        assert km.delete_key("openai")
        assert km.get_key("openai") is None

    def test_env_takes_priority(self, tmp_path, monkeypatch):
        km = KeyManager(config_dir=tmp_path / "keys", use_keyring=False)
        km.set_key("openai", "sk-stored-value-1234")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env-value-5678")
        assert km.get_key_info("openai").source == "env"
        assert km.get_key("openai") == "sk-env-value-5678"
