"""
Translation provider adapter.

``TranslationProvider.translate`` is the single call the sync engine makes to
get a string translated. Before any network traffic it checks that AI
translation is enabled and that an API key resolves; afterwards any backend
failure comes back as ``ProviderRequestError``. It never substitutes a
fallback value itself: that decision belongs to the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from transmate.config import AITranslationConfig, TransmateConfig
from transmate.errors import (
    ConfigError,
    MissingCredentialError,
    ProviderDisabledError,
    ProviderRequestError,
)
from transmate.keys import KeyManager, env_var_for
from transmate.translate.base import (
    SUPPORTED_PROVIDERS,
    TranslationContext,
    Translator,
    create_translator,
)

logger = logging.getLogger(__name__)

# Resolved AI settings and API key, as returned by ``check_ready``
Credentials = Tuple[AITranslationConfig, str]

# Backends that run locally and need no API key
CREDENTIAL_FREE_PROVIDERS = ("dummy",)


def describe_error(error: Exception) -> str:
    """Short upstream message for a backend exception."""
    status = getattr(error, "status_code", None)
    if status == 401:
        return "invalid API key (HTTP 401)"
    if status == 429:
        return "rate limit exceeded (HTTP 429)"
    if status is not None:
        return f"HTTP {status}: {error}"
    name = type(error).__name__
    if "Timeout" in name:
        return f"request timed out ({name})"
    return str(error) or name


class TranslationProvider:
    """Config-driven wrapper around a translator backend.

    Args:
        key_manager: Source of API keys when the config has none
        translator_factory: Builds a backend; defaults to ``create_translator``
    """

    def __init__(
        self,
        key_manager: Optional[KeyManager] = None,
        translator_factory: Callable[..., Translator] = create_translator,
    ):
        self.key_manager = key_manager or KeyManager()
        self.translator_factory = translator_factory
        self._translators: Dict[Tuple[str, str, str], Translator] = {}
        self._lock = threading.Lock()

    def check_ready(self, config: TransmateConfig) -> Credentials:
        """Validate translation preconditions without touching the network.

        Returns:
            The AI settings and the resolved API key ("" for local backends)

        Raises:
            ProviderDisabledError: ``aiTranslation`` missing or disabled
            ConfigError: unknown provider name
            MissingCredentialError: no API key could be resolved
        """
        ai = config.ai_translation
        if ai is None or not ai.enabled:
            raise ProviderDisabledError()

        provider = ai.provider.lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"Unsupported translation provider: {ai.provider}. "
                f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        if provider in CREDENTIAL_FREE_PROVIDERS:
            return ai, ""

        api_key = ai.api_key or self.key_manager.get_key(provider)
        if not api_key:
            raise MissingCredentialError(ai.provider, env_var_for(provider))
        return ai, api_key

    def _translator_for(self, ai: AITranslationConfig, api_key: str) -> Translator:
        cache_key = (ai.provider.lower(), ai.model, api_key)
        with self._lock:
            translator = self._translators.get(cache_key)
            if translator is None:
                translator = self.translator_factory(
                    ai.provider,
                    model=ai.model,
                    api_key=api_key or None,
                    timeout=ai.timeout,
                    max_retries=ai.max_retries,
                    temperature=ai.temperature,
                )
                self._translators[cache_key] = translator
            return translator

    def translate(
        self,
        text: str,
        from_language: str,
        to_language: str,
        config: TransmateConfig,
        credentials: Optional[Credentials] = None,
    ) -> str:
        """Translate ``text`` between two language codes.

        Operations translating many values pass the ``credentials`` they got
        from ``check_ready`` so the API key is looked up once per run.

        Raises:
            ProviderDisabledError, MissingCredentialError, ConfigError:
                preconditions failed (see ``check_ready``)
            ProviderRequestError: the backend failed or returned nothing
        """
        ai, api_key = credentials or self.check_ready(config)
        translator = self._translator_for(ai, api_key)
        context = TranslationContext(source_lang=from_language, target_lang=to_language)

        logger.debug("Translating from %s to %s using %s", from_language, to_language, translator.name)
        try:
            result = translator.translate(text, context)
        except Exception as e:
            raise ProviderRequestError(describe_error(e), provider=ai.provider) from e

        translated = (result.text or "").strip()
        if not translated:
            raise ProviderRequestError("empty response", provider=ai.provider)
        return translated
