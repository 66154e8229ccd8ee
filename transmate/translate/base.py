"""
Base translator interface and implementations.

This module defines:
- Abstract Translator interface that all backends implement
- DummyTranslator for offline runs and testing
- create_translator() factory used by the provider adapter

Design:
- Translators are stateless per call: they receive the language pair in
  each call through TranslationContext
- All translators return TranslationResult with metadata
- Backends raise freely; the provider adapter normalises their errors
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

# Full English names used in prompts; unknown codes are passed through
LANGUAGE_NAMES = {
    "en": "English",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "hi": "Hindi",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fi": "Finnish",
    "cs": "Czech",
    "hu": "Hungarian",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "el": "Greek",
    "uk": "Ukrainian",
    "th": "Thai",
    "vi": "Vietnamese",
}


def language_name(code: str) -> str:
    """Return the English name for a language code (``fr-CA`` -> French)."""
    base = code.split("-")[0].split("_")[0].lower()
    return LANGUAGE_NAMES.get(code, LANGUAGE_NAMES.get(base, code))


@dataclass
class TranslationResult:
    """Result of a translation call.

    Attributes:
        text: The translated text
        source_text: Original source text
        metadata: Additional info (model, backend, ...)
    """
    text: str
    source_text: str
    metadata: dict = field(default_factory=dict)


@dataclass
class TranslationContext:
    """Language pair for one call."""
    source_lang: str = "en"
    target_lang: str = "fr"

    @property
    def source_name(self) -> str:
        return language_name(self.source_lang)

    @property
    def target_name(self) -> str:
        return language_name(self.target_lang)


class Translator(ABC):
    """Abstract base class for all translation backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the translator name (e.g., 'openai-gpt-4o', 'dummy-prefix')."""
        pass

    @abstractmethod
    def translate(
        self,
        text: str,
        context: Optional[TranslationContext] = None,
    ) -> TranslationResult:
        """Translate a single string.

        Args:
            text: Source text to translate
            context: Language pair

        Returns:
            TranslationResult with translation and metadata
        """
        pass


class DummyTranslator(Translator):
    """A dummy translator for testing and offline runs.

    Modes:
    - 'echo': Return the input unchanged
    - 'upper': Return uppercase version
    - 'prefix': Prefix with the target language, e.g. ``[fr] Hello``
    """

    def __init__(self, mode: str = "prefix"):
        self.mode = mode

    @property
    def name(self) -> str:
        return f"dummy-{self.mode}"

    def translate(
        self,
        text: str,
        context: Optional[TranslationContext] = None,
    ) -> TranslationResult:
        if self.mode == "echo":
            translated = text
        elif self.mode == "upper":
            translated = text.upper()
        else:  # prefix
            target = context.target_lang if context else "xx"
            translated = f"[{target}] {text}"

        return TranslationResult(
            text=translated,
            source_text=text,
            metadata={"translator": self.name, "mode": self.mode},
        )


# Provider names accepted in aiTranslation.provider
SUPPORTED_PROVIDERS = ("openai", "dummy")


def create_translator(backend: str, **kwargs) -> Translator:
    """Factory function to create a translator by name.

    Args:
        backend: 'openai' or 'dummy' (aliases: gpt, echo, test)
        **kwargs: model, api_key, timeout, max_retries, temperature, mode

    Returns:
        Configured Translator instance
    """
    backend_lower = backend.lower().replace("_", "-")

    if backend_lower in ("dummy", "echo", "test"):
        return DummyTranslator(mode=kwargs.get("mode", "prefix"))

    if backend_lower in ("openai", "gpt"):
        from transmate.translate.llm import LLMConfig, OpenAITranslator
        config = LLMConfig(
            model=kwargs.get("model") or "gpt-4o",
            temperature=kwargs.get("temperature", 0.3),
            timeout=kwargs.get("timeout", 30.0),
            max_retries=kwargs.get("max_retries", 2),
        )
        return OpenAITranslator(config=config, api_key=kwargs.get("api_key"))

    raise ValueError(
        f"Unknown translation provider: {backend}. "
        f"Available providers: {', '.join(SUPPORTED_PROVIDERS)}"
    )
