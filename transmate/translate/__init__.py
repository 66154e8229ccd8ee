"""Translation backends and the provider adapter used by the sync engine."""

from transmate.translate.base import (
    DummyTranslator,
    TranslationContext,
    TranslationResult,
    Translator,
    create_translator,
)
from transmate.translate.provider import TranslationProvider

__all__ = [
    "DummyTranslator",
    "TranslationContext",
    "TranslationResult",
    "Translator",
    "TranslationProvider",
    "create_translator",
]
