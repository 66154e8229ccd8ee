"""
LLM-based translation backend (OpenAI chat completions).

The client is created lazily on first use with the configured timeout and
retry budget, so building a translator never touches the network.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from transmate.translate.base import (
    Translator,
    TranslationContext,
    TranslationResult,
)

SYSTEM_PROMPT = (
    "You are a professional translator with expertise in multiple languages "
    "and technical terminology."
)


@dataclass
class LLMConfig:
    """Configuration for LLM translators."""
    model: str = "gpt-4o"
    temperature: float = 0.3
    max_tokens: int = 1000
    api_key: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 2


def build_user_prompt(text: str, context: TranslationContext) -> str:
    """Build the translation prompt for one UI string."""
    return (
        f"Translate the following text from {context.source_name} to {context.target_name}.\n"
        "Preserve any formatting, variables, or placeholders exactly as they appear "
        "in the original (e.g. {{name}}, {count}, %s, <b>).\n"
        "Maintain the tone and style of the original text.\n"
        "Only respond with the translation, nothing else.\n\n"
        f'Text to translate: "{text}"\n\n'
        "Translation:"
    )


def parse_response(response: str) -> str:
    """Clean an LLM reply down to the bare translation."""
    cleaned = response.strip()

    # Remove markdown code blocks if present
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        if lines[-1].strip() == "```":
            lines = lines[1:-1]
        else:
            lines = lines[1:]
        cleaned = "\n".join(lines).strip()

    for prefix in ("Translation:", "Translated text:"):
        if cleaned.lower().startswith(prefix.lower()):
            cleaned = cleaned[len(prefix):].strip()

    # The prompt quotes the source, models often echo the quotes back
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] == '"':
        cleaned = cleaned[1:-1]
    return cleaned


class OpenAITranslator(Translator):
    """OpenAI GPT-based translator.

    Usage:
        translator = OpenAITranslator(config=LLMConfig(model="gpt-4o"))
        result = translator.translate("Hello", TranslationContext("en", "fr"))
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        api_key: Optional[str] = None,
    ):
        self.config = config or LLMConfig()
        self.api_key = api_key or self.config.api_key or os.getenv("OPENAI_API_KEY")
        self._client = None

    @property
    def name(self) -> str:
        return f"openai-{self.config.model}"

    def _get_client(self):
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            from openai import OpenAI

            if not self.api_key:
                raise ValueError(
                    "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                    "or pass api_key parameter."
                )

            kwargs = {
                "api_key": self.api_key,
                "timeout": self.config.timeout,
                "max_retries": self.config.max_retries,
            }

            self._client = OpenAI(**kwargs)

        return self._client

    def translate(
        self,
        text: str,
        context: Optional[TranslationContext] = None,
    ) -> TranslationResult:
        """Translate text using the chat completions API."""
        context = context or TranslationContext()
        client = self._get_client()

        response = client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(text, context)},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

        if not response.choices:
            raise ValueError("OpenAI returned no choices")
        content = response.choices[0].message.content or ""
        translated = parse_response(content)
        if not translated:
            raise ValueError("OpenAI returned an empty translation")

        return TranslationResult(
            text=translated,
            source_text=text,
            metadata={"translator": self.name, "model": self.config.model},
        )
