"""
Project configuration for Transmate.

A project is described by a ``transmate.config.json`` file in its root::

    {
      "defaultLanguage": "en",
      "languages": ["en", "fr", "de"],
      "translationFilePath": "./src/locales/{language}.json",
      "sourcePatterns": ["./src/**/*.{ts,tsx,js,jsx}"],
      "ignorePatterns": ["./src/**/*.test.{ts,tsx,js,jsx}"],
      "aiTranslation": {"enabled": true, "provider": "openai",
                        "apiKey": "${OPENAI_API_KEY}", "model": "gpt-4o"}
    }

``load_config`` reads it into an immutable ``TransmateConfig``. Nothing is
cached at module level: every engine operation receives its config as an
argument, so reloading is just calling ``load_config`` again.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Tuple

from dotenv import load_dotenv

from transmate.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "transmate.config.json"

# Matches t("key") and t('key')
DEFAULT_KEY_PATTERN = r"""t\(['"]([^'"]+)['"]"""

MERGE_STRATEGIES = ("override", "keep-existing")
EXTERNAL_FORMATS = ("csv",)

_ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")


@dataclass(frozen=True)
class AITranslationConfig:
    """Settings for the AI translation provider."""
    enabled: bool = False
    provider: str = "openai"
    api_key: str = ""
    model: str = "gpt-4o"
    timeout: float = 30.0       # Seconds per provider call
    max_retries: int = 2        # Client-level retries before a call fails
    temperature: float = 0.3

    def __post_init__(self):
        if not self.provider:
            raise ConfigError("aiTranslation.provider - must not be empty")
        if self.timeout <= 0:
            raise ConfigError("aiTranslation.timeout - must be a positive number of seconds")
        if self.max_retries < 0:
            raise ConfigError("aiTranslation.maxRetries - must be zero or more")
        if not 0 <= self.temperature <= 1:
            raise ConfigError("aiTranslation.temperature - must be between 0 and 1")


@dataclass(frozen=True)
class ExternalSyncConfig:
    """Where ``sync-translations`` pulls a spreadsheet from."""
    url: str = ""
    format: str = "csv"
    merge_strategy: str = "override"


@dataclass(frozen=True)
class TransmateConfig:
    """Validated, read-only configuration for one invocation.

    Attributes:
        default_language: Language whose catalog is the source of truth
        languages: Ordered language codes; always contains the default
        translation_file_path: Catalog path template with ``{language}``
        source_patterns: Globs selecting files scanned for keys
        ignore_patterns: Globs removed from the scan set
        key_pattern: Regex overriding ``DEFAULT_KEY_PATTERN``
        ai_translation: Provider settings, None when not configured
        external_sync: Defaults for ``sync-translations``
        max_concurrent: Languages translated in parallel by ``sync_all``
        dry_run: Default dry-run mode when an operation is not told otherwise
        base_dir: Directory that relative paths and globs resolve against
    """
    default_language: str
    languages: Tuple[str, ...]
    translation_file_path: str
    source_patterns: Tuple[str, ...] = ()
    ignore_patterns: Tuple[str, ...] = ()
    key_pattern: Optional[str] = None
    ai_translation: Optional[AITranslationConfig] = None
    external_sync: Optional[ExternalSyncConfig] = None
    max_concurrent: int = 1
    dry_run: bool = False
    base_dir: Optional[Path] = field(default=None, compare=False)

    def __post_init__(self):
        # Normalise sequences so the object stays hashable and immutable
        languages = tuple(dict.fromkeys(self.languages or ()))
        object.__setattr__(self, "languages", languages)
        object.__setattr__(self, "source_patterns", tuple(self.source_patterns or ()))
        object.__setattr__(self, "ignore_patterns", tuple(self.ignore_patterns or ()))
        if self.base_dir is not None:
            object.__setattr__(self, "base_dir", Path(self.base_dir))
        self._validate()

    def _validate(self):
        errors = []
        if not self.default_language:
            errors.append("defaultLanguage - is required")
        if not self.languages:
            errors.append(
                "languages - must not be empty"
                "\nHint: Specify at least one language code, e.g. ['en', 'es']"
            )
        elif self.default_language and self.default_language not in self.languages:
            errors.append(
                f"languages - must include the default language '{self.default_language}'"
            )
        if "{language}" not in (self.translation_file_path or ""):
            errors.append(
                "translationFilePath - missing placeholder"
                "\nHint: Translation file path must include {language} placeholder"
            )
        if self.max_concurrent < 1:
            errors.append("options.maxConcurrent - must be at least 1")
        if self.key_pattern:
            try:
                compiled = re.compile(self.key_pattern)
            except re.error as e:
                errors.append(f"keyPattern - invalid regular expression: {e}")
            else:
                if compiled.groups < 1:
                    errors.append("keyPattern - must contain a capturing group for the key")
        if self.external_sync:
            if self.external_sync.format not in EXTERNAL_FORMATS:
                errors.append(
                    f"externalSync.format - unsupported format '{self.external_sync.format}'"
                )
            if self.external_sync.merge_strategy not in MERGE_STRATEGIES:
                errors.append(
                    "externalSync.mergeStrategy - must be one of "
                    + ", ".join(MERGE_STRATEGIES)
                )
        if errors:
            raise ConfigError("Invalid configuration: " + "\n".join(errors))

    @property
    def target_languages(self) -> Tuple[str, ...]:
        """Configured languages other than the default, in config order."""
        return tuple(lang for lang in self.languages if lang != self.default_language)

    @property
    def translation_enabled(self) -> bool:
        return bool(self.ai_translation and self.ai_translation.enabled)

    def with_overrides(self, **changes) -> "TransmateConfig":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict, base_dir: Optional[Path] = None) -> "TransmateConfig":
        """Build a config from the camelCase JSON shape."""
        if not isinstance(data, dict):
            raise ConfigError("Invalid configuration: top level must be an object")

        ai = data.get("aiTranslation")
        ai_config = None
        if ai is not None:
            if not isinstance(ai, dict):
                raise ConfigError("Invalid configuration: aiTranslation - must be an object")
            ai_config = AITranslationConfig(
                enabled=_flag(ai, "enabled", False, "aiTranslation."),
                provider=str(ai.get("provider") or "openai"),
                api_key=expand_env(ai.get("apiKey") or ""),
                model=str(ai.get("model") or "gpt-4o"),
                timeout=_number(ai, "timeout", 30.0),
                max_retries=int(_number(ai, "maxRetries", 2)),
                temperature=_number(ai, "temperature", 0.3),
            )

        ext = data.get("externalSync")
        ext_config = None
        if isinstance(ext, dict):
            ext_config = ExternalSyncConfig(
                url=str(ext.get("url") or ext.get("source") or ""),
                format=str(ext.get("format") or "csv").lower(),
                merge_strategy=str(ext.get("mergeStrategy") or "override").lower(),
            )

        options = data.get("options") or {}
        if not isinstance(options, dict):
            raise ConfigError("Invalid configuration: options - must be an object")

        return cls(
            default_language=str(data.get("defaultLanguage") or ""),
            languages=_string_list(data, "languages"),
            translation_file_path=str(data.get("translationFilePath") or ""),
            source_patterns=_string_list(data, "sourcePatterns"),
            ignore_patterns=_string_list(data, "ignorePatterns"),
            key_pattern=data.get("keyPattern") or None,
            ai_translation=ai_config,
            external_sync=ext_config,
            max_concurrent=_integer(options, "maxConcurrent", 1, "options."),
            dry_run=_flag(options, "dryRun", False, "options."),
            base_dir=base_dir,
        )

    def to_dict(self) -> dict:
        """Serialize back to the JSON file shape (API key is masked)."""
        data: dict[str, Any] = {
            "defaultLanguage": self.default_language,
            "languages": list(self.languages),
            "translationFilePath": self.translation_file_path,
            "sourcePatterns": list(self.source_patterns),
            "ignorePatterns": list(self.ignore_patterns),
        }
        if self.key_pattern:
            data["keyPattern"] = self.key_pattern
        if self.ai_translation:
            ai = self.ai_translation
            data["aiTranslation"] = {
                "enabled": ai.enabled,
                "provider": ai.provider,
                "apiKey": "***" if ai.api_key else "",
                "model": ai.model,
                "timeout": ai.timeout,
                "maxRetries": ai.max_retries,
                "temperature": ai.temperature,
            }
        data["options"] = {"maxConcurrent": self.max_concurrent, "dryRun": self.dry_run}
        return data


def _number(section: dict, name: str, default: float) -> float:
    value = section.get(name, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"Invalid configuration: aiTranslation.{name} - must be a number")
    return float(value)


def _integer(section: dict, name: str, default: int, prefix: str = "") -> int:
    value = section.get(name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"Invalid configuration: {prefix}{name} - must be an integer")
    return value


def _flag(section: dict, name: str, default: bool, prefix: str = "") -> bool:
    value = section.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"Invalid configuration: {prefix}{name} - must be true or false")
    return value


def _string_list(data: dict, name: str) -> Tuple[str, ...]:
    value = data.get(name)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"Invalid configuration: {name} - must be a list of strings")
    return tuple(value)


def expand_env(value: str) -> str:
    """Replace each ``${VAR}`` reference with the environment variable's value.

    Unset variables expand to an empty string.
    """
    if not isinstance(value, str):
        return ""
    return _ENV_REFERENCE.sub(lambda m: os.environ.get(m.group(1).strip(), ""), value)


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    candidate = Path(start or Path.cwd()) / CONFIG_FILE_NAME
    return candidate if candidate.is_file() else None


def load_config(path: Optional[Path] = None, cwd: Optional[Path] = None) -> TransmateConfig:
    """Load and validate the project configuration.

    Args:
        path: Explicit config file; defaults to ``transmate.config.json``
            in ``cwd``
        cwd: Project directory (defaults to the current directory)

    Raises:
        ConfigError: file missing, not JSON, or failing validation
    """
    cwd = Path(cwd or Path.cwd())
    config_path = Path(path) if path else find_config_file(cwd)
    if config_path is None or not config_path.is_file():
        raise ConfigError(
            "Configuration file not found. Run 'transmate init' to create one."
        )

    env_file = config_path.parent / ".env"
    if env_file.is_file():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment variables from %s", env_file)

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to load configuration: {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to load configuration: {config_path}: {e.strerror or e}")

    config = TransmateConfig.from_dict(data, base_dir=config_path.parent.resolve())
    logger.debug("Loaded configuration from %s", config_path)
    return config


DEFAULT_CONFIG = {
    "defaultLanguage": "en",
    "languages": ["en", "fr", "de", "es"],
    "translationFilePath": "./src/locales/{language}.json",
    "sourcePatterns": ["./src/**/*.{ts,tsx,js,jsx}"],
    "ignorePatterns": ["./src/**/*.test.{ts,tsx,js,jsx}"],
    "aiTranslation": {
        "enabled": True,
        "provider": "openai",
        "apiKey": "${OPENAI_API_KEY}",
        "model": "gpt-4o",
    },
    "externalSync": {"url": "", "format": "csv", "mergeStrategy": "override"},
    "options": {"maxConcurrent": 1, "dryRun": False},
}


def write_default_config(directory: Optional[Path] = None, force: bool = False) -> Path:
    """Create a starter ``transmate.config.json``.

    Raises:
        ConfigError: the file exists and ``force`` is false
    """
    target = Path(directory or Path.cwd()) / CONFIG_FILE_NAME
    if target.exists() and not force:
        raise ConfigError(
            f"Configuration file {CONFIG_FILE_NAME} already exists. Use --force to overwrite."
        )
    target.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n", encoding="utf-8")
    return target
