"""
Error taxonomy for Transmate.

Configuration and key-shape errors abort an operation before anything is
written. Catalog and provider errors are caught at the language boundary by
the sync engine and recorded in the operation report.
"""

from __future__ import annotations


class TransmateError(Exception):
    """Base class for every error raised by the engine."""


class ConfigError(TransmateError):
    """Malformed or missing configuration."""


class NoSourceFilesError(TransmateError):
    """Extraction found no candidate source files after exclusion."""


class InvalidKeyError(TransmateError):
    """A key path is empty or contains an empty segment."""

    def __init__(self, key: str, reason: str = "empty segment"):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid translation key {key!r}: {reason}")


class CatalogIOError(TransmateError):
    """A catalog file could not be read or written."""

    def __init__(self, path, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class CatalogNotFoundError(CatalogIOError):
    """The catalog file does not exist and creation was not requested."""

    def __init__(self, path):
        super().__init__(path, "translation file not found")


class InvalidCatalogError(CatalogIOError):
    """The catalog parsed but is not a tree of string leaves."""


class ProviderDisabledError(TransmateError):
    """AI translation was requested but is not enabled in the config."""

    def __init__(self, message: str = ""):
        super().__init__(
            message
            or "AI translation is not enabled in config. "
            "Enable aiTranslation to use translation features."
        )


class MissingCredentialError(TransmateError):
    """No API key could be resolved for the configured provider."""

    def __init__(self, provider: str, env_var: str):
        self.provider = provider
        self.env_var = env_var
        super().__init__(
            f"{provider} API key is missing. Set {env_var} in your environment, "
            f"store it with 'transmate keys set {provider.lower()}', "
            "or update your config file."
        )


class ProviderRequestError(TransmateError):
    """The translation provider failed (timeout, HTTP error, bad response)."""

    def __init__(self, message: str, provider: str = ""):
        self.provider = provider
        self.upstream_message = message
        prefix = f"{provider} translation failed" if provider else "Translation failed"
        super().__init__(f"{prefix}: {message}")
