"""
API key management for Transmate.

Keys are looked up in this order:
1. Environment variable (preferred for CI/production)
2. OS keychain via keyring (secure local storage)
3. Local config file (~/.transmate/keys.json)

Usage:
    from transmate.keys import KeyManager

    km = KeyManager()
    km.set_key("openai", "sk-...")
    key = km.get_key("openai")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

# Supported services and their env var names
SERVICES = {
    "openai": "OPENAI_API_KEY",
}


def env_var_for(service: str) -> str:
    return SERVICES.get(service.lower(), f"{service.upper()}_API_KEY")


@dataclass
class KeyInfo:
    """Information about an API key."""
    service: str
    is_set: bool
    source: str  # 'env', 'keyring', 'config', 'none'
    masked_value: str  # e.g., "sk-p...abcd"


class KeyManager:
    """Resolve and store provider API keys.

    Args:
        config_dir: Directory holding ``keys.json`` (default ``~/.transmate``)
        use_keyring: Consult the OS keychain
    """

    SERVICE_NAME = "transmate"

    def __init__(self, config_dir: Optional[Path] = None, use_keyring: bool = True):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".transmate"
        self.config_file = self.config_dir / "keys.json"
        self.use_keyring = use_keyring

    def _read_config(self) -> dict:
        if not self.config_file.exists():
            return {}
        try:
            data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable key file %s: %s", self.config_file, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _keyring_get(self, service: str) -> Optional[str]:
        if not self.use_keyring:
            return None
        try:
            return keyring.get_password(self.SERVICE_NAME, service)
        except KeyringError as e:
            logger.debug("Keyring unavailable: %s", e)
            return None

    def _lookup(self, service: str):
        service = service.lower()
        if env_val := os.getenv(env_var_for(service)):
            return env_val, "env"
        if key := self._keyring_get(service):
            return key, "keyring"
        if key := self._read_config().get(service):
            return key, "config"
        return None, "none"

    def get_key(self, service: str) -> Optional[str]:
        """Get API key for a service, or None if not found anywhere."""
        key, _ = self._lookup(service)
        return key

    def set_key(self, service: str, key: str) -> str:
        """Store API key for a service.

        Returns:
            Storage location used ('keyring' or 'config')
        """
        service = service.lower()

        if self.use_keyring:
            try:
                keyring.set_password(self.SERVICE_NAME, service, key)
                return "keyring"
            except KeyringError as e:
                logger.debug("Keyring unavailable, using %s: %s", self.config_file, e)

        self.config_dir.mkdir(parents=True, exist_ok=True)
        config = self._read_config()
        config[service] = key
        self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")
        self.config_file.chmod(0o600)  # Restrict permissions
        return "config"

    def delete_key(self, service: str) -> bool:
        """Delete stored API key for a service."""
        service = service.lower()
        deleted = False

        if self.use_keyring:
            try:
                keyring.delete_password(self.SERVICE_NAME, service)
                deleted = True
            except KeyringError as e:
                logger.debug("No keyring entry for %s: %s", service, e)

        config = self._read_config()
        if service in config:
            del config[service]
            self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")
            deleted = True

        return deleted

    def get_key_info(self, service: str) -> KeyInfo:
        """Get information about a stored key."""
        key, source = self._lookup(service)
        return KeyInfo(
            service=service.lower(),
            is_set=key is not None,
            source=source,
            masked_value=self._mask_key(key) if key else "",
        )

    def list_keys(self) -> list[KeyInfo]:
        """List all known services and their key status."""
        return [self.get_key_info(service) for service in SERVICES]

    @staticmethod
    def _mask_key(key: str) -> str:
        """Mask a key for display (show first 4 and last 4 chars)."""
        if len(key) <= 12:
            return "*" * len(key)
        return f"{key[:4]}...{key[-4:]}"
