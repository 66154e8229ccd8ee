"""
Transmate: translation catalog management for application localization.

Keeps per-language JSON catalogs in step with each other and with the keys
used in source code, filling gaps with an AI translation provider.

Usage:
    from transmate import load_config, SyncOrchestrator

    config = load_config()
    report = SyncOrchestrator().sync_all(config)
"""

__version__ = "0.1.0"

from transmate.config import TransmateConfig, load_config
from transmate.errors import TransmateError
from transmate.report import LanguageStatus, OperationReport, Origin
from transmate.sync import SyncOrchestrator, add_key, extract_keys, sync_all, translate_all

__all__ = [
    "TransmateConfig",
    "load_config",
    "TransmateError",
    "OperationReport",
    "LanguageStatus",
    "Origin",
    "SyncOrchestrator",
    "add_key",
    "extract_keys",
    "sync_all",
    "translate_all",
]
