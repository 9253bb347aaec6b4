"""TokenVault Configuration Module

This module provides unified access to configuration models and settings
management:
- Settings: Main configuration facade
- Loader functions: get_config, load_settings, reload_config, update_and_save_config
- Domain models: Cache, Memory, Keyring and Logging settings
"""

from __future__ import annotations

from .models import (
    CacheSettings,
    KeyringSettings,
    LoggingSettings,
    MemoryCacheSettings,
    Settings,
)
from .loader import (
    SettingsLoader,
    get_config,
    load_settings,
    reload_config,
    update_and_save_config,
)

__all__ = [
    "CacheSettings",
    "KeyringSettings",
    "LoggingSettings",
    "MemoryCacheSettings",
    "Settings",
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
    "update_and_save_config",
]
