"""Configuration domain models."""

from __future__ import annotations

from .app_settings import KeyringSettings, LoggingSettings
from .cache_settings import CacheSettings, MemoryCacheSettings
from .settings import Settings

__all__ = [
    "CacheSettings",
    "KeyringSettings",
    "LoggingSettings",
    "MemoryCacheSettings",
    "Settings",
]
