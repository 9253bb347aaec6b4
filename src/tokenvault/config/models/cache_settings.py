"""Cache configuration models.

This module contains the configuration for the durable entry store and
the in-memory read-through cache in front of it.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from tokenvault.shared.constants import CacheDefaults


def _default_db_path() -> Path:
    return Path.home() / CacheDefaults.HOME_DIR / CacheDefaults.DB_FILENAME


class CacheSettings(BaseModel):
    """Durable entry store configuration.

    Expired records stay in the store for ``expiration_grace_seconds`` after
    their logical expiry before they are physically removed.
    """

    db_path: Path = Field(
        default_factory=_default_db_path,
        description="SQLite database file for cache entries",
    )
    auto_remove_expired_records: bool = Field(
        default=CacheDefaults.AUTO_REMOVE_EXPIRED_RECORDS,
        description="Physically remove records after the grace period",
    )
    expiration_grace_seconds: float = Field(
        default=CacheDefaults.EXPIRATION_GRACE_PERIOD,
        ge=0,
        description="Delay between logical expiry and physical removal",
    )
    reaper_interval_seconds: float = Field(
        default=CacheDefaults.REAPER_INTERVAL,
        ge=0,
        description="Seconds between background purges (0 disables the reaper)",
    )


class MemoryCacheSettings(BaseModel):
    """In-memory read-through cache configuration."""

    max_size: int = Field(
        default=CacheDefaults.MEMORY_MAX_SIZE,
        gt=0,
        description="Maximum number of entries held in memory",
    )
    max_age_seconds: float = Field(
        default=CacheDefaults.MEMORY_MAX_AGE,
        gt=0,
        description="Maximum time an entry is held in memory",
    )


__all__ = [
    "CacheSettings",
    "MemoryCacheSettings",
]
