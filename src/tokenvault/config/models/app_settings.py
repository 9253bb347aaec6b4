"""Keyring and logging configuration models."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from tokenvault.shared.constants import CacheDefaults, KeyringDefaults


def _default_keyring_path() -> Path:
    return Path.home() / CacheDefaults.HOME_DIR / "keyring"


class KeyringSettings(BaseModel):
    """HMAC keyring configuration.

    The PIN itself is never part of the configuration; it is read from the
    ``TOKENVAULT_PIN`` environment variable or prompted for.
    """

    path: Path = Field(
        default_factory=_default_keyring_path,
        description="Directory holding the encrypted HMAC keys",
    )
    pbkdf2_iterations: int = Field(
        default=KeyringDefaults.PBKDF2_ITERATIONS,
        gt=0,
        description="PBKDF2 iterations for the PIN-derived wrapping key",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    file: Path | None = Field(default=None, description="Optional JSON log file path")
    use_rich: bool = Field(default=True, description="Use rich console output")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            msg = f"Unknown logging level: {v}"
            raise ValueError(msg)
        return level


__all__ = [
    "KeyringSettings",
    "LoggingSettings",
]
