"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for Settings instance
- Configuration update and save operations
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from tokenvault.config.models.settings import Settings
from tokenvault.shared.constants import CacheDefaults
from tokenvault.shared.errors import ConfigurationError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / CacheDefaults.HOME_DIR / "config.toml"


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking pattern to ensure thread-safety
    while minimizing lock overhead.
    """

    def __init__(self, config_path: Path | str | None = None) -> None:
        self.config_path = Path(config_path) if config_path is not None else None
        self._instance: Settings | None = None
        self._lock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the settings instance, loading it on first use."""
        # First check (without lock for performance)
        if self._instance is None:
            # Second check (with lock for thread-safety)
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings(self.config_path)

        return self._instance

    def reload_config(self, config_path: Path | str | None = None) -> Settings:
        """Reload the settings instance from configuration files.

        Args:
            config_path: Replaces the configured path when given.
        """
        with self._lock:
            if config_path is not None:
                self.config_path = Path(config_path)
            self._instance = load_settings(self.config_path)

        return self._instance

    def update_and_save_config(
        self,
        updater: Callable[[Settings], None],
        config_path: Path | str | None = None,
    ) -> Settings:
        """Update configuration, validate, save to file, and replace the cached instance.

        Args:
            updater: Callable that modifies a Settings copy in-place
            config_path: Path to save to (defaults to the loaded path)

        Raises:
            ConfigurationError: If validation fails or save operation fails
        """
        target = Path(config_path or self.config_path or DEFAULT_CONFIG_PATH)

        with self._lock:
            try:
                updated = self.get_config().model_copy(deep=True)
                updater(updated)

                # model_copy skips validation
                validated = Settings.model_validate(updated.model_dump())
                validated.to_toml_file(target)

                self._instance = validated
            except (ValidationError, OSError, TypeError, ValueError) as e:
                logger.exception("Failed to update and save configuration")
                raise ConfigurationError(
                    f"Configuration update failed: {e}",
                    ErrorContext(
                        operation="update_and_save_config",
                        file_path=str(target),
                    ),
                    original_error=e,
                    code=ErrorCode.CONFIG_INVALID,
                ) from e

        logger.info("Configuration updated and saved successfully to %s", target)
        return validated


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from a TOML file or the environment.

    A ``.env`` file in the working directory is loaded first, without
    overriding variables that are already set.

    Args:
        config_path: Optional TOML file. If None, the default locations are
            tried and environment variables alone are used as a fallback.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    load_dotenv(Path(".env"), override=False)

    candidates = (
        [Path(config_path)]
        if config_path is not None
        else [Path("tokenvault.toml"), DEFAULT_CONFIG_PATH]
    )

    try:
        for path in candidates:
            if config_path is not None or path.exists():
                logger.debug("Loading configuration from %s", path)
                return Settings.from_toml_file(path)
        return Settings()
    except FileNotFoundError as e:
        raise ConfigurationError(
            str(e),
            ErrorContext(operation="load_settings", file_path=str(config_path)),
            original_error=e,
            code=ErrorCode.FILE_NOT_FOUND,
        ) from e
    except (ValidationError, OSError, ValueError) as e:
        # toml.TomlDecodeError is a ValueError
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            ErrorContext(operation="load_settings", file_path=str(config_path)),
            original_error=e,
            code=ErrorCode.CONFIG_INVALID,
        ) from e


# Global loader instance
_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe)."""
    return _loader.get_config()


def reload_config(config_path: Path | str | None = None) -> Settings:
    """Reload the global settings instance from configuration files."""
    return _loader.reload_config(config_path)


def update_and_save_config(
    updater: Callable[[Settings], None],
    config_path: Path | str | None = None,
) -> Settings:
    """Update configuration, validate, save to file, and reload global cache."""
    return _loader.update_and_save_config(updater, config_path)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
    "update_and_save_config",
]
