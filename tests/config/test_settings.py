"""Tests for settings models and the settings loader."""

from __future__ import annotations

from pathlib import Path

import pytest
import toml
from pydantic import ValidationError

from tokenvault.config import loader as loader_module
from tokenvault.config.loader import SettingsLoader, load_settings
from tokenvault.config.models.settings import Settings
from tokenvault.shared.constants import CacheDefaults
from tokenvault.shared.errors import ConfigurationError, ErrorCode


@pytest.fixture
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory with no default config file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(loader_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing" / "config.toml")
    return tmp_path


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    with path.open("w", encoding="utf-8") as f:
        toml.dump(
            {
                "cache": {"db_path": str(tmp_path / "entries.db"), "expiration_grace_seconds": 5},
                "memory": {"max_size": 42},
                "logging": {"level": "debug"},
            },
            f,
        )
    return path


class TestSettingsModel:
    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.cache.db_path.name == CacheDefaults.DB_FILENAME
        assert settings.cache.auto_remove_expired_records is CacheDefaults.AUTO_REMOVE_EXPIRED_RECORDS
        assert settings.memory.max_size == CacheDefaults.MEMORY_MAX_SIZE
        assert settings.logging.level == "INFO"
        assert settings.logging.file is None

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # Given
        monkeypatch.setenv("TOKENVAULT_MEMORY__MAX_SIZE", "7")
        monkeypatch.setenv("TOKENVAULT_CACHE__AUTO_REMOVE_EXPIRED_RECORDS", "false")

        # When
        settings = Settings()

        # Then
        assert settings.memory.max_size == 7
        assert settings.cache.auto_remove_expired_records is False

    @pytest.mark.parametrize(
        "overrides",
        [
            {"memory": {"max_size": 0}},
            {"memory": {"max_age_seconds": -1}},
            {"cache": {"expiration_grace_seconds": -5}},
            {"keyring": {"pbkdf2_iterations": 0}},
            {"logging": {"level": "LOUD"}},
        ],
    )
    def test_validation_errors(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            Settings(**overrides)

    def test_log_level_is_normalized(self) -> None:
        assert Settings(logging={"level": "warning"}).logging.level == "WARNING"

    def test_toml_round_trip(self, tmp_path: Path) -> None:
        # Given
        original = Settings(
            cache={"db_path": tmp_path / "a.db", "reaper_interval_seconds": 0},
            memory={"max_size": 3},
        )
        path = tmp_path / "nested" / "config.toml"

        # When
        original.to_toml_file(path)
        loaded = Settings.from_toml_file(path)

        # Then
        assert loaded.cache.db_path == tmp_path / "a.db"
        assert loaded.cache.reaper_interval_seconds == 0
        assert loaded.memory.max_size == 3
        assert "file" not in toml.load(path)["logging"]

    def test_from_toml_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_toml_file(tmp_path / "nope.toml")


class TestLoadSettings:
    """Failure-first tests for load_settings."""

    def test_missing_explicit_file(self, isolated_cwd: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(isolated_cwd / "absent.toml")

        assert exc_info.value.code == ErrorCode.FILE_NOT_FOUND

    def test_invalid_values(self, isolated_cwd: Path) -> None:
        path = isolated_cwd / "bad.toml"
        path.write_text("[memory]\nmax_size = -1\n", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(path)

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID

    def test_malformed_toml(self, isolated_cwd: Path) -> None:
        path = isolated_cwd / "broken.toml"
        path.write_text("[memory\nmax_size = ", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(path)

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID

    def test_environment_only_fallback(self, isolated_cwd: Path) -> None:
        settings = load_settings()

        assert settings.memory.max_size == CacheDefaults.MEMORY_MAX_SIZE

    def test_working_directory_file(self, isolated_cwd: Path) -> None:
        (isolated_cwd / "tokenvault.toml").write_text("[memory]\nmax_size = 11\n", encoding="utf-8")

        assert load_settings().memory.max_size == 11

    def test_dotenv_file(self, isolated_cwd: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        # Given
        monkeypatch.delenv("TOKENVAULT_MEMORY__MAX_SIZE", raising=False)
        (isolated_cwd / ".env").write_text("TOKENVAULT_MEMORY__MAX_SIZE=13\n", encoding="utf-8")

        try:
            # When
            settings = load_settings()

            # Then
            assert settings.memory.max_size == 13
        finally:
            monkeypatch.delenv("TOKENVAULT_MEMORY__MAX_SIZE", raising=False)

    def test_explicit_file(self, config_file: Path) -> None:
        settings = load_settings(config_file)

        assert settings.memory.max_size == 42
        assert settings.cache.expiration_grace_seconds == 5
        assert settings.logging.level == "DEBUG"


class TestSettingsLoader:
    def test_get_config_is_cached(self, config_file: Path) -> None:
        loader = SettingsLoader(config_file)

        assert loader.get_config() is loader.get_config()

    def test_reload_config(self, config_file: Path, tmp_path: Path) -> None:
        # Given
        loader = SettingsLoader(config_file)
        first = loader.get_config()
        other = tmp_path / "other.toml"
        other.write_text("[memory]\nmax_size = 99\n", encoding="utf-8")

        # When
        reloaded = loader.reload_config(other)

        # Then
        assert reloaded is not first
        assert reloaded.memory.max_size == 99
        assert loader.config_path == other

    def test_update_and_save_config(self, config_file: Path) -> None:
        # Given
        loader = SettingsLoader(config_file)

        def updater(settings: Settings) -> None:
            settings.memory.max_size = 64

        # When
        updated = loader.update_and_save_config(updater)

        # Then
        assert updated.memory.max_size == 64
        assert loader.get_config() is updated
        assert toml.load(config_file)["memory"]["max_size"] == 64

    def test_update_rejects_invalid_values(self, config_file: Path) -> None:
        # Given
        loader = SettingsLoader(config_file)
        before = loader.get_config()

        def updater(settings: Settings) -> None:
            settings.memory.max_size = -3

        # When & Then
        with pytest.raises(ConfigurationError) as exc_info:
            loader.update_and_save_config(updater)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID
        assert loader.get_config() is before
        assert toml.load(config_file)["memory"]["max_size"] == 42
