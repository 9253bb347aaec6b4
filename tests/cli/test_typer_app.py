"""Tests for the tokenvault Typer CLI."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import orjson
import pytest
import toml
from typer.testing import CliRunner

from tokenvault import __version__
from tokenvault.cli.typer_app import app
from tokenvault.services.cache_models import utc_now
from tokenvault.services.entry_store import EntryStore
from tokenvault.shared.constants import StoreSchema

TEST_PIN = "1234"

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Config pointing the store and keyring into tmp_path."""
    path = tmp_path / "config.toml"
    with path.open("w", encoding="utf-8") as f:
        toml.dump(
            {
                "cache": {"db_path": str(tmp_path / "cache.db"), "expiration_grace_seconds": 0},
                "keyring": {"path": str(tmp_path / "keyring"), "pbkdf2_iterations": 1_000},
                "logging": {"level": "CRITICAL", "use_rich": False},
            },
            f,
        )
    return path


def invoke_json(config_path: Path, *args: str, **kwargs):
    result = runner.invoke(app, ["--config", str(config_path), "--json", *args], **kwargs)
    return result, orjson.loads(result.stdout)


class TestGlobalOptions:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(tmp_path / "absent.toml"), "--json", "stats"])

        assert result.exit_code == 1


class TestStatsAndPurge:
    def test_stats_json(self, config_path: Path, tmp_path: Path) -> None:
        # When
        result, payload = invoke_json(config_path, "stats")

        # Then
        assert result.exit_code == 0
        assert payload["success"] is True
        assert payload["command"] == "stats"
        assert payload["data"]["total_entries"] == 0
        assert payload["data"]["db_path"] == str(tmp_path / "cache.db")
        assert StoreSchema.TOKENIZED_ID_INDEX in payload["data"]["indexes"]

    def test_stats_table(self, config_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_path), "stats"])

        assert result.exit_code == 0
        assert "Entry Store" in result.stdout

    def test_purge_removes_expired_records(self, config_path: Path, tmp_path: Path) -> None:
        # Given: one expired and one live record
        past = EntryStore(tmp_path / "cache.db", clock=lambda: utc_now() - timedelta(hours=1))
        past.upsert(b"\x12\x20expired", "old", 10)
        past.upsert(b"\x12\x20live", "new", 7200)
        past.close()

        # When
        result, payload = invoke_json(config_path, "purge")

        # Then
        assert result.exit_code == 0
        assert payload["data"] == {"purged": 1}


class TestContentId:
    def test_content_id_is_order_independent(self, config_path: Path) -> None:
        _, first = invoke_json(config_path, "content-id", '{"a": 1, "b": 2}')
        _, second = invoke_json(config_path, "content-id", '{"b": 2, "a": 1}')

        assert first["data"]["content_id"] == second["data"]["content_id"]

    def test_invalid_json(self, config_path: Path) -> None:
        result, payload = invoke_json(config_path, "content-id", "{not json")

        assert result.exit_code == 1
        assert payload["success"] is False
        assert payload["errors"][0]["code"] == "SERIALIZATION_ERROR"

    def test_non_object_json(self, config_path: Path) -> None:
        result, payload = invoke_json(config_path, "content-id", "[1, 2]")

        assert result.exit_code == 1
        assert payload["success"] is False


class TestKeyCommands:
    def test_rotate_key(self, config_path: Path) -> None:
        # When
        result, first = invoke_json(config_path, "rotate-key", env={"TOKENVAULT_PIN": TEST_PIN})
        _, second = invoke_json(config_path, "rotate-key", env={"TOKENVAULT_PIN": TEST_PIN})

        # Then
        assert result.exit_code == 0
        assert first["data"]["key_id"] != second["data"]["key_id"]
        assert second["data"]["current_key_id"] == second["data"]["key_id"]
        assert second["data"]["keys_count"] == 2

    def test_explain_uses_index(self, config_path: Path) -> None:
        result, payload = invoke_json(config_path, "explain", "X", env={"TOKENVAULT_PIN": TEST_PIN})

        assert result.exit_code == 0
        assert payload["data"]["index_name"] == StoreSchema.TOKENIZED_ID_INDEX
        assert payload["data"]["uses_index"] is True

    def test_explain_upsert(self, config_path: Path) -> None:
        result, payload = invoke_json(
            config_path,
            "explain",
            "X",
            "--upsert",
            env={"TOKENVAULT_PIN": TEST_PIN},
        )

        assert result.exit_code == 0
        assert payload["data"]["index_name"] == StoreSchema.TOKENIZED_ID_INDEX


class TestSettingsCommand:
    def test_show_settings(self, config_path: Path, tmp_path: Path) -> None:
        result, payload = invoke_json(config_path, "settings")

        assert result.exit_code == 0
        assert payload["data"]["cache.db_path"] == str(tmp_path / "cache.db")
        assert payload["data"]["keyring.pbkdf2_iterations"] == 1_000

    def test_set_value_is_saved(self, config_path: Path) -> None:
        # When
        result, payload = invoke_json(config_path, "settings", "--set", "memory.max_size", "--value", "64")

        # Then
        assert result.exit_code == 0
        assert payload["data"]["new_value"] == 64
        saved = toml.load(config_path)
        assert saved["memory"]["max_size"] == 64
        assert saved["logging"]["level"] == "CRITICAL"

    def test_invalid_value_is_not_saved(self, config_path: Path) -> None:
        result, payload = invoke_json(config_path, "settings", "--set", "memory.max_size", "--value=-1")

        assert result.exit_code == 1
        assert payload["errors"][0]["code"] == "CONFIG_INVALID"
        assert "memory" not in toml.load(config_path)

    def test_unknown_setting(self, config_path: Path) -> None:
        result, payload = invoke_json(config_path, "settings", "--set", "memory.colour", "--value", "1")

        assert result.exit_code == 1
        assert payload["errors"][0]["code"] == "INVALID_ARGUMENT"

    def test_set_requires_value(self, config_path: Path) -> None:
        result, payload = invoke_json(config_path, "settings", "--set", "memory.max_size")

        assert result.exit_code == 1
        assert payload["errors"][0]["code"] == "MISSING_REQUIRED_FIELD"
