"""
TokenVault Typer CLI Application

Administrative commands for a tokenized cache: store statistics, purging
expired records, query plans, content ids and key rotation.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Any

import orjson
import typer
from rich.console import Console
from rich.table import Table

from tokenvault import __version__
from tokenvault.cache import TokenizedCache
from tokenvault.cli.context import CliContext, LogLevel, get_cli_context, set_cli_context
from tokenvault.cli.error_handler import format_json_output, handle_cli_error
from tokenvault.config.loader import SettingsLoader, load_settings
from tokenvault.config.models.settings import Settings
from tokenvault.security.keyring import HmacKeyring, KeyringTokenizerProvider
from tokenvault.services.entry_store import EntryStore
from tokenvault.shared.errors import ErrorCode, ErrorContext, InvalidArgumentError
from tokenvault.shared.logging import ROOT_LOGGER_NAME, setup_structured_logger

console = Console()

pin_option = typer.Option(
    "--pin",
    envvar="TOKENVAULT_PIN",
    prompt=True,
    hide_input=True,
    help="PIN protecting the HMAC keyring",
)


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"tokenvault {__version__}")
        raise typer.Exit


def main_callback(
    config_path: Path | None,
    log_level: LogLevel | None,
    json_output: bool,
) -> CliContext:
    """
    Store the common options and configure logging.

    Args:
        config_path: Optional TOML configuration file
        log_level: Overrides the configured logging level
        json_output: Whether to output in JSON format
    """
    context = CliContext(
        config_path=config_path,
        log_level=log_level,
        json_output=json_output,
    )
    set_cli_context(context)

    settings = load_settings(config_path)
    setup_structured_logger(
        ROOT_LOGGER_NAME,
        level=log_level.value if log_level else settings.logging.level,
        log_file=str(settings.logging.file) if settings.logging.file else None,
        use_rich_console=settings.logging.use_rich and not json_output,
    )
    return context


app = typer.Typer(
    name="tokenvault",
    help="Administer a privacy-preserving tokenized cache.",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="TOML configuration file", dir_okay=False),
    ] = None,
    log_level: Annotated[
        LogLevel | None,
        typer.Option("--log-level", help="Logging level", case_sensitive=False),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output in JSON format")] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version"),
    ] = False,
) -> None:
    """Main CLI callback with error handling."""
    try:
        main_callback(config_path, log_level, json_output)
    except Exception as e:
        exit_code = handle_cli_error(e, "main-callback", json_output=json_output)
        raise typer.Exit(exit_code) from e


def _settings() -> Settings:
    return load_settings(get_cli_context().config_path)


def _emit(command: str, data: dict[str, Any]) -> bool:
    """Write JSON output if requested; returns True when it did."""
    if not get_cli_context().json_output:
        return False
    sys.stdout.write(format_json_output(command, success=True, data=data).decode("utf-8"))
    sys.stdout.write("\n")
    return True


def _run(command: str, fn: Callable[[], None]) -> None:
    """Run a command body, reporting failures with exit code 1."""
    try:
        fn()
    except Exception as e:
        exit_code = handle_cli_error(e, command, json_output=get_cli_context().json_output)
        raise typer.Exit(exit_code) from e


def _open_store(settings: Settings) -> EntryStore:
    return EntryStore(
        settings.cache.db_path,
        auto_remove_expired_records=settings.cache.auto_remove_expired_records,
        grace_period_seconds=settings.cache.expiration_grace_seconds,
    )


def _open_keyring(settings: Settings, pin: str) -> HmacKeyring:
    return HmacKeyring(
        pin,
        base_path=settings.keyring.path,
        iterations=settings.keyring.pbkdf2_iterations,
    )


@app.command("stats")
def stats_command() -> None:
    """Show entry store statistics."""

    def _stats() -> None:
        with _open_store(_settings()) as store:
            info = store.get_store_info()

        if _emit("stats", info):
            return

        table = Table(title="Entry Store", show_header=True, header_style="bold magenta")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Database", info["db_path"])
        table.add_row("Total Entries", str(info["total_entries"]))
        table.add_row("Live Entries", str(info["live_entries"]))
        table.add_row("Expired Entries", str(info["expired_entries"]))
        table.add_row("Auto Remove Expired", str(info["auto_remove_expired_records"]))
        table.add_row("Grace Period (s)", str(info["grace_period_seconds"]))
        table.add_row("Indexes", ", ".join(info["indexes"]))
        console.print(table)

    _run("stats", _stats)


@app.command("purge")
def purge_command() -> None:
    """Remove records expired for longer than the grace period."""

    def _purge() -> None:
        with _open_store(_settings()) as store:
            purged = store.purge_expired()

        if not _emit("purge", {"purged": purged}):
            console.print(f"[green]Purged {purged} expired entries[/green]")

    _run("purge", _purge)


@app.command("explain")
def explain_command(
    plaintext_id: Annotated[str, typer.Argument(metavar="ID", help="Plaintext id to look up")],
    pin: Annotated[str, pin_option],
    upsert: Annotated[bool, typer.Option("--upsert", help="Explain the upsert match instead")] = False,
) -> None:
    """Show the store query plan used to look up an id."""

    def _explain() -> None:
        settings = _settings()
        provider = KeyringTokenizerProvider(_open_keyring(settings, pin))
        with TokenizedCache(_open_store(settings), provider) as cache:
            if upsert:
                plan = cache.store.explain_upsert(cache.tokenize_id(plaintext_id).tokenized_id)
            else:
                plan = cache.get(id=plaintext_id, explain=True)

        data = {
            "statement": plan.statement,
            "details": plan.details,
            "index_name": plan.index_name,
            "uses_index": plan.uses_index,
        }
        if _emit("explain", data):
            return

        console.print(f"[blue]Statement:[/blue] {plan.statement}")
        for detail in plan.details:
            console.print(f"  {detail}")
        if plan.uses_index:
            console.print(f"[green]Uses index {plan.index_name}[/green]")
        else:
            console.print("[yellow]No index used[/yellow]")

    _run("explain", _explain)


@app.command("content-id")
def content_id_command(
    content: Annotated[str, typer.Argument(help="JSON object to derive the id from")],
) -> None:
    """Print the content-derived id of a JSON object."""

    def _content_id() -> None:
        try:
            parsed = orjson.loads(content)
        except orjson.JSONDecodeError as e:
            raise InvalidArgumentError(
                f"Content is not valid JSON: {e}",
                ErrorContext(operation="content_id"),
                code=ErrorCode.SERIALIZATION_ERROR,
                original_error=e,
            ) from e

        result = TokenizedCache.create_content_id(parsed)
        if not _emit("content-id", {"content_id": result}):
            typer.echo(result)

    _run("content-id", _content_id)


@app.command("rotate-key")
def rotate_key_command(pin: Annotated[str, pin_option]) -> None:
    """Generate a new HMAC key version and make it current."""

    def _rotate() -> None:
        keyring = _open_keyring(_settings(), pin)
        key_id = keyring.rotate()
        info = keyring.get_keyring_info()

        if not _emit("rotate-key", {"key_id": key_id, **info}):
            console.print(f"[green]Current key is now {key_id}[/green] ({info['keys_count']} versions)")

    _run("rotate-key", _rotate)


@app.command("settings")
def settings_command(
    set_key: Annotated[
        str | None,
        typer.Option("--set", help="Dotted setting to change, e.g. memory.max_size"),
    ] = None,
    value: Annotated[str | None, typer.Option("--value", help="New value for --set")] = None,
) -> None:
    """Show the effective settings, or change one and save the config file."""

    def _settings_command() -> None:
        if set_key is None:
            _show_settings(_settings())
            return
        if value is None:
            raise InvalidArgumentError(
                "--value is required with --set",
                ErrorContext(operation="settings"),
                code=ErrorCode.MISSING_REQUIRED_FIELD,
            )

        loader = SettingsLoader(get_cli_context().config_path)
        old_value = _flatten(loader.get_config()).get(set_key)
        updated = loader.update_and_save_config(lambda s: _set_setting(s, set_key, value))
        new_value = _flatten(updated)[set_key]

        if not _emit("settings", {"key": set_key, "old_value": old_value, "new_value": new_value}):
            console.print(f"[green]Setting '{set_key}' updated[/green]")
            console.print(f"  Old value: {old_value}")
            console.print(f"  New value: {new_value}")

    _run("settings", _settings_command)


def _flatten(settings: Settings) -> dict[str, Any]:
    return {
        f"{section}.{field}": field_value
        for section, values in settings.model_dump(mode="json").items()
        for field, field_value in values.items()
    }


def _show_settings(settings: Settings) -> None:
    values = _flatten(settings)
    if _emit("settings", values):
        return

    table = Table(title="Settings", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, field_value in values.items():
        table.add_row(key, str(field_value))
    console.print(table)


def _set_setting(settings: Settings, dotted_key: str, value: str) -> None:
    """Replace one section of ``settings`` with a validated copy carrying ``value``."""
    section_name, _, field = dotted_key.partition(".")
    section = getattr(settings, section_name, None) if section_name in Settings.model_fields else None
    if section is None or field not in type(section).model_fields:
        raise InvalidArgumentError(
            f"Unknown setting: {dotted_key}",
            ErrorContext(operation="settings", additional_data={"key": dotted_key}),
        )
    setattr(settings, section_name, type(section).model_validate({**section.model_dump(), field: value}))


__all__ = ["app", "main_callback"]
