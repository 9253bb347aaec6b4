"""
CLI Error Handling Utilities

Consistent error output and exit codes for CLI commands.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import orjson

from tokenvault.shared.errors import (
    DomainError,
    ErrorCode,
    ErrorContext,
    TokenVaultError,
)

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def format_json_output(
    command: str,
    *,
    success: bool,
    errors: list[dict[str, Any]] | None = None,
    data: Any = None,
) -> bytes:
    """Format command output as JSON.

    Args:
        command: The command that was executed
        success: Whether the operation was successful
        errors: Error payloads
        data: Result payload
    """
    output: dict[str, Any] = {
        "success": success,
        "command": command,
    }

    if errors:
        output["errors"] = errors

    if data is not None:
        output["data"] = data

    return orjson.dumps(output, option=orjson.OPT_INDENT_2, default=str)


def handle_cli_error(
    error: BaseException,
    command: str,
    *,
    json_output: bool = False,
) -> int:
    """Log and report an error raised by a command.

    Returns:
        Exit code for the CLI command
    """
    if isinstance(error, KeyboardInterrupt):
        logger.warning("Command interrupted: %s", command)
        _output_error(command, "Command interrupted by user", {}, json_output=json_output)
        return EXIT_INTERRUPTED

    if isinstance(error, TokenVaultError):
        payload = error.to_dict()
        message = error.message
        # expected outcomes (not found, bad input) need no traceback
        if isinstance(error, DomainError):
            logger.info("%s failed: %s", command, error)
        else:
            logger.error(
                "CLI error in %s: %s",
                command,
                error,
                extra={"error_code": error.code.value, "context": error.context.safe_dict()},
                exc_info=error.original_error is not None,
            )
    else:
        unexpected = TokenVaultError(
            ErrorCode.CLI_UNEXPECTED_ERROR,
            f"Unexpected error: {error}",
            ErrorContext(operation=command),
            original_error=error,
        )
        payload = unexpected.to_dict()
        message = unexpected.message
        logger.exception("Unexpected CLI error in %s", command)

    _output_error(command, message, payload, json_output=json_output)
    return EXIT_ERROR


def _output_error(
    command: str,
    message: str,
    payload: dict[str, Any],
    *,
    json_output: bool,
) -> None:
    if json_output:
        sys.stdout.write(
            format_json_output(command, success=False, errors=[payload or {"message": message}]).decode("utf-8")
        )
        sys.stdout.write("\n")
    else:
        sys.stderr.write(f"Error: {message}\n")
