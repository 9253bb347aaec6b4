"""
CLI Context Management Module

Holds the options parsed by the main callback so every command reads the
same configuration path, log level and output mode.
"""

from __future__ import annotations

import contextvars
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CliContext(BaseModel):
    """
    CLI context model for managing global state.

    Attributes:
        config_path: Optional TOML configuration file
        log_level: Logging level override (None keeps the configured level)
        json_output: Whether to output in JSON format
    """

    config_path: Path | None = Field(default=None, description="Configuration file")
    log_level: LogLevel | None = Field(default=None, description="Logging level")
    json_output: bool = Field(default=False, description="Whether to output in JSON format")


_cli_context: contextvars.ContextVar[CliContext | None] = contextvars.ContextVar(
    "tokenvault_cli_context",
    default=None,
)


def set_cli_context(context: CliContext) -> None:
    _cli_context.set(context)


def get_cli_context() -> CliContext:
    """Current CLI context, or defaults when no callback has run."""
    context = _cli_context.get()
    if context is None:
        context = CliContext()
        _cli_context.set(context)
    return context


def clear_cli_context() -> None:
    _cli_context.set(None)
