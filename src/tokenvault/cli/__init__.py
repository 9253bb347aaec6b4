"""TokenVault command-line interface."""

from tokenvault.cli.typer_app import app

__all__ = ["app"]
