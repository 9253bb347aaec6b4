"""
TokenVault Package Main Entry Point

Runs the CLI when the package is executed with ``python -m tokenvault``.
"""

import logging
import sys

from tokenvault.cli.error_handler import EXIT_INTERRUPTED
from tokenvault.cli.typer_app import app

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        logger.info("Command interrupted by user")
        sys.exit(EXIT_INTERRUPTED)
