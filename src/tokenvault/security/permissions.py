"""File permission utilities for TokenVault.

Key material and the durable store database must only be readable by
their owner.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from tokenvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InfrastructureError,
)

logger = logging.getLogger(__name__)

OWNER_READ_WRITE = 0o600
OWNER_ONLY_DIR = 0o700


def set_secure_file_permissions(file_path: Path | str) -> None:
    """Set owner read/write only permissions (600) on a file.

    Windows has no POSIX modes; the call is a no-op there.

    Args:
        file_path: Path to the file to secure

    Raises:
        InfrastructureError: If the file is missing or permissions cannot be set
    """
    file_path = Path(file_path)
    context = ErrorContext(
        operation="set_secure_file_permissions",
        file_path=str(file_path),
    )

    if not file_path.exists():
        raise InfrastructureError(
            ErrorCode.FILE_NOT_FOUND,
            f"Cannot set permissions: file does not exist: {file_path}",
            context,
        )

    if sys.platform == "win32":
        logger.debug("Skipping POSIX permissions on Windows: %s", file_path)
        return

    try:
        os.chmod(file_path, OWNER_READ_WRITE)
    except PermissionError as e:
        raise InfrastructureError(
            ErrorCode.PERMISSION_DENIED,
            f"Cannot set permissions: {file_path}",
            context,
            original_error=e,
        ) from e

    logger.debug("Secure permissions set for: %s", file_path)


def ensure_secure_directory(dir_path: Path | str) -> Path:
    """Create a directory (and parents) readable only by its owner.

    Args:
        dir_path: Directory to create

    Returns:
        The directory path

    Raises:
        InfrastructureError: If the directory cannot be created or secured
    """
    dir_path = Path(dir_path)
    try:
        dir_path.mkdir(mode=OWNER_ONLY_DIR, parents=True, exist_ok=True)
        if sys.platform != "win32":
            os.chmod(dir_path, OWNER_ONLY_DIR)
    except PermissionError as e:
        raise InfrastructureError(
            ErrorCode.PERMISSION_DENIED,
            f"Cannot create secure directory: {dir_path}",
            ErrorContext(operation="ensure_secure_directory", file_path=str(dir_path)),
            original_error=e,
        ) from e
    return dir_path


def write_secure_file(file_path: Path | str, data: bytes) -> None:
    """Write bytes to a file and restrict it to its owner.

    Args:
        file_path: Destination file
        data: Bytes to write

    Raises:
        InfrastructureError: If writing or securing the file fails
    """
    file_path = Path(file_path)
    try:
        file_path.write_bytes(data)
    except OSError as e:
        raise InfrastructureError(
            ErrorCode.PERMISSION_DENIED,
            f"Cannot write file: {file_path}",
            ErrorContext(operation="write_secure_file", file_path=str(file_path)),
            original_error=e,
        ) from e
    set_secure_file_permissions(file_path)
