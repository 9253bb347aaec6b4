"""Errors raised by tokenvault.

Every error carries an ErrorCode and an ErrorContext. The subclasses split
caller mistakes and lookup misses (DomainError) from store, key provider and
configuration failures, so callers can decide what is worth retrying.
Contexts are rendered through safe_dict(), which masks plaintext ids and
key material before anything reaches a log line.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# values allowed in ErrorContext.additional_data
PrimitiveContextValue = Union[str, int, float, bool]

# Keys masked by safe_dict so plaintext ids and key material are never logged
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("plaintext_id", "pin", "secret")


class ErrorCode(str, Enum):
    """Stable machine-readable error codes."""

    # Caller input errors
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    CONFLICTING_ARGUMENTS = "CONFLICTING_ARGUMENTS"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"

    # Lookup outcomes
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"

    # Durable store errors
    STORE_FAILURE = "STORE_FAILURE"
    STORE_NOT_INITIALIZED = "STORE_NOT_INITIALIZED"
    STORE_CORRUPTED = "STORE_CORRUPTED"

    # Key provider errors
    KEY_PROVIDER_FAILURE = "KEY_PROVIDER_FAILURE"
    KEY_NOT_FOUND = "KEY_NOT_FOUND"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"

    # File system errors
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CONFIG_INVALID = "CONFIG_INVALID"

    # CLI errors
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal and bytes to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        elif isinstance(val, bytes):
            coerced[key] = val.hex()
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal, bytes are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types are allowed in additional_data to ensure safe
    serialization and prevent sensitive data leakage.

    Attributes:
        operation: Optional operation name that caused the error
        file_path: Optional file path associated with the error
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    file_path: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Coerce additional_data to primitives."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with sensitive keys removed.

        Args:
            mask_keys: Keys to drop from additional_data. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary that always carries an ``additional_data`` key.

        Example:
            >>> ErrorContext(operation="get", additional_data={"plaintext_id": "x"}).safe_dict()
            {'operation': 'get', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None:
            data["operation"] = self.operation
        if self.file_path is not None:
            data["file_path"] = self.file_path

        data["additional_data"] = {
            key: val
            for key, val in (self.additional_data or {}).items()
            if key not in mask_keys
        }
        return data


class TokenVaultError(Exception):
    """Base exception class for all TokenVault errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        """Initialize TokenVaultError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error
        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging with sensitive keys masked."""
        result: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
        }
        if self.original_error is not None:
            result["original_error"] = str(self.original_error)
        return result


class DomainError(TokenVaultError):
    """Errors raised by caching rules: bad input, missing entries."""


class InfrastructureError(TokenVaultError):
    """Errors raised by the durable store, file system or drivers."""


class ApplicationError(TokenVaultError):
    """Errors raised while wiring or configuring the application."""


class SecurityError(TokenVaultError):
    """Errors raised by key material handling."""


class InvalidArgumentError(DomainError):
    """Raised for bad, missing or conflicting caller inputs.

    Always raised before any store or key-provider I/O.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        code: ErrorCode = ErrorCode.INVALID_ARGUMENT,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)


class NotFoundError(DomainError):
    """No live entry exists for a key.

    A normal, expected outcome. Missing and expired-but-present records are
    reported identically.
    """

    http_status_code = 404
    public = True

    def __init__(
        self,
        message: str = "Entry not found.",
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(ErrorCode.ENTRY_NOT_FOUND, message, context)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["http_status_code"] = self.http_status_code
        result["public"] = self.public
        return result


class StoreFailureError(InfrastructureError):
    """Durable store connectivity, constraint or driver failure."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        original_error: BaseException | None = None,
        code: ErrorCode = ErrorCode.STORE_FAILURE,
    ) -> None:
        super().__init__(code, message, context, original_error)


class KeyProviderError(SecurityError):
    """The external tokenizer could not be resolved or failed to sign."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        original_error: BaseException | None = None,
        code: ErrorCode = ErrorCode.KEY_PROVIDER_FAILURE,
    ) -> None:
        super().__init__(code, message, context, original_error)


class ConfigurationError(ApplicationError):
    """Configuration could not be loaded, validated or saved."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        original_error: BaseException | None = None,
        code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
    ) -> None:
        super().__init__(code, message, context, original_error)


def create_missing_id_error(operation: str) -> InvalidArgumentError:
    """Create the error raised when neither id nor tokenized_id was given."""
    return InvalidArgumentError(
        'Either "id" or "tokenized_id" are required.',
        ErrorContext(operation=operation),
        code=ErrorCode.MISSING_REQUIRED_FIELD,
    )


def create_conflicting_id_error(operation: str) -> InvalidArgumentError:
    """Create the error raised when both id and tokenized_id were given."""
    return InvalidArgumentError(
        'Only one of "id" and "tokenized_id" must be given.',
        ErrorContext(operation=operation),
        code=ErrorCode.CONFLICTING_ARGUMENTS,
    )


def create_not_found_error(cache_key: str, operation: str) -> NotFoundError:
    """Create a NotFoundError carrying a truncated cache key."""
    return NotFoundError(
        context=ErrorContext(
            operation=operation,
            additional_data={"cache_key": cache_key[:16]},
        ),
    )
