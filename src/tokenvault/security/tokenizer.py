"""Identifier tokenization.

Plaintext identifiers are turned into durable-store keys with a keyed MAC
whose key lives outside the database, so a stolen database on its own does
not reveal which identifier a record belongs to. Structured content can also
be given a plain content-derived id that never touches the keyed MAC.

Both kinds of id carry a 2-byte multihash tag (hash function, digest length)
so the format can change later without ambiguity.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import jcs
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac

from tokenvault.shared.constants import Multihash
from tokenvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InvalidArgumentError,
    KeyProviderError,
    TokenVaultError,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenizerHandle(Protocol):
    """A versioned keyed-MAC capability."""

    @property
    def key_id(self) -> str: ...

    def sign(self, data: bytes) -> bytes: ...


class TokenizerProvider(Protocol):
    """Source of the current tokenizer handle; owns key rotation."""

    def get_current(self) -> TokenizerHandle: ...


class HmacTokenizer:
    """HMAC-SHA256 tokenizer handle over a single key version."""

    def __init__(self, key_id: str, secret: bytes) -> None:
        if not secret:
            raise KeyProviderError(
                "HMAC secret cannot be empty",
                ErrorContext(operation="hmac_tokenizer_init", additional_data={"key_id": key_id}),
            )
        self._key_id = key_id
        self._secret = secret

    @property
    def key_id(self) -> str:
        return self._key_id

    def sign(self, data: bytes) -> bytes:
        mac = crypto_hmac.HMAC(self._secret, hashes.SHA256())
        mac.update(data)
        return mac.finalize()

    def __repr__(self) -> str:
        return f"HmacTokenizer(key_id={self._key_id!r})"


class StaticTokenizerProvider:
    """Provider that always hands out the same tokenizer handle."""

    def __init__(self, handle: TokenizerHandle) -> None:
        self._handle = handle

    @classmethod
    def from_secret(cls, secret: bytes, key_id: str = "static") -> StaticTokenizerProvider:
        return cls(HmacTokenizer(key_id, secret))

    def get_current(self) -> TokenizerHandle:
        return self._handle


def sha256(data: bytes) -> bytes:
    """SHA-256 digest of ``data``."""
    return hashlib.sha256(data).digest()


def hmac_string(handle: TokenizerHandle, value: str) -> bytes:
    """MAC a string and prefix the result with the multihash tag.

    Args:
        handle: Tokenizer handle used to sign
        value: String to MAC (UTF-8 encoded before signing)

    Returns:
        Tag bytes followed by the raw MAC output

    Raises:
        KeyProviderError: If signing fails
    """
    try:
        signature = handle.sign(value.encode("utf-8"))
    except TokenVaultError:
        raise
    except Exception as e:
        raise KeyProviderError(
            "Tokenizer failed to sign identifier",
            ErrorContext(operation="hmac_string", additional_data={"key_id": handle.key_id}),
            original_error=e,
        ) from e
    return Multihash.PREFIX + bytes(signature)


def tokenize(
    plaintext_id: str | None,
    tokenizer: TokenizerHandle | None = None,
    *,
    provider: TokenizerProvider,
) -> tuple[bytes, TokenizerHandle]:
    """Tokenize a plaintext identifier.

    Args:
        plaintext_id: The identifier to tokenize
        tokenizer: Pinned handle; the provider's current one is used if omitted
        provider: Source of the current handle

    Returns:
        Tuple of (tokenized_id, tokenizer handle used)

    Raises:
        InvalidArgumentError: If plaintext_id is missing or not a string
        KeyProviderError: If the provider cannot supply a handle
    """
    if plaintext_id is None or not isinstance(plaintext_id, str):
        raise InvalidArgumentError(
            '"id" must be a string.',
            ErrorContext(operation="tokenize"),
            code=ErrorCode.MISSING_REQUIRED_FIELD,
        )

    if tokenizer is None:
        try:
            tokenizer = provider.get_current()
        except TokenVaultError:
            raise
        except Exception as e:
            raise KeyProviderError(
                "Could not resolve the current tokenizer",
                ErrorContext(operation="tokenize"),
                original_error=e,
            ) from e

    return hmac_string(tokenizer, plaintext_id), tokenizer


def canonicalize(content: Mapping[str, Any]) -> bytes:
    """Serialize a mapping with JSON Canonicalization (RFC 8785).

    Numbers are written in their shortest form, so ``1`` and ``1.0`` produce
    the same bytes.

    Raises:
        InvalidArgumentError: If content is not a mapping or not serializable
    """
    if not isinstance(content, Mapping):
        raise InvalidArgumentError(
            '"content" must be a mapping.',
            ErrorContext(operation="canonicalize"),
        )
    try:
        return jcs.canonicalize(dict(content))
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(
            f'"content" is not serializable: {e}',
            ErrorContext(operation="canonicalize"),
            code=ErrorCode.SERIALIZATION_ERROR,
            original_error=e,
        ) from e


def content_id(content: Mapping[str, Any]) -> str:
    """Derive a text-safe id from structured content.

    Structurally equal mappings yield the same id regardless of key order.

    Args:
        content: Mapping to derive the id from

    Returns:
        base64url (unpadded) of the tagged SHA-256 digest
    """
    digest = sha256(canonicalize(content))
    return b64url_encode(Multihash.PREFIX + digest)


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(text + padding)
    except (binascii.Error, ValueError) as e:
        raise InvalidArgumentError(
            "Invalid base64url text",
            ErrorContext(operation="b64url_decode"),
            original_error=e,
        ) from e


def to_cache_key(tokenized_id: bytes) -> str:
    """In-memory cache key for a tokenized id."""
    return b64url_encode(tokenized_id)


def from_cache_key(cache_key: str) -> bytes:
    """Inverse of :func:`to_cache_key`."""
    return b64url_decode(cache_key)
