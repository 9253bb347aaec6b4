"""
At-rest protection for HMAC key material.

Tokenizer secrets are wrapped with Fernet using a key derived from a PIN
via PBKDF2-HMAC-SHA256, so a copied keyring directory alone does not reveal
the secrets that map plaintext identifiers to tokenized ones.
"""

from __future__ import annotations

import base64
import os

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from tokenvault.shared.constants import KeyringDefaults
from tokenvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    KeyProviderError,
)


class KeyWrapper:
    """
    Encrypts and decrypts HMAC secrets with a PIN-derived Fernet key.

    Key derivation is deliberately slow; build one wrapper per keyring and
    reuse it.
    """

    KEY_LENGTH = 32  # 256 bits for Fernet compatibility

    def __init__(
        self,
        pin: str,
        salt: bytes,
        iterations: int = KeyringDefaults.PBKDF2_ITERATIONS,
    ):
        """
        Initialize the wrapper with a PIN and salt.

        Args:
            pin: PIN for key derivation
            salt: Random salt for key derivation
            iterations: PBKDF2 iteration count

        Raises:
            KeyProviderError: If the inputs are invalid or derivation fails
        """
        if not pin or not isinstance(pin, str):
            raise KeyProviderError(
                "PIN must be a non-empty string",
                ErrorContext(operation="key_wrapper_init"),
                code=ErrorCode.CONFIGURATION_ERROR,
            )

        if not salt or len(salt) < KeyringDefaults.MIN_SALT_LENGTH:
            raise KeyProviderError(
                f"Salt must be at least {KeyringDefaults.MIN_SALT_LENGTH} bytes",
                ErrorContext(operation="key_wrapper_init"),
                code=ErrorCode.CONFIGURATION_ERROR,
            )

        self._fernet = Fernet(self._derive_key(pin, salt, iterations))

    @classmethod
    def _derive_key(cls, pin: str, salt: bytes, iterations: int) -> bytes:
        """
        Derive a Fernet-compatible key from PIN and salt.

        Returns:
            Base64-encoded key suitable for Fernet
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=cls.KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return base64.urlsafe_b64encode(kdf.derive(pin.encode("utf-8")))

    def wrap(self, secret: bytes) -> str:
        """
        Encrypt a secret.

        Args:
            secret: Raw key bytes

        Returns:
            Fernet token as text
        """
        if not secret:
            raise KeyProviderError(
                "Secret cannot be empty",
                ErrorContext(operation="wrap"),
            )
        return self._fernet.encrypt(secret).decode("ascii")

    def unwrap(self, token: str) -> bytes:
        """
        Decrypt a wrapped secret.

        Args:
            token: Fernet token produced by wrap()

        Returns:
            Raw key bytes

        Raises:
            KeyProviderError: If the token is invalid, tampered with or the PIN is wrong
        """
        if not token or not isinstance(token, str):
            raise KeyProviderError(
                "Token must be a non-empty string",
                ErrorContext(operation="unwrap"),
                code=ErrorCode.DECRYPTION_FAILED,
            )

        try:
            return self._fernet.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as e:
            raise KeyProviderError(
                "Invalid or tampered key material",
                ErrorContext(operation="unwrap"),
                original_error=e,
                code=ErrorCode.DECRYPTION_FAILED,
            ) from e

    @staticmethod
    def generate_salt(length: int = KeyringDefaults.SALT_LENGTH) -> bytes:
        """
        Generate a cryptographically secure random salt.

        Raises:
            KeyProviderError: If length is below the minimum
        """
        if length < KeyringDefaults.MIN_SALT_LENGTH:
            raise KeyProviderError(
                f"Salt length must be at least {KeyringDefaults.MIN_SALT_LENGTH} bytes",
                ErrorContext(operation="generate_salt"),
                code=ErrorCode.CONFIGURATION_ERROR,
            )
        return os.urandom(length)
