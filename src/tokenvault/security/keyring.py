"""
Rotatable HMAC keyring for TokenVault.

Stores versioned tokenizer secrets on disk, each wrapped with a PIN-derived
key, alongside a pointer to the current version. Older versions stay
loadable so callers holding a pinned handle keep producing the same
tokenized ids after a rotation.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from tokenvault.security.encryption import KeyWrapper
from tokenvault.security.permissions import ensure_secure_directory, write_secure_file
from tokenvault.security.tokenizer import HmacTokenizer
from tokenvault.shared.constants import CacheDefaults, KeyringDefaults
from tokenvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    KeyProviderError,
    TokenVaultError,
)

logger = logging.getLogger(__name__)


class HmacKeyring:
    """
    Versioned store of encrypted HMAC secrets.

    Layout::

        <base_path>/salt
        <base_path>/current
        <base_path>/keys/hmac-v1.key
        <base_path>/keys/hmac-v2.key
    """

    def __init__(
        self,
        pin: str,
        base_path: Path | None = None,
        iterations: int = KeyringDefaults.PBKDF2_ITERATIONS,
    ):
        """
        Initialize the keyring.

        Args:
            pin: PIN protecting the stored secrets
            base_path: Keyring directory. Defaults to ~/.tokenvault/keyring
            iterations: PBKDF2 iteration count for the PIN-derived key

        Raises:
            InfrastructureError: If the directory cannot be created or secured
            KeyProviderError: If the PIN or salt is unusable
        """
        if base_path is None:
            base_path = Path.home() / CacheDefaults.HOME_DIR / "keyring"
        self.base_path = Path(base_path)
        self.keys_dir = self.base_path / KeyringDefaults.KEYS_DIR
        self.salt_file = self.base_path / KeyringDefaults.SALT_FILE
        self.current_file = self.base_path / KeyringDefaults.CURRENT_FILE

        ensure_secure_directory(self.base_path)
        ensure_secure_directory(self.keys_dir)

        self._lock = threading.Lock()
        self._wrapper = KeyWrapper(pin, self._load_or_generate_salt(), iterations)

    def _load_or_generate_salt(self) -> bytes:
        if self.salt_file.exists():
            salt = self.salt_file.read_bytes()
            if len(salt) >= KeyringDefaults.MIN_SALT_LENGTH:
                return salt
            # a short salt cannot have wrapped anything usable
            if self.list_key_ids():
                raise KeyProviderError(
                    "Keyring salt is corrupted",
                    ErrorContext(operation="load_salt", file_path=str(self.salt_file)),
                    code=ErrorCode.STORE_CORRUPTED,
                )
            logger.warning("Regenerating short keyring salt: %s", self.salt_file)

        salt = KeyWrapper.generate_salt()
        write_secure_file(self.salt_file, salt)
        return salt

    def _key_file(self, key_id: str) -> Path:
        if not key_id or os.sep in key_id or key_id.startswith("."):
            raise KeyProviderError(
                f"Invalid key id: {key_id!r}",
                ErrorContext(operation="key_file"),
                code=ErrorCode.INVALID_ARGUMENT,
            )
        return self.keys_dir / f"{key_id}{KeyringDefaults.KEY_FILE_SUFFIX}"

    def list_key_ids(self) -> list[str]:
        """List stored key versions, oldest first."""
        if not self.keys_dir.exists():
            return []
        suffix = KeyringDefaults.KEY_FILE_SUFFIX
        key_ids = [
            f.name[: -len(suffix)]
            for f in self.keys_dir.iterdir()
            if f.is_file() and f.name.endswith(suffix)
        ]
        return sorted(key_ids, key=_version_number)

    def current_key_id(self) -> str | None:
        """Key id of the current version, or None for an empty keyring."""
        if not self.current_file.exists():
            return None
        key_id = self.current_file.read_text(encoding="utf-8").strip()
        return key_id or None

    def rotate(self) -> str:
        """
        Generate a new secret and make it current.

        Returns:
            The new key id
        """
        with self._lock:
            return self._rotate_locked()

    def ensure_current(self) -> str:
        """Current key id, generating the first key if the keyring is empty.

        The emptiness check and the rotation happen under one lock, so
        concurrent first callers agree on a single key.
        """
        with self._lock:
            key_id = self.current_key_id()
            if key_id is None:
                key_id = self._rotate_locked()
            return key_id

    def _rotate_locked(self) -> str:
        existing = self.list_key_ids()
        next_version = _version_number(existing[-1]) + 1 if existing else 1
        key_id = f"{KeyringDefaults.KEY_ID_PREFIX}{next_version}"

        secret = os.urandom(KeyringDefaults.SECRET_LENGTH)
        write_secure_file(
            self._key_file(key_id),
            self._wrapper.wrap(secret).encode("ascii"),
        )
        write_secure_file(self.current_file, key_id.encode("utf-8"))

        logger.info("Rotated tokenizer key to %s", key_id)
        return key_id

    def load(self, key_id: str) -> bytes:
        """
        Load and unwrap a stored secret.

        Raises:
            KeyProviderError: If the key is missing or cannot be decrypted
        """
        key_file = self._key_file(key_id)
        if not key_file.exists():
            raise KeyProviderError(
                f"Key '{key_id}' not found in keyring",
                ErrorContext(operation="load_key", additional_data={"key_id": key_id}),
                code=ErrorCode.KEY_NOT_FOUND,
            )
        return self._wrapper.unwrap(key_file.read_text(encoding="ascii"))

    def get_keyring_info(self) -> dict[str, str | int | None]:
        return {
            "base_path": str(self.base_path),
            "current_key_id": self.current_key_id(),
            "keys_count": len(self.list_key_ids()),
        }


def _version_number(key_id: str) -> int:
    suffix = key_id[len(KeyringDefaults.KEY_ID_PREFIX) :]
    return int(suffix) if suffix.isdigit() else 0


class KeyringTokenizerProvider:
    """Tokenizer provider backed by an :class:`HmacKeyring`."""

    def __init__(self, keyring: HmacKeyring) -> None:
        self.keyring = keyring
        self._handles: dict[str, HmacTokenizer] = {}
        self._lock = threading.Lock()

    def get_current(self) -> HmacTokenizer:
        """Handle for the current key version, rotating once if the keyring is empty."""
        return self.get(self.keyring.ensure_current())

    def get(self, key_id: str) -> HmacTokenizer:
        """Handle for a specific, possibly older, key version."""
        with self._lock:
            handle = self._handles.get(key_id)
            if handle is None:
                try:
                    handle = HmacTokenizer(key_id, self.keyring.load(key_id))
                except TokenVaultError:
                    raise
                except OSError as e:
                    raise KeyProviderError(
                        f"Failed to read key '{key_id}'",
                        ErrorContext(operation="get_tokenizer", additional_data={"key_id": key_id}),
                        original_error=e,
                    ) from e
                self._handles[key_id] = handle
        return handle

    def rotate(self) -> HmacTokenizer:
        """Rotate the keyring and return the new current handle."""
        return self.get(self.keyring.rotate())
