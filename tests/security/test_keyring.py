"""Tests for the rotatable HMAC keyring.

Tests follow the Failure-First pattern:
1. Test failure cases first
2. Test edge cases
3. Test happy path
"""

from __future__ import annotations

import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from tokenvault.security.encryption import KeyWrapper
from tokenvault.security.keyring import HmacKeyring, KeyringTokenizerProvider
from tokenvault.security.tokenizer import tokenize
from tokenvault.shared.errors import ErrorCode, KeyProviderError
from tests.conftest import TEST_ITERATIONS


@pytest.fixture
def keyring(tmp_path: Path) -> HmacKeyring:
    return HmacKeyring("1234", base_path=tmp_path / "keyring", iterations=TEST_ITERATIONS)


class TestKeyWrapper:
    """Test PIN-derived key wrapping."""

    def test_short_salt_rejected(self) -> None:
        with pytest.raises(KeyProviderError):
            KeyWrapper("1234", b"short", iterations=TEST_ITERATIONS)

    def test_empty_pin_rejected(self) -> None:
        with pytest.raises(KeyProviderError):
            KeyWrapper("", KeyWrapper.generate_salt(), iterations=TEST_ITERATIONS)

    def test_wrong_pin_cannot_unwrap(self) -> None:
        # Given
        salt = KeyWrapper.generate_salt()
        token = KeyWrapper("1234", salt, TEST_ITERATIONS).wrap(b"secret")

        # When & Then
        with pytest.raises(KeyProviderError) as exc_info:
            KeyWrapper("4321", salt, TEST_ITERATIONS).unwrap(token)
        assert exc_info.value.code == ErrorCode.DECRYPTION_FAILED

    def test_wrap_unwrap(self) -> None:
        wrapper = KeyWrapper("1234", KeyWrapper.generate_salt(), TEST_ITERATIONS)

        token = wrapper.wrap(b"secret")

        assert token != "secret"
        assert wrapper.unwrap(token) == b"secret"


class TestHmacKeyring:
    """Test keyring storage and rotation."""

    def test_load_missing_key(self, keyring: HmacKeyring) -> None:
        with pytest.raises(KeyProviderError) as exc_info:
            keyring.load("hmac-v9")

        assert exc_info.value.code == ErrorCode.KEY_NOT_FOUND

    def test_rejects_path_like_key_id(self, keyring: HmacKeyring) -> None:
        with pytest.raises(KeyProviderError):
            keyring.load(f"..{os.sep}salt")

    def test_empty_keyring(self, keyring: HmacKeyring) -> None:
        assert keyring.current_key_id() is None
        assert keyring.list_key_ids() == []

    def test_rotate_creates_versions(self, keyring: HmacKeyring) -> None:
        # When
        first = keyring.rotate()
        second = keyring.rotate()

        # Then
        assert (first, second) == ("hmac-v1", "hmac-v2")
        assert keyring.current_key_id() == "hmac-v2"
        assert keyring.list_key_ids() == ["hmac-v1", "hmac-v2"]
        assert keyring.load(first) != keyring.load(second)
        assert len(keyring.load(first)) == 32

    def test_versions_sort_numerically(self, keyring: HmacKeyring) -> None:
        for _ in range(10):
            keyring.rotate()

        assert keyring.list_key_ids()[-1] == "hmac-v10"

    def test_secrets_survive_reopen(self, keyring: HmacKeyring) -> None:
        # Given
        key_id = keyring.rotate()
        secret = keyring.load(key_id)

        # When
        reopened = HmacKeyring("1234", base_path=keyring.base_path, iterations=TEST_ITERATIONS)

        # Then
        assert reopened.load(key_id) == secret

    def test_wrong_pin_on_reopen(self, keyring: HmacKeyring) -> None:
        key_id = keyring.rotate()
        reopened = HmacKeyring("0000", base_path=keyring.base_path, iterations=TEST_ITERATIONS)

        with pytest.raises(KeyProviderError):
            reopened.load(key_id)

    @pytest.mark.skipif(sys.platform == "win32", reason="Unix-specific test")
    def test_key_files_are_owner_only(self, keyring: HmacKeyring) -> None:
        key_id = keyring.rotate()

        key_file = keyring.keys_dir / f"{key_id}.key"

        assert key_file.stat().st_mode & 0o777 == 0o600
        assert keyring.base_path.stat().st_mode & 0o777 == 0o700


class TestKeyringTokenizerProvider:
    """Test key version pinning across rotation."""

    def test_get_current_rotates_empty_keyring(self, keyring: HmacKeyring) -> None:
        provider = KeyringTokenizerProvider(keyring)

        handle = provider.get_current()

        assert handle.key_id == "hmac-v1"

    def test_ensure_current_keeps_existing_key(self, keyring: HmacKeyring) -> None:
        keyring.rotate()

        assert keyring.ensure_current() == "hmac-v1"
        assert keyring.list_key_ids() == ["hmac-v1"]

    def test_concurrent_first_use_creates_one_key(self, keyring: HmacKeyring) -> None:
        # Given
        provider = KeyringTokenizerProvider(keyring)
        barrier = threading.Barrier(8)

        def first_use() -> str:
            barrier.wait(5)
            return provider.get_current().key_id

        # When
        with ThreadPoolExecutor(max_workers=8) as pool:
            key_ids = list(pool.map(lambda _: first_use(), range(8)))

        # Then
        assert set(key_ids) == {"hmac-v1"}
        assert keyring.list_key_ids() == ["hmac-v1"]

    def test_handles_are_memoized(self, keyring: HmacKeyring) -> None:
        provider = KeyringTokenizerProvider(keyring)

        assert provider.get_current() is provider.get_current()

    def test_pinned_handle_survives_rotation(self, keyring: HmacKeyring) -> None:
        """A pinned older handle keeps producing the same tokenized id."""
        # Given
        provider = KeyringTokenizerProvider(keyring)
        tokenized_v1, pinned = tokenize("alice", provider=provider)

        # When
        provider.rotate()
        tokenized_current, current = tokenize("alice", provider=provider)
        tokenized_pinned, _ = tokenize("alice", pinned, provider=provider)

        # Then
        assert current.key_id == "hmac-v2"
        assert tokenized_current != tokenized_v1
        assert tokenized_pinned == tokenized_v1
        assert provider.get("hmac-v1").sign(b"x") == pinned.sign(b"x")
