"""
Pytest configuration and shared fixtures for TokenVault tests.

This module provides common fixtures and configuration that can be used
across all test modules in the project.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tokenvault.cache import TokenizedCache
from tokenvault.security.tokenizer import StaticTokenizerProvider
from tokenvault.services.entry_cache import EntryCache
from tokenvault.services.entry_store import EntryStore
from tokenvault.shared.logging import ROOT_LOGGER_NAME

# Keep tests away from a developer's real keyring PIN
os.environ.pop("TOKENVAULT_PIN", None)

TEST_SECRET = b"0123456789abcdef0123456789abcdef"  # pragma: allowlist secret
TEST_ITERATIONS = 1_000


class FakeClock:
    """Mutable UTC clock for deterministic expiry."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeTimer:
    """Mutable monotonic timer driving in-memory slot age."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def provider() -> StaticTokenizerProvider:
    """Tokenizer provider with a fixed test secret."""
    return StaticTokenizerProvider.from_secret(TEST_SECRET, key_id="test-v1")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cache.db"


@pytest.fixture
def store(db_path: Path, clock: FakeClock) -> Generator[EntryStore, None, None]:
    """Entry store on a temporary database driven by the fake clock."""
    entry_store = EntryStore(db_path, clock=clock)
    yield entry_store
    entry_store.close()


@pytest.fixture
def entry_cache(store: EntryStore, clock: FakeClock, timer: FakeTimer) -> EntryCache:
    return EntryCache(store, max_size=10, max_age_seconds=60, clock=clock, timer=timer)


@pytest.fixture
def cache(
    store: EntryStore,
    entry_cache: EntryCache,
    provider: StaticTokenizerProvider,
) -> TokenizedCache:
    """Coordinator over the shared store, in-memory cache and provider."""
    return TokenizedCache(store, provider, entry_cache=entry_cache)


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Generator[None, None, None]:
    """Undo logger configuration done by CLI callbacks so caplog keeps working."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
