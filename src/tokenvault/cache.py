"""Tokenized cache coordinator.

Public surface of the package. Identifiers are tokenized with a keyed MAC
before they reach the durable store, reads go through a bounded in-memory
read-through cache, and writes invalidate the in-memory slot before
returning so a process always reads its own writes.

Example:
    >>> provider = StaticTokenizerProvider.from_secret(secret)
    >>> with TokenizedCache(EntryStore("cache.db"), provider) as cache:
    ...     cache.upsert(id="X", value={}, ttl_seconds=30)
    ...     cache.get(id="X").entry.value
    {}
"""

from __future__ import annotations

import logging
import math
import numbers
import time
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, NamedTuple

from tokenvault.security.tokenizer import (
    TokenizerHandle,
    TokenizerProvider,
    content_id,
    to_cache_key,
    tokenize,
)
from tokenvault.services.cache_models import CacheRecord, QueryPlan, utc_now
from tokenvault.services.entry_cache import EntryCache
from tokenvault.services.entry_store import EntryStore, ExpiredRecordReaper
from tokenvault.services.entry_store.operations.base import Clock, compute_expires
from tokenvault.shared.constants import LogDefaults
from tokenvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InvalidArgumentError,
    create_conflicting_id_error,
    create_missing_id_error,
)
from tokenvault.shared.logging import log_operation_success

if TYPE_CHECKING:
    from tokenvault.config.models.settings import Settings

logger = logging.getLogger(__name__)


class TokenizeResult(NamedTuple):
    """A tokenized id and the handle that produced it."""

    tokenized_id: bytes
    tokenizer: TokenizerHandle


class TokenizedCache:
    """Coordinates tokenization, the in-memory cache and the entry store.

    Args:
        store: Durable entry store
        provider: Source of the current tokenizer handle
        entry_cache: In-memory cache; one is created over ``store`` if omitted
        reaper: Optional background purge thread, owned and stopped on close
    """

    def __init__(
        self,
        store: EntryStore,
        provider: TokenizerProvider,
        *,
        entry_cache: EntryCache | None = None,
        reaper: ExpiredRecordReaper | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.entry_cache = entry_cache if entry_cache is not None else EntryCache(store, clock=store.clock)
        self.reaper = reaper

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: TokenizerProvider,
        *,
        clock: Clock = utc_now,
    ) -> TokenizedCache:
        """Build store, in-memory cache and reaper from configuration.

        The store is purged once on startup when auto-removal is enabled.
        """
        cache_settings = settings.cache
        store = EntryStore(
            cache_settings.db_path,
            auto_remove_expired_records=cache_settings.auto_remove_expired_records,
            grace_period_seconds=cache_settings.expiration_grace_seconds,
            clock=clock,
        )
        entry_cache = EntryCache(
            store,
            max_size=settings.memory.max_size,
            max_age_seconds=settings.memory.max_age_seconds,
            clock=clock,
        )

        reaper = None
        if cache_settings.auto_remove_expired_records:
            store.purge_expired()
            if cache_settings.reaper_interval_seconds > 0:
                reaper = ExpiredRecordReaper(store, cache_settings.reaper_interval_seconds)
                reaper.start()

        return cls(store, provider, entry_cache=entry_cache, reaper=reaper)

    @staticmethod
    def create_content_id(content: Mapping[str, Any]) -> str:
        """Derive a deterministic id from structured content.

        Raises:
            InvalidArgumentError: If content is not a serializable mapping
        """
        return content_id(content)

    def tokenize_id(
        self,
        plaintext_id: str,
        tokenizer: TokenizerHandle | None = None,
    ) -> TokenizeResult:
        """Tokenize a plaintext id with a pinned or the current tokenizer.

        Raises:
            InvalidArgumentError: If plaintext_id is not a string
            KeyProviderError: If the tokenizer cannot be resolved or fails
        """
        tokenized_id, handle = tokenize(plaintext_id, tokenizer, provider=self.provider)
        return TokenizeResult(tokenized_id, handle)

    def get(
        self,
        *,
        id: str | None = None,
        tokenized_id: bytes | None = None,
        tokenizer: TokenizerHandle | None = None,
        explain: bool = False,
    ) -> CacheRecord | QueryPlan:
        """Get a live entry by plaintext or tokenized id.

        Args:
            id: Plaintext id (tokenized before lookup)
            tokenized_id: Already tokenized id
            tokenizer: Pinned tokenizer handle used to tokenize ``id``
            explain: Return the store query plan instead of reading

        Returns:
            The live record, or the query plan in explain mode

        Raises:
            InvalidArgumentError: Unless exactly one of id and tokenized_id is given
            NotFoundError: If no live entry exists
        """
        resolved_id = self._resolve_tokenized_id("get", id, tokenized_id, tokenizer)

        # explain mode never touches the in-memory cache
        if explain:
            return self.store.explain_find(resolved_id)

        return self.entry_cache.get(resolved_id)

    def upsert(
        self,
        *,
        id: str | None = None,
        tokenized_id: bytes | None = None,
        value: Any = None,
        ttl_seconds: float | None = None,
        tokenizer: TokenizerHandle | None = None,
        explain: bool = False,
    ) -> CacheRecord | QueryPlan:
        """Add an entry, replacing any existing entry for the same id.

        Args:
            id: Plaintext id (tokenized before writing)
            tokenized_id: Already tokenized id
            value: JSON-serializable payload
            ttl_seconds: Seconds until the entry logically expires
            tokenizer: Pinned tokenizer handle used to tokenize ``id``
            explain: Return the store query plan instead of writing

        Returns:
            The stored record, or the query plan in explain mode

        Raises:
            InvalidArgumentError: On conflicting or missing ids, or an invalid TTL
            StoreFailureError: If the write fails
        """
        _validate_ttl(ttl_seconds, self.store.clock())
        resolved_id = self._resolve_tokenized_id("upsert", id, tokenized_id, tokenizer)

        if explain:
            return self.store.explain_upsert(resolved_id)

        start_time = time.perf_counter()
        record = self.store.upsert(resolved_id, value, ttl_seconds)  # type: ignore[arg-type]

        key = to_cache_key(resolved_id)
        self.entry_cache.invalidate(key)

        log_operation_success(
            logger,
            "upsert",
            (time.perf_counter() - start_time) * 1000,
            {"cache_key": key[: LogDefaults.CACHE_KEY_PREVIEW_LENGTH], "ttl_seconds": ttl_seconds},
        )
        return record

    def _resolve_tokenized_id(
        self,
        operation: str,
        plaintext_id: str | None,
        tokenized_id: bytes | None,
        tokenizer: TokenizerHandle | None,
    ) -> bytes:
        if plaintext_id is not None and tokenized_id is not None:
            raise create_conflicting_id_error(operation)

        if tokenized_id is not None:
            if not isinstance(tokenized_id, (bytes, bytearray, memoryview)) or not tokenized_id:
                raise InvalidArgumentError(
                    '"tokenized_id" must be non-empty bytes.',
                    ErrorContext(operation=operation),
                )
            return bytes(tokenized_id)

        if plaintext_id is None:
            raise create_missing_id_error(operation)

        return self.tokenize_id(plaintext_id, tokenizer).tokenized_id

    def close(self) -> None:
        """Stop the reaper and close the store."""
        if self.reaper is not None:
            self.reaper.stop()
            self.reaper = None
        self.entry_cache.clear()
        self.store.close()

    def __enter__(self) -> TokenizedCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _validate_ttl(ttl_seconds: Any, now: datetime) -> None:
    """Reject a missing, non-numeric, negative or out-of-range TTL."""
    if ttl_seconds is None:
        raise InvalidArgumentError(
            '"ttl_seconds" is required.',
            ErrorContext(operation="upsert"),
            code=ErrorCode.MISSING_REQUIRED_FIELD,
        )
    # bool is an int subclass but never a sensible TTL
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, numbers.Real):
        raise InvalidArgumentError(
            '"ttl_seconds" must be a number.',
            ErrorContext(operation="upsert"),
        )
    if not math.isfinite(ttl_seconds) or ttl_seconds < 0:
        raise InvalidArgumentError(
            '"ttl_seconds" must be a finite, non-negative number.',
            ErrorContext(operation="upsert", additional_data={"ttl_seconds": str(ttl_seconds)}),
        )
    compute_expires(now, ttl_seconds)
