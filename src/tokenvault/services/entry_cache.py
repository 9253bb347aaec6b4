"""In-memory read-through cache in front of the entry store.

Each slot holds a :class:`concurrent.futures.Future` resolving to a
:class:`CacheRecord`, so concurrent readers of the same key share one
durable-store fetch. Slots live in a ``cachetools.TTLCache`` (LRU by count,
age measured from insertion) and every mutation happens under one lock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import asdict, dataclass

from cachetools import TTLCache

from tokenvault.security.tokenizer import to_cache_key
from tokenvault.services.cache_models import CacheRecord, utc_now
from tokenvault.services.entry_store import EntryStore
from tokenvault.services.entry_store.operations.base import Clock
from tokenvault.shared.constants import CacheDefaults, LogDefaults
from tokenvault.shared.errors import create_not_found_error

logger = logging.getLogger(__name__)

# one retry suffices because the retry always refetches from the store
MAX_STALE_RETRIES = 1


@dataclass
class EntryCacheStats:
    """Counters for cache instrumentation."""

    hits: int = 0
    misses: int = 0
    fetches: int = 0
    fetch_failures: int = 0
    stale_evictions: int = 0
    invalidations: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class EntryCache:
    """Bounded, request-coalescing cache of entry store lookups.

    Args:
        store: Entry store consulted on a miss
        max_size: Maximum number of keys held
        max_age_seconds: Maximum time a slot is held after insertion
        clock: Returns the current UTC time, used for freshness checks
        timer: Monotonic timer driving slot age
    """

    def __init__(
        self,
        store: EntryStore,
        *,
        max_size: int = CacheDefaults.MEMORY_MAX_SIZE,
        max_age_seconds: float = CacheDefaults.MEMORY_MAX_AGE,
        clock: Clock = utc_now,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.max_size = max_size
        self.max_age_seconds = max_age_seconds
        self.clock = clock
        self._cache: TTLCache[str, Future[CacheRecord]] = TTLCache(
            maxsize=max_size,
            ttl=max_age_seconds,
            timer=timer,
        )
        self._lock = threading.Lock()
        self._stats = EntryCacheStats()

    def memoize(self, key: str, fetch: Callable[[], CacheRecord]) -> Future[CacheRecord]:
        """Return the future for ``key``, running ``fetch`` if there is none.

        Exactly one caller runs ``fetch`` per slot; concurrent callers receive
        the same (possibly still pending) future. A failed fetch removes the
        slot before the failure is published, so the next call fetches again.
        """
        with self._lock:
            future = self._cache.get(key)
            if future is not None:
                self._stats.hits += 1
                return future
            self._stats.misses += 1
            future = Future()
            self._cache[key] = future

        self._resolve(key, future, fetch)
        return future

    def _resolve(
        self,
        key: str,
        future: Future[CacheRecord],
        fetch: Callable[[], CacheRecord],
    ) -> None:
        with self._lock:
            self._stats.fetches += 1
        try:
            record = fetch()
        except BaseException as e:
            self.delete_if(key, future)
            with self._lock:
                self._stats.fetch_failures += 1
            future.set_exception(e)
            if not isinstance(e, Exception):
                raise
            return
        future.set_result(record)

    def peek(self, key: str) -> Future[CacheRecord] | None:
        """Current future for ``key``, or None if the slot is absent or aged out."""
        with self._lock:
            return self._cache.get(key)

    def delete_if(self, key: str, expected: Future[CacheRecord]) -> bool:
        """Remove ``key`` only if it still maps to ``expected``.

        Returns:
            True if the slot was removed
        """
        with self._lock:
            if key in self._cache and self._cache[key] is expected:
                del self._cache[key]
                return True
            return False

    def invalidate(self, key: str) -> None:
        with self._lock:
            if self._cache.pop(key, None) is not None:
                self._stats.invalidations += 1

    def get(self, tokenized_id: bytes) -> CacheRecord:
        """Read-through lookup of a live record.

        Raises:
            NotFoundError: If no live record exists
            StoreFailureError: If the store lookup fails
        """
        key = to_cache_key(tokenized_id)

        for _attempt in range(MAX_STALE_RETRIES + 1):
            future = self.memoize(key, lambda: self.store.find(tokenized_id))
            record = future.result()

            if not record.is_expired(self.clock()):
                return record

            # a newer slot installed meanwhile must survive
            if self.delete_if(key, future):
                with self._lock:
                    self._stats.stale_evictions += 1
                logger.debug(
                    "Evicted stale in-memory entry %s",
                    key[: LogDefaults.CACHE_KEY_PREVIEW_LENGTH],
                )

        raise create_not_found_error(key, "entry_cache_get")

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def item_count(self) -> int:
        """Number of held slots, after dropping age-expired ones."""
        with self._lock:
            self._cache.expire()
            return len(self._cache)

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return self._stats.to_dict()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache
