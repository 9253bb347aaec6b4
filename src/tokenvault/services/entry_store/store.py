"""Durable entry store facade.

SQLite-backed storage for tokenized cache entries: one record per
tokenized id, merge-on-conflict upserts, point lookups that ignore
logically expired records, and a grace-period purge that stands in for a
background TTL index.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from tokenvault.security.permissions import set_secure_file_permissions
from tokenvault.services.cache_models import CacheRecord, QueryPlan, utc_now
from tokenvault.services.entry_store.migration import MigrationManager
from tokenvault.services.entry_store.operations import (
    PurgeOperations,
    QueryOperations,
    UpsertOperations,
)
from tokenvault.services.entry_store.operations.base import Clock
from tokenvault.shared.constants import CacheDefaults
from tokenvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    StoreFailureError,
)
from tokenvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntryStore:
    """SQLite store of tokenized cache entries.

    Uses WAL mode and a single connection shared across threads; statements
    are serialized by an internal lock.

    Attributes:
        db_path: Path to SQLite database file
        auto_remove_expired_records: Whether purge_expired removes anything
        grace_period_seconds: How long expired records are kept before purge
        conn: SQLite database connection

    Example:
        >>> store = EntryStore(Path("cache.db"))
        >>> record = store.upsert(tokenized_id, {"a": 1}, ttl_seconds=60)
        >>> store.find(tokenized_id).entry.value
        {'a': 1}
        >>> store.close()
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        auto_remove_expired_records: bool = CacheDefaults.AUTO_REMOVE_EXPIRED_RECORDS,
        grace_period_seconds: float = CacheDefaults.EXPIRATION_GRACE_PERIOD,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the entry store.

        Args:
            db_path: Path to SQLite database file
            auto_remove_expired_records: Create the expiry index and allow purges
            grace_period_seconds: Delay between logical expiry and physical removal
            clock: Returns the current UTC time

        Raises:
            StoreFailureError: If database initialization fails
        """
        self.db_path = Path(db_path)
        self.auto_remove_expired_records = auto_remove_expired_records
        self.grace_period_seconds = grace_period_seconds
        self.clock = clock
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._initialize_db()

    def _initialize_db(self) -> None:
        context = ErrorContext(
            operation="initialize_db",
            additional_data={"db_path": str(self.db_path)},
        )
        start = time.perf_counter()

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            db_is_new = not self.db_path.exists()

            self.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # Auto-commit mode
            )

            if db_is_new:
                try:
                    set_secure_file_permissions(self.db_path)
                except InfrastructureError as e:
                    logger.warning("Failed to secure DB file %s: %s", self.db_path, e)

            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")

            self.migrations = MigrationManager(self.conn)
            self.migrations.create_tables(expires_index=self.auto_remove_expired_records)

            self._query_ops = QueryOperations(self.conn, self.clock)
            self._upsert_ops = UpsertOperations(self.conn, self.clock)
            self._purge_ops = PurgeOperations(self.conn, self.clock)

        except sqlite3.Error as e:
            error = StoreFailureError(
                f"Failed to initialize entry store: {e!s}",
                context=context,
                original_error=e,
            )
            log_operation_error(logger=logger, error=error)
            raise error from e

        log_operation_success(
            logger=logger,
            operation="initialize_db",
            duration_ms=(time.perf_counter() - start) * 1000,
            context=context,
        )

    def _run(self, operation: str, fn: Callable[[], T]) -> T:
        """Run a statement under the connection lock, mapping driver errors."""
        if self.conn is None:
            raise StoreFailureError(
                "Database connection not initialized",
                ErrorContext(operation=operation),
                code=ErrorCode.STORE_NOT_INITIALIZED,
            )
        try:
            with self._lock:
                return fn()
        except sqlite3.Error as e:
            raise StoreFailureError(
                f"Entry store {operation} failed: {e!s}",
                ErrorContext(operation=operation),
                original_error=e,
            ) from e

    def upsert(self, tokenized_id: bytes, value: Any, ttl_seconds: float) -> CacheRecord:
        """Insert or replace the entry for a tokenized id.

        On update, ``value``, ``expires`` and ``updated`` are overwritten while
        ``tokenized_id`` and ``created`` are kept.

        Args:
            tokenized_id: Tokenized identifier
            value: JSON-serializable payload
            ttl_seconds: Seconds until logical expiry

        Returns:
            The stored record

        Raises:
            InvalidArgumentError: If value is not serializable or the expiry is out of range
            StoreFailureError: If the database operation fails
        """
        return self._run("upsert", lambda: self._upsert_ops.upsert(tokenized_id, value, ttl_seconds))

    def find(self, tokenized_id: bytes) -> CacheRecord:
        """Retrieve the live entry for a tokenized id.

        Raises:
            NotFoundError: If no live entry exists
            StoreFailureError: If the database operation fails
        """
        return self._run("find", lambda: self._query_ops.find(tokenized_id))

    def explain_find(self, tokenized_id: bytes) -> QueryPlan:
        """Query plan of :meth:`find` without executing it."""
        return self._run("explain_find", lambda: self._query_ops.explain_find(tokenized_id))

    def explain_upsert(self, tokenized_id: bytes) -> QueryPlan:
        """Query plan of the lookup :meth:`upsert` matches on."""
        return self._run("explain_upsert", lambda: self._upsert_ops.explain_upsert(tokenized_id))

    def purge_expired(self) -> int:
        """Physically remove records expired for longer than the grace period.

        Returns:
            Number of purged records (always 0 when auto-removal is disabled)
        """
        if not self.auto_remove_expired_records:
            return 0
        return self._run(
            "purge_expired",
            lambda: self._purge_ops.purge_expired(self.grace_period_seconds),
        )

    def count(self, *, live_only: bool = False) -> int:
        return self._run("count", lambda: self._query_ops.count(live_only=live_only))

    def get_store_info(self) -> dict[str, Any]:
        """Get store statistics and metadata.

        Returns:
            Dictionary with:
            - db_path: Path to the database file
            - total_entries: Number of stored records
            - live_entries: Records not logically expired
            - expired_entries: Records awaiting purge
            - auto_remove_expired_records / grace_period_seconds: purge policy
            - indexes: Index names on the entry table
        """
        total = self.count()
        live = self.count(live_only=True)
        return {
            "db_path": str(self.db_path),
            "total_entries": total,
            "live_entries": live,
            "expired_entries": total - live,
            "auto_remove_expired_records": self.auto_remove_expired_records,
            "grace_period_seconds": self.grace_period_seconds,
            "indexes": self._run("list_indexes", self.migrations.list_indexes),
        }

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.debug("Closed entry store connection: %s", self.db_path)

    def __enter__(self) -> EntryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
