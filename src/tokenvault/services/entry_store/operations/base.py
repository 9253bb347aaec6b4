"""Base operation class for entry store operations.

This module provides shared row conversion and timestamp handling.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import orjson

from tokenvault.services.cache_models import CacheRecord, Entry, EntryMeta, QueryPlan
from tokenvault.shared.constants import StoreSchema
from tokenvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InvalidArgumentError,
    StoreFailureError,
)

if TYPE_CHECKING:
    import sqlite3

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

RECORD_COLUMNS = "tokenized_id, value, expires, created, updated"

_INDEX_PATTERN = re.compile(r"USING (?:COVERING )?INDEX (\w+)")


def format_timestamp(value: datetime) -> str:
    """Render a datetime as fixed-width ISO-8601 UTC.

    Fixed width keeps lexical order equal to time order in SQL comparisons.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def compute_expires(now: datetime, ttl_seconds: float) -> datetime:
    """Absolute expiry of a TTL starting at ``now``.

    Raises:
        InvalidArgumentError: If the expiry is past the latest representable time
    """
    try:
        return now + timedelta(seconds=ttl_seconds)
    except OverflowError as e:
        raise InvalidArgumentError(
            '"ttl_seconds" is too large.',
            ErrorContext(operation="compute_expires", additional_data={"ttl_seconds": str(ttl_seconds)}),
            original_error=e,
        ) from e


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp into a timezone-aware datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def serialize_value(value: Any) -> str:
    """Serialize a payload to JSON text.

    Raises:
        InvalidArgumentError: If the value is not JSON-serializable
    """
    try:
        return orjson.dumps(value).decode("utf-8")
    except (orjson.JSONEncodeError, TypeError) as e:
        raise InvalidArgumentError(
            f'"value" is not serializable: {e}',
            ErrorContext(operation="serialize_value"),
            code=ErrorCode.SERIALIZATION_ERROR,
            original_error=e,
        ) from e


def row_to_record(row: tuple[Any, ...]) -> CacheRecord:
    """Build a CacheRecord from a row selected with RECORD_COLUMNS.

    Raises:
        StoreFailureError: If the stored row cannot be decoded
    """
    tokenized_id, value_text, expires, created, updated = row
    try:
        return CacheRecord(
            entry=Entry(
                tokenized_id=bytes(tokenized_id),
                value=orjson.loads(value_text),
                expires=parse_timestamp(expires),
            ),
            meta=EntryMeta(
                created=parse_timestamp(created),
                updated=parse_timestamp(updated),
            ),
        )
    except (orjson.JSONDecodeError, ValueError, TypeError) as e:
        raise StoreFailureError(
            "Stored entry could not be decoded",
            ErrorContext(operation="row_to_record"),
            original_error=e,
            code=ErrorCode.STORE_CORRUPTED,
        ) from e


class BaseOperation:
    """Base class for entry store operations."""

    table = StoreSchema.TABLE

    def __init__(self, conn: sqlite3.Connection, clock: Clock) -> None:
        """Initialize base operation.

        Args:
            conn: SQLite database connection
            clock: Returns the current UTC time
        """
        self.conn = conn
        self.clock = clock

    def _explain(self, statement: str, params: tuple[Any, ...]) -> QueryPlan:
        """Run EXPLAIN QUERY PLAN for a statement instead of executing it."""
        cursor = self.conn.execute(f"EXPLAIN QUERY PLAN {statement}", params)
        details = [str(row[-1]) for row in cursor.fetchall()]

        index_name = None
        for detail in details:
            match = _INDEX_PATTERN.search(detail)
            if match:
                index_name = match.group(1)
                break

        return QueryPlan(statement=" ".join(statement.split()), details=details, index_name=index_name)
