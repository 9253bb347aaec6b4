"""Cache entry dataclass models.

This module defines the records stored in the durable entry store and
handed back to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

__all__ = ["CacheRecord", "Entry", "EntryMeta", "QueryPlan", "utc_now"]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Entry:
    """A cached value keyed by its tokenized id.

    Attributes:
        tokenized_id: Durable-store key (multihash-tagged MAC)
        value: Caller-supplied payload, stored verbatim
        expires: Logical expiration set by the write (``now + ttl``)
    """

    tokenized_id: bytes
    value: Any
    expires: datetime


@dataclass(frozen=True)
class EntryMeta:
    """Store-maintained timestamps."""

    created: datetime
    updated: datetime


@dataclass(frozen=True)
class CacheRecord:
    """Entry plus metadata, as stored and returned."""

    entry: Entry
    meta: EntryMeta

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the entry is logically expired.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            True once ``now`` has reached ``expires``
        """
        if now is None:
            now = utc_now()
        return self.entry.expires <= now


@dataclass(frozen=True)
class QueryPlan:
    """Query-plan diagnostics returned in explain mode.

    Attributes:
        statement: The SQL statement that was explained
        details: Detail column of each ``EXPLAIN QUERY PLAN`` row
        index_name: Name of the index used, if any
    """

    statement: str
    details: list[str] = field(default_factory=list)
    index_name: str | None = None

    @property
    def uses_index(self) -> bool:
        return self.index_name is not None
