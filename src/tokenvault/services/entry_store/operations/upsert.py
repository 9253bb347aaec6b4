"""Upsert operations for the entry store.

This module provides the merge-on-conflict write path.
"""

from __future__ import annotations

import logging
from typing import Any

from tokenvault.services.cache_models import CacheRecord, QueryPlan
from tokenvault.services.entry_store.operations.base import (
    RECORD_COLUMNS,
    BaseOperation,
    compute_expires,
    format_timestamp,
    row_to_record,
    serialize_value,
)

logger = logging.getLogger(__name__)


class UpsertOperations(BaseOperation):
    """Insert-or-merge operations for entry storage."""

    @property
    def upsert_sql(self) -> str:
        # tokenized_id is the match key and created is insert-only
        return f"""
        INSERT INTO {self.table} (tokenized_id, value, expires, created, updated)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(tokenized_id) DO UPDATE SET
            value = excluded.value,
            expires = excluded.expires,
            updated = excluded.updated
        RETURNING {RECORD_COLUMNS}
        """

    @property
    def match_sql(self) -> str:
        return f"SELECT {RECORD_COLUMNS} FROM {self.table} WHERE tokenized_id = ? LIMIT 1"

    def upsert(self, tokenized_id: bytes, value: Any, ttl_seconds: float) -> CacheRecord:
        """Insert an entry or merge it over the existing one.

        Args:
            tokenized_id: Tokenized identifier (match key)
            value: JSON-serializable payload
            ttl_seconds: Seconds from now until the entry logically expires

        Returns:
            The record as stored
        """
        value_json = serialize_value(value)

        now = self.clock()
        expires = compute_expires(now, ttl_seconds)
        now_text = format_timestamp(now)

        # fetchall steps the statement to completion so the write is committed
        rows = self.conn.execute(
            self.upsert_sql,
            (tokenized_id, value_json, format_timestamp(expires), now_text, now_text),
        ).fetchall()

        logger.debug(
            "Entry upserted: size=%d bytes, ttl=%ss",
            len(value_json),
            ttl_seconds,
        )

        return row_to_record(rows[0])

    def explain_upsert(self, tokenized_id: bytes) -> QueryPlan:
        """Explain the match lookup an upsert performs on conflict."""
        return self._explain(self.match_sql, (tokenized_id,))
