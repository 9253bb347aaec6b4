"""Query operations for the entry store.

This module provides point lookups of live entries.
"""

from __future__ import annotations

import logging

from tokenvault.services.cache_models import CacheRecord, QueryPlan
from tokenvault.services.entry_store.operations.base import (
    RECORD_COLUMNS,
    BaseOperation,
    format_timestamp,
    row_to_record,
)
from tokenvault.shared.errors import ErrorContext, NotFoundError

logger = logging.getLogger(__name__)


class QueryOperations(BaseOperation):
    """Query operations for entry retrieval."""

    @property
    def find_sql(self) -> str:
        return f"SELECT {RECORD_COLUMNS} FROM {self.table} WHERE tokenized_id = ? LIMIT 1"

    def find(self, tokenized_id: bytes) -> CacheRecord:
        """Look up the live entry for a tokenized id.

        Args:
            tokenized_id: Tokenized identifier

        Returns:
            The stored record

        Raises:
            NotFoundError: If no record exists or its ``expires`` is in the past
        """
        row = self.conn.execute(self.find_sql, (tokenized_id,)).fetchone()

        if row is None:
            raise NotFoundError(context=ErrorContext(operation="find"))

        record = row_to_record(row)

        # the record may simply not have been purged yet
        if record.is_expired(self.clock()):
            logger.debug("Ignoring expired record past %s", format_timestamp(record.entry.expires))
            raise NotFoundError(context=ErrorContext(operation="find"))

        return record

    def explain_find(self, tokenized_id: bytes) -> QueryPlan:
        return self._explain(self.find_sql, (tokenized_id,))

    def count(self, *, live_only: bool = False) -> int:
        """Count stored records, optionally only logically live ones."""
        if live_only:
            cursor = self.conn.execute(
                f"SELECT COUNT(*) FROM {self.table} WHERE expires > ?",
                (format_timestamp(self.clock()),),
            )
        else:
            cursor = self.conn.execute(f"SELECT COUNT(*) FROM {self.table}")
        return int(cursor.fetchone()[0])
