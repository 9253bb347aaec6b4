"""Purge operations for the entry store.

Physically removes records once they are past expiry plus a grace period.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from tokenvault.services.entry_store.operations.base import BaseOperation, format_timestamp

logger = logging.getLogger(__name__)


class PurgeOperations(BaseOperation):
    """Grace-period purge of expired records."""

    def purge_expired(self, grace_period_seconds: float) -> int:
        """Delete records whose expiry is older than the grace period.

        Args:
            grace_period_seconds: How long an expired record is kept

        Returns:
            Number of purged records
        """
        cutoff = self.clock() - timedelta(seconds=grace_period_seconds)

        cursor = self.conn.execute(
            f"DELETE FROM {self.table} WHERE expires < ?",
            (format_timestamp(cutoff),),
        )
        purged_count = cursor.rowcount

        if purged_count > 0:
            logger.info("Purged %d expired cache entries", purged_count)

        return purged_count
