"""Background purge of expired entry store records.

This module provides the ExpiredRecordReaper class (a threading.Thread
subclass) that periodically removes records past their grace period.
"""

from __future__ import annotations

import logging
import threading
import time

from tokenvault.services.entry_store.store import EntryStore
from tokenvault.shared.errors import ErrorCode, ErrorContext, InfrastructureError, TokenVaultError
from tokenvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)


class ExpiredRecordReaper(threading.Thread):
    """Daemon thread that calls ``store.purge_expired()`` on an interval.

    Args:
        store: EntryStore to purge.
        interval_seconds: Delay between purges.
    """

    def __init__(self, store: EntryStore, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        super().__init__(name="tokenvault-reaper", daemon=True)
        self.store = store
        self.interval_seconds = interval_seconds
        self.runs = 0
        self._stop_event = threading.Event()

    def run(self) -> None:
        """Purge until stopped; the first purge happens one interval after start."""
        while not self._stop_event.wait(self.interval_seconds):
            self.purge_once()

    def purge_once(self) -> int:
        """Run a single purge, logging rather than raising failures."""
        start_time = time.perf_counter()
        try:
            purged = self.store.purge_expired()
        except TokenVaultError as e:
            log_operation_error(logger, e, operation="reap_expired")
            return 0
        except Exception as e:
            error = InfrastructureError(
                ErrorCode.STORE_FAILURE,
                "Unexpected error while purging expired records",
                ErrorContext(operation="reap_expired"),
                original_error=e,
            )
            log_operation_error(logger, error)
            return 0
        finally:
            self.runs += 1

        log_operation_success(
            logger,
            "reap_expired",
            (time.perf_counter() - start_time) * 1000,
            {"purged": purged},
        )
        return purged

    def stop(self, timeout: float | None = None) -> None:
        """Signal the reaper to stop and wait for it to exit."""
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)
