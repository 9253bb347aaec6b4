"""Durable entry store.

SQLite-backed storage of tokenized cache entries with grace-period purging.
"""

from tokenvault.services.entry_store.migration import MigrationManager
from tokenvault.services.entry_store.reaper import ExpiredRecordReaper
from tokenvault.services.entry_store.store import EntryStore

__all__ = ["EntryStore", "ExpiredRecordReaper", "MigrationManager"]
