"""Cache services: durable entry store and in-memory read-through cache."""

from tokenvault.services.cache_models import CacheRecord, Entry, EntryMeta, QueryPlan
from tokenvault.services.entry_cache import EntryCache
from tokenvault.services.entry_store import EntryStore, ExpiredRecordReaper

__all__ = [
    "CacheRecord",
    "Entry",
    "EntryCache",
    "EntryMeta",
    "EntryStore",
    "ExpiredRecordReaper",
    "QueryPlan",
]
