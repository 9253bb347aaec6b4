"""Entry store operations module.

Separate operation classes for querying, upserting and purging entries.
"""

from tokenvault.services.entry_store.operations.purge import PurgeOperations
from tokenvault.services.entry_store.operations.query import QueryOperations
from tokenvault.services.entry_store.operations.upsert import UpsertOperations

__all__ = ["PurgeOperations", "QueryOperations", "UpsertOperations"]
