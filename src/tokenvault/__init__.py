"""
TokenVault - Tokenized TTL Cache

A privacy-preserving key/value cache: identifiers are tokenized with a
keyed MAC before they reach durable storage, and a bounded in-memory
read-through cache absorbs repeated reads.
"""

__version__ = "0.1.0"

from tokenvault.cache import TokenizedCache, TokenizeResult
from tokenvault.security.keyring import HmacKeyring, KeyringTokenizerProvider
from tokenvault.security.tokenizer import HmacTokenizer, StaticTokenizerProvider
from tokenvault.services.cache_models import CacheRecord, Entry, EntryMeta, QueryPlan
from tokenvault.services.entry_cache import EntryCache
from tokenvault.services.entry_store import EntryStore
from tokenvault.shared.errors import (
    InvalidArgumentError,
    KeyProviderError,
    NotFoundError,
    StoreFailureError,
    TokenVaultError,
)

__all__ = [
    "CacheRecord",
    "Entry",
    "EntryCache",
    "EntryMeta",
    "EntryStore",
    "HmacKeyring",
    "HmacTokenizer",
    "InvalidArgumentError",
    "KeyProviderError",
    "KeyringTokenizerProvider",
    "NotFoundError",
    "QueryPlan",
    "StaticTokenizerProvider",
    "StoreFailureError",
    "TokenVaultError",
    "TokenizeResult",
    "TokenizedCache",
]
