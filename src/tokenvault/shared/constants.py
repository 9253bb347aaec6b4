"""
Cache Configuration Constants

Centralized constants for TTLs, in-memory cache limits, the durable store
schema and identifier tagging.
"""

# Base time units for TTL calculations
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE
BASE_DAY = 24 * BASE_HOUR


class CacheDefaults:
    """Defaults for entry lifetimes and the in-memory cache."""

    # 1000 of the most popular entries can stay in memory
    MEMORY_MAX_SIZE = 1000
    # actual age is also bounded by entry expiry
    MEMORY_MAX_AGE = BASE_DAY

    AUTO_REMOVE_EXPIRED_RECORDS = True
    # physical removal lags logical expiry by this much
    EXPIRATION_GRACE_PERIOD = BASE_DAY
    REAPER_INTERVAL = BASE_HOUR

    DB_FILENAME = "tokenized-cache.db"
    HOME_DIR = ".tokenvault"


class StoreSchema:
    """Durable store table and index names."""

    TABLE = "tokenized_cache_entry"
    SCHEMA_VERSION_TABLE = "schema_version"
    TOKENIZED_ID_INDEX = "idx_entry_tokenized_id"
    EXPIRES_INDEX = "idx_entry_expires"
    SCHEMA_VERSION = 1


class Multihash:
    """Self-describing tag prepended to digests and MACs."""

    # 0x12 means sha2-256
    SHA2_256 = 0x12
    # digest length in bytes
    SHA2_256_LENGTH = 32
    PREFIX = bytes([SHA2_256, SHA2_256_LENGTH])


class KeyringDefaults:
    """Defaults for the HMAC keyring."""

    KEYS_DIR = "keys"
    SALT_FILE = "salt"
    CURRENT_FILE = "current"
    KEY_FILE_SUFFIX = ".key"
    SECRET_LENGTH = 32
    SALT_LENGTH = 32
    MIN_SALT_LENGTH = 16
    # OWASP recommended minimum
    PBKDF2_ITERATIONS = 600_000
    KEY_ID_PREFIX = "hmac-v"


class LogDefaults:
    """Logging display limits."""

    CACHE_KEY_PREVIEW_LENGTH = 16
