"""Migration manager for the durable entry store.

This module provides database schema creation and version tracking.
"""

from __future__ import annotations

import logging
import sqlite3

from tokenvault.shared.constants import StoreSchema

logger = logging.getLogger(__name__)


class MigrationManager:
    """Database schema migration manager."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize migration manager.

        Args:
            conn: SQLite database connection
        """
        self.conn = conn
        self._current_version = self._get_current_version()

    def get_current_version(self) -> int:
        return self._current_version

    def _get_current_version(self) -> int:
        """Get current schema version from database (0 if not set)."""
        cursor = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (StoreSchema.SCHEMA_VERSION_TABLE,),
        )
        if cursor.fetchone() is None:
            return 0

        cursor = self.conn.execute(
            f"SELECT MAX(version) FROM {StoreSchema.SCHEMA_VERSION_TABLE}"
        )
        row = cursor.fetchone()
        return row[0] if row and row[0] is not None else 0

    def create_tables(self, *, expires_index: bool) -> None:
        """Create database schema (v1).

        Args:
            expires_index: Create the index used by the expired-record purge
        """
        schema_sql = f"""
        CREATE TABLE IF NOT EXISTS {StoreSchema.TABLE} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,

            -- Tokenized identifier (never the plaintext id)
            tokenized_id BLOB NOT NULL,

            -- Caller payload (JSON)
            value TEXT NOT NULL,

            -- Logical expiration and metadata, ISO-8601 UTC
            expires TEXT NOT NULL,
            created TEXT NOT NULL,
            updated TEXT NOT NULL,

            CHECK (length(tokenized_id) > 0)
        );

        -- tokenized_id is the match key for upserts and point lookups
        CREATE UNIQUE INDEX IF NOT EXISTS {StoreSchema.TOKENIZED_ID_INDEX}
            ON {StoreSchema.TABLE}(tokenized_id);

        CREATE TABLE IF NOT EXISTS {StoreSchema.SCHEMA_VERSION_TABLE} (
            version INTEGER PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP NOT NULL
        );
        """
        self.conn.executescript(schema_sql)

        if expires_index:
            self.conn.execute(
                f"CREATE INDEX IF NOT EXISTS {StoreSchema.EXPIRES_INDEX} "
                f"ON {StoreSchema.TABLE}(expires)"
            )
        else:
            self.conn.execute(f"DROP INDEX IF EXISTS {StoreSchema.EXPIRES_INDEX}")

        self.conn.execute(
            f"INSERT OR IGNORE INTO {StoreSchema.SCHEMA_VERSION_TABLE} (version) VALUES (?)",
            (StoreSchema.SCHEMA_VERSION,),
        )
        self._current_version = StoreSchema.SCHEMA_VERSION

        logger.debug("Ensured database schema (v%d)", StoreSchema.SCHEMA_VERSION)

    def list_indexes(self) -> list[str]:
        """Names of the indexes defined on the entry table."""
        cursor = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name=? ORDER BY name",
            (StoreSchema.TABLE,),
        )
        return [row[0] for row in cursor.fetchall()]

    def validate_schema(self) -> bool:
        """Check that the required tables and the unique index exist."""
        for table in (StoreSchema.TABLE, StoreSchema.SCHEMA_VERSION_TABLE):
            cursor = self.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                (table,),
            )
            if cursor.fetchone() is None:
                logger.error("Required table '%s' not found", table)
                return False

        if StoreSchema.TOKENIZED_ID_INDEX not in self.list_indexes():
            logger.error("Required index '%s' not found", StoreSchema.TOKENIZED_ID_INDEX)
            return False

        return True
