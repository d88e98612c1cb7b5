"""
Key-value settings store.

KVStore is the port the settings service depends on: a process-wide
string-to-string mapping with no schema beyond the keys. SqliteKVStore is the
production implementation on top of the plugin_settings table.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from ..logging_utils import format_error_log, get_log_extra
from ..models.error_models import StoreReadFailure, StoreWriteFailure
from .database_manager import DatabaseConnectionManager

logger = logging.getLogger(__name__)


class KVStore(ABC):
    """Process-wide string-to-string settings store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Return the value stored under key, or None.

        Raises:
            StoreReadFailure: If the backing store cannot be read.
        """

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """
        Store value under key, replacing any previous value.

        Raises:
            StoreWriteFailure: If the backing store rejects the write.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """Return stored keys starting with prefix, sorted."""


class SqliteKVStore(KVStore):
    """
    SQLite-backed settings store.

    Every call is a direct round trip to the database; there is no cache.
    """

    def __init__(self, db_path: str) -> None:
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file with the plugin_settings table.
        """
        self._conn_manager = DatabaseConnectionManager(db_path)

    def get(self, key: str) -> Optional[str]:
        try:
            cursor = self._conn_manager.get_connection().execute(
                "SELECT value FROM plugin_settings WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreReadFailure(f"Failed to read setting '{key}': {e}") from e

        return row[0] if row else None

    def put(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()

        def operation(conn):
            conn.execute(
                """INSERT INTO plugin_settings (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, value, now),
            )

        try:
            self._conn_manager.execute_atomic(operation)
        except sqlite3.Error as e:
            logger.error(
                format_error_log("PORTAL-STORE-002", "Settings write failed", key=key, error=e),
                extra=get_log_extra("PORTAL-STORE-002"),
            )
            raise StoreWriteFailure(f"Failed to save settings: {e}") from e

        logger.debug(f"Stored setting {key} ({len(value)} chars)")

    def delete(self, key: str) -> None:
        def operation(conn):
            conn.execute("DELETE FROM plugin_settings WHERE key = ?", (key,))

        try:
            self._conn_manager.execute_atomic(operation)
        except sqlite3.Error as e:
            raise StoreWriteFailure(f"Failed to delete setting '{key}': {e}") from e

    def keys(self, prefix: str = "") -> List[str]:
        try:
            cursor = self._conn_manager.get_connection().execute(
                "SELECT key FROM plugin_settings WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            )
            return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StoreReadFailure(f"Failed to list settings: {e}") from e

    def close(self) -> None:
        self._conn_manager.close_all()
