"""
Database connection pooling and schema management for SQLite storage.

Provides:
- DatabaseSchema: Creates the SQLite schema backing the settings store
- DatabaseConnectionManager: Per-thread connections with atomic writes
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Callable, Dict, TypeVar

from ..logging_utils import format_error_log, get_log_extra

T = TypeVar("T")

logger = logging.getLogger(__name__)


class DatabaseSchema:
    """
    Manages SQLite database schema creation and initialization.

    The settings store is a flat string-to-string table; structure lives in
    the values written by the settings service.
    """

    CREATE_PLUGIN_SETTINGS_TABLE = """
        CREATE TABLE IF NOT EXISTS plugin_settings (
            key TEXT PRIMARY KEY NOT NULL,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """

    def __init__(self, db_path: str) -> None:
        """
        Initialize schema manager.

        Args:
            db_path: Path to SQLite database file.
        """
        self.db_path = db_path

    def initialize_database(self) -> None:
        """
        Create the database file and all tables.

        Safe to run multiple times; uses CREATE TABLE IF NOT EXISTS.
        """
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(self.CREATE_PLUGIN_SETTINGS_TABLE)
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Initialized settings database at {self.db_path}")


class DatabaseConnectionManager:
    """
    One SQLite connection per thread, keyed by thread ident.

    Connections are opened with check_same_thread=False so that close_all can
    release them from the thread shutting the store down. Each connection is
    still only used by the thread that opened it.
    """

    CONNECT_TIMEOUT_SECONDS = 30

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._connections: Dict[int, sqlite3.Connection] = {}
        self._lock = threading.Lock()

    @property
    def open_connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def get_connection(self) -> sqlite3.Connection:
        """Connection owned by the calling thread, opened on first use."""
        thread_id = threading.get_ident()
        with self._lock:
            conn = self._connections.get(thread_id)
            if conn is None:
                conn = sqlite3.connect(
                    self.db_path,
                    timeout=self.CONNECT_TIMEOUT_SECONDS,
                    check_same_thread=False,
                )
                self._connections[thread_id] = conn
        return conn

    def execute_atomic(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        """
        Run operation inside a BEGIN IMMEDIATE transaction.

        The write lock is taken up front; the transaction commits when
        operation returns and rolls back when it raises.
        """
        conn = self.get_connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            result = operation(conn)
        except Exception:
            conn.rollback()
            raise
        conn.commit()
        return result

    def close_all(self) -> None:
        """Close every open connection. Threads reconnect on their next call."""
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()

        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.warning(
                    format_error_log(
                        "PORTAL-STORE-005", "Failed to close settings connection",
                        path=self.db_path, error=e,
                    ),
                    extra=get_log_extra("PORTAL-STORE-005"),
                )
