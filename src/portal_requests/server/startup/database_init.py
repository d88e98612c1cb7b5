"""
Database initialization functions for server startup.

Runs before the application starts serving so the first request never races
schema creation.
"""

import logging
import sqlite3
from pathlib import Path

from portal_requests.server.logging_utils import format_error_log, get_log_extra
from portal_requests.server.storage.database_manager import DatabaseSchema

logger = logging.getLogger(__name__)


def initialize_settings_database(db_path: str) -> Path:
    """
    Initialize the settings database.

    This function is idempotent; the schema uses CREATE TABLE IF NOT EXISTS.

    Args:
        db_path: Path to the SQLite settings database

    Returns:
        Path to the initialized database

    Raises:
        sqlite3.Error: If the database cannot be created.
    """
    try:
        DatabaseSchema(db_path).initialize_database()
    except sqlite3.Error as e:
        logger.error(
            format_error_log(
                "PORTAL-STORE-001", "Failed to initialize settings database", path=db_path, error=e
            ),
            extra=get_log_extra("PORTAL-STORE-001"),
        )
        raise

    return Path(db_path)
