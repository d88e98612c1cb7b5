"""
Server startup module for database initialization.
"""

from .database_init import initialize_settings_database

__all__ = ["initialize_settings_database"]
