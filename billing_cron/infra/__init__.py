"""
Infrastructure module - configuration, logging and SQLite helpers.
"""

from .config import Settings, load_settings
from .logging_config import setup_logging
from .sqlite import SQLiteDatabase

__all__ = [
    # config
    "Settings",
    "load_settings",
    # logging
    "setup_logging",
    # sqlite
    "SQLiteDatabase",
]
