"""
DevHive Database Package

SQLite coordination store shared by all processes of a project.
"""

from devhive.db.database import (
    CoordinationStore,
    SQLiteDatabase,
    get_database,
    open_database,
)
from devhive.db.schema import INDEXES_SQLITE, MIGRATIONS, SCHEMA_SQLITE

__all__ = [
    "CoordinationStore",
    "SQLiteDatabase",
    "get_database",
    "open_database",
    "SCHEMA_SQLITE",
    "MIGRATIONS",
    "INDEXES_SQLITE",
]
