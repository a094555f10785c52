"""Adapters for external dependencies.

Provides the SQL-agnostic database layer used by the SQLite repository.
"""

from workflows.adapters.database_adapter import DatabaseAdapter
from workflows.adapters.sqlite_adapter import SQLiteAdapter

__all__ = [
    "DatabaseAdapter",
    "SQLiteAdapter",
]
