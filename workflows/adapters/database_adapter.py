"""Database adapter abstraction.

Provides database-agnostic interface for the workflow repository.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, List, Dict, Optional


class DatabaseAdapter(ABC):
    """Abstract database adapter for SQL operations."""

    @abstractmethod
    def execute(self, query: str, params: tuple = ()) -> Any:
        """
        Execute a query and return cursor/result.

        Args:
            query: SQL query (? placeholders)
            params: Query parameters
        """
        raise NotImplementedError

    @abstractmethod
    def fetchone(self, query: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        """Fetch single row as dictionary, or None."""
        raise NotImplementedError

    @abstractmethod
    def fetchall(self, query: str, params: tuple = ()) -> List[Dict[str, Any]]:
        """Fetch all rows as list of dictionaries."""
        raise NotImplementedError

    @abstractmethod
    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """
        Insert row and return last inserted ID.

        Args:
            table: Table name
            data: Column-value mapping
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, table: str, data: Dict[str, Any], where: str, where_params: tuple = ()) -> int:
        """
        Update rows and return count of affected rows.

        Args:
            table: Table name
            data: Column-value mapping for SET clause
            where: WHERE clause (without "WHERE" keyword)
            where_params: Parameters for WHERE clause
        """
        raise NotImplementedError

    @abstractmethod
    def commit(self) -> None:
        """Commit current transaction."""
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        """Rollback current transaction."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        raise NotImplementedError

    @abstractmethod
    def executescript(self, script: str) -> None:
        """Execute multiple SQL statements (for schema creation)."""
        raise NotImplementedError
