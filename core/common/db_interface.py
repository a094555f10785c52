"""
core/common/db_interface.py
===========================

Shared helper for SQLite-backed modules.
"""
from __future__ import annotations

from pathlib import Path
import sqlite3


def create_sqlite_connection(
    db_path: Path,
    *,
    check_same_thread: bool = False,
    foreign_keys: bool = False,
) -> sqlite3.Connection:
    """Create a sqlite3 connection with common defaults."""
    conn = sqlite3.connect(str(db_path), check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    if foreign_keys:
        conn.execute("PRAGMA foreign_keys = ON")
    return conn
