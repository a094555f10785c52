"""
core/logging/logic/logger.py
============================

Thread-safe audit logger with a SQLite backend.

Diagnostics go through the standard :mod:`logging` module; this logger keeps
the business trail (who created, viewed, signed or downloaded which workflow)
in its own table so it can be queried per reference id.

- Reuses a single database connection instead of creating new ones per operation
- Connection is thread-safe via check_same_thread=False and explicit locking
"""

from __future__ import annotations

import os
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional

import core.helpers.date_time_helper as dt
from core.common.db_interface import create_sqlite_connection
from core.logging.models.log_entry import LogEntry

MEMORY_DB = ":memory:"


class AuditLogger:
    """SQLite-backed audit trail. ``db_path=":memory:"`` keeps it in RAM."""

    def __init__(self, db_path: str | Path = MEMORY_DB) -> None:
        self._lock = threading.Lock()
        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._ensure_db()

    # ------------------------------------------------------------------ #
    #  Connection management (reuse single connection)                   #
    # ------------------------------------------------------------------ #
    def _get_connection(self) -> sqlite3.Connection:
        # Callers hold self._lock.
        if self._conn is None:
            if self.db_path != MEMORY_DB:
                os.makedirs(Path(self.db_path).parent, exist_ok=True)
            self._conn = create_sqlite_connection(Path(self.db_path), check_same_thread=False)
        return self._conn

    def close(self) -> None:
        """Close the database connection and release resources."""
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                finally:
                    self._conn = None

    # ------------------------------------------------------------------ #
    #  Public API: log                                                   #
    # ------------------------------------------------------------------ #
    def log(
        self,
        feature: str,
        event: str,
        *,
        username: Optional[str] = None,
        level: str = "INFO",
        reference_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        """Persist one audit entry. A missing *username* is stored as "system"."""
        entry = LogEntry(
            id=None,
            timestamp=dt.utc_now(),
            username=username or "system",
            feature=feature,
            event=event,
            reference_id=reference_id,
            message=message,
            log_level=level,
        )
        self._insert_log(entry)

    # ------------------------------------------------------------------ #
    #  Fetch / Query / Clear                                             #
    # ------------------------------------------------------------------ #
    def fetch_logs(self, limit: int = 100) -> List[LogEntry]:
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT * FROM logs ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
            ).fetchall()
            return [LogEntry.from_row(row) for row in rows]

    def query_logs(
        self,
        *,
        username: Optional[str] = None,
        feature: Optional[str] = None,
        event: Optional[str] = None,
        reference_id: Optional[str] = None,
        level: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        limit: int = 1_000,
    ) -> List[LogEntry]:
        with self._lock:
            conn = self._get_connection()

            query = "SELECT * FROM logs WHERE 1=1"
            params: list[object] = []

            if username is not None:
                query += " AND username = ?"
                params.append(username)
            if feature is not None:
                query += " AND feature = ?"
                params.append(feature)
            if event is not None:
                query += " AND event = ?"
                params.append(event)
            if reference_id is not None:
                query += " AND reference_id = ?"
                params.append(reference_id)
            if level is not None:
                query += " AND log_level = ?"
                params.append(level)
            if start_time is not None:
                query += " AND timestamp >= ?"
                params.append(start_time)
            if end_time is not None:
                query += " AND timestamp <= ?"
                params.append(end_time)

            # id keeps insertion order stable inside the same second
            query += " ORDER BY timestamp ASC, id ASC LIMIT ?"
            params.append(limit)

            rows = conn.execute(query, params).fetchall()
            return [LogEntry.from_row(row) for row in rows]

    def clear_logs(self) -> None:
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM logs")
            conn.commit()

    # ------------------------------------------------------------------ #
    #  Internal helpers                                                  #
    # ------------------------------------------------------------------ #
    def _ensure_db(self) -> None:
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    username TEXT,
                    feature TEXT NOT NULL,
                    event TEXT NOT NULL,
                    reference_id TEXT,
                    message TEXT,
                    log_level TEXT NOT NULL DEFAULT 'INFO'
                )
                """
            )
            conn.commit()

    def _insert_log(self, entry: LogEntry) -> None:
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO logs
                    (timestamp, username, feature, event,
                     reference_id, message, log_level)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    dt.to_iso(entry.timestamp),
                    entry.username,
                    entry.feature,
                    entry.event,
                    entry.reference_id,
                    entry.message,
                    entry.log_level,
                ),
            )
            conn.commit()
