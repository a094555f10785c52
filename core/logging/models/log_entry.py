"""
One row of the audit trail written by ``AuditLogger``.

Workflow events use the workflow id as ``reference_id`` and the signer id
(or "system") as ``username``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import core.helpers.date_time_helper as dt


@dataclass(frozen=True)
class LogEntry:
    id: Optional[int]
    timestamp: datetime          # UTC
    username: str
    feature: str
    event: str
    reference_id: Optional[str] = None
    message: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "LogEntry":
        """Build from a ``logs`` table row (timestamp stored as ISO text)."""
        ts = row["timestamp"]
        return cls(
            id=row["id"],
            timestamp=dt.from_iso(ts) if isinstance(ts, str) else ts,
            username=row["username"] or "system",
            feature=row["feature"],
            event=row["event"],
            reference_id=row["reference_id"],
            message=row["message"],
            log_level=row["log_level"] or "INFO",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": dt.to_iso(self.timestamp),
            "level": self.log_level,
            "username": self.username,
            "feature": self.feature,
            "event": self.event,
            "referenceId": self.reference_id,
            "message": self.message,
        }
