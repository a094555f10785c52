"""
date_time_helper.py

Helper functions for date/time values: UTC for storage, a configurable local
zone for anything printed onto a document.

All features should use ONLY these helpers for date/time logic.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_PDF_DATE_RE = re.compile(
    r"^D?:?(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?"
    r"(?:([Zz+\-])(\d{2})?'?(\d{2})?'?)?"
)


def utc_now() -> datetime:
    """Current time, timezone-aware UTC, without microseconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def utc_now_iso() -> str:
    """
    Returns the current UTC time as an ISO8601 string (YYYY-MM-DDTHH:MM:SS+00:00).
    Used for logging and DB storage.
    """
    return utc_now().isoformat()


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def local_zone(name: str) -> timezone | ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def format_local(value: datetime, fmt: str, tz_name: str) -> str:
    """Format an aware datetime in the given zone, e.g. '19/10/2026 14:05'."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(local_zone(tz_name)).strftime(fmt)


def parse_pdf_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a PDF date string (``D:YYYYMMDDHHmmSSOHH'mm'``) into an aware
    datetime. Returns None for anything unparseable.
    """
    if not value:
        return None
    m = _PDF_DATE_RE.match(str(value).strip())
    if not m:
        return None
    year, month, day, hour, minute, second, sign, off_h, off_m = m.groups()
    try:
        dt = datetime(
            int(year), int(month or 1), int(day or 1),
            int(hour or 0), int(minute or 0), int(second or 0),
        )
    except ValueError:
        return None
    if sign in ("+", "-"):
        delta = timedelta(hours=int(off_h or 0), minutes=int(off_m or 0))
        if sign == "-":
            delta = -delta
        return dt.replace(tzinfo=timezone(delta))
    return dt.replace(tzinfo=timezone.utc)
