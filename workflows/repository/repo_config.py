"""Repository configuration."""

from __future__ import annotations
from dataclasses import dataclass


@dataclass
class RepoConfig:
    """Configuration for workflow repositories."""

    db_path: str = ":memory:"
    """Path to SQLite database file"""

    id_prefix: str = ""
    """Optional prefix for workflow IDs (e.g. "WF-" -> "WF-3f2a..."); the rest is uuid4 hex"""
