"""
State Store (SQLite-based).

Persistent storage for:
- Session documents, one per identity
- Raw upload payloads, keyed by file id
"""

from .base import BinaryStore, SessionBackend, SessionSummary
from .sqlite_store import SessionRecord, SqliteStateStore

__all__ = [
    "BinaryStore",
    "SessionBackend",
    "SessionSummary",
    "SessionRecord",
    "SqliteStateStore",
]
