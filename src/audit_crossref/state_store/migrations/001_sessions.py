"""
Migration 001: Add sessions table.

One JSON session document per identity.
"""

import sqlite3

VERSION = 1
NAME = "sessions"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create sessions table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            identity TEXT PRIMARY KEY,
            document_json TEXT NOT NULL,
            snapshot_version INTEGER NOT NULL,
            company_name TEXT,
            saved_at TEXT NOT NULL
        )
    """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_saved_at ON sessions(saved_at)")


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove sessions table."""
    conn.execute("DROP TABLE IF EXISTS sessions")
