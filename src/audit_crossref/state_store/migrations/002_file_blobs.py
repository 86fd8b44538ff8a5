"""
Migration 002: Add file_blobs table.

Raw upload payloads, keyed by registry file id.
"""

import sqlite3

VERSION = 2
NAME = "file_blobs"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create file_blobs table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS file_blobs (
            file_id TEXT PRIMARY KEY,
            data BLOB NOT NULL,
            size INTEGER NOT NULL,
            stored_at TEXT NOT NULL
        )
    """
    )


def downgrade(conn: sqlite3.Connection) -> None:
    """Remove file_blobs table."""
    conn.execute("DROP TABLE IF EXISTS file_blobs")
