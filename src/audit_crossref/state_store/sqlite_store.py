"""
SQLite-based state store.

Tables (created by migrations):
- sessions: one JSON session document per identity
- file_blobs: raw upload payloads keyed by file id

Implements both SessionBackend and BinaryStore.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..errors import SessionBackendError
from .base import SessionSummary

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class SessionRecord:
    """Row of the sessions table."""

    identity: str
    document_json: str
    snapshot_version: int
    company_name: str | None
    saved_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "SessionRecord":
        """Create from database row."""
        return cls(
            identity=row["identity"],
            document_json=row["document_json"],
            snapshot_version=row["snapshot_version"],
            company_name=row["company_name"],
            saved_at=row["saved_at"],
        )

    def to_summary(self) -> SessionSummary:
        return SessionSummary(
            identity=self.identity,
            saved_at=self.saved_at,
            company_name=self.company_name or "",
        )


class SqliteStateStore:
    """
    SQLite persistence for session documents and file payloads.

    Every public call opens its own connection, so the store can be shared by
    the autosave writer thread and the foreground.
    """

    def __init__(self, db_path: Path | str, run_migrations: bool = True):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise SessionBackendError(f"Cannot open state database {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise SessionBackendError(f"State database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            MigrationRunner(conn).run_pending()
        finally:
            conn.close()

    # Sessions

    def session_exists(self, identity: str) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM sessions WHERE identity = ?", (identity,)
            ).fetchone()
        return row is not None

    def get_session_record(self, identity: str) -> SessionRecord | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE identity = ?", (identity,)).fetchone()
        return SessionRecord.from_row(row) if row else None

    def load_session(self, identity: str) -> dict | None:
        """Load the stored document for an identity, or None."""
        record = self.get_session_record(identity)
        if record is None:
            return None
        try:
            return json.loads(record.document_json)
        except json.JSONDecodeError as e:
            raise SessionBackendError(f"Stored session for {identity} is corrupt: {e}") from e

    def save_session(self, identity: str, document: dict) -> None:
        """Insert or replace the document for an identity (last write wins)."""
        document_json = json.dumps(document, ensure_ascii=False)
        company = (document.get("auditDetails") or {}).get("companyName")
        saved_at = document.get("savedAt") or _now()

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO sessions (identity, document_json, snapshot_version, company_name, saved_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(identity) DO UPDATE SET
                    document_json = excluded.document_json,
                    snapshot_version = excluded.snapshot_version,
                    company_name = excluded.company_name,
                    saved_at = excluded.saved_at
            """,
                (identity, document_json, int(document.get("version") or 0), company, saved_at),
            )
        logger.debug(f"Saved session for {identity} ({len(document_json)} bytes)")

    def delete_session(self, identity: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE identity = ?", (identity,))
            deleted = cursor.rowcount > 0
        return deleted

    def list_sessions(self) -> list[SessionSummary]:
        """All stored sessions, most recently saved first."""
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM sessions ORDER BY saved_at DESC").fetchall()
        return [SessionRecord.from_row(row).to_summary() for row in rows]

    # Blobs

    def put_blob(self, file_id: str, data: bytes) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO file_blobs (file_id, data, size, stored_at)
                VALUES (?, ?, ?, ?)
            """,
                (file_id, sqlite3.Binary(data), len(data), _now()),
            )

    def get_blob(self, file_id: str) -> bytes | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT data FROM file_blobs WHERE file_id = ?", (file_id,)
            ).fetchone()
        return bytes(row["data"]) if row else None

    def delete_blob(self, file_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM file_blobs WHERE file_id = ?", (file_id,))
            deleted = cursor.rowcount > 0
        return deleted

    def get_stats(self) -> dict:
        """Row counts for status displays."""
        with self._transaction() as conn:
            sessions = conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]
            blobs = conn.execute("SELECT COUNT(*), COALESCE(SUM(size), 0) FROM file_blobs").fetchone()
        return {"sessions": sessions, "blobs": blobs[0], "blob_bytes": blobs[1]}
