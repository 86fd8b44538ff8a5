"""Tests for the SQLite state store."""

import sqlite3

import pytest

from audit_crossref.errors import PersistenceError, SessionBackendError
from audit_crossref.state_store import BinaryStore, SessionBackend, SqliteStateStore
from audit_crossref.state_store.migrations import MigrationRunner, get_all_migrations


class TestStateStore:
    """Tests for SQLite state store."""

    @pytest.fixture
    def store(self, temp_db):
        """Create a fresh state store."""
        return SqliteStateStore(temp_db)

    def test_init_creates_db(self, temp_db):
        """Initializing creates database file."""
        SqliteStateStore(temp_db)
        assert temp_db.exists()

    def test_init_creates_tables(self, store):
        """All required tables are created."""
        conn = store._get_connection()
        try:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            table_names = [t[0] for t in tables]

            assert "sessions" in table_names
            assert "file_blobs" in table_names
            assert "migrations" in table_names
        finally:
            conn.close()

    def test_implements_protocols(self, store):
        assert isinstance(store, SessionBackend)
        assert isinstance(store, BinaryStore)


class TestSessionOperations:
    """Tests for session document CRUD."""

    @pytest.fixture
    def store(self, temp_db):
        return SqliteStateStore(temp_db)

    @pytest.fixture
    def document(self):
        return {
            "version": 2,
            "savedAt": "2024-03-01T10:00:00Z",
            "auditDetails": {"companyName": "ACME Ltda"},
            "customComments": ["O.K."],
        }

    def test_save_and_load(self, store, document):
        store.save_session("alice", document)
        assert store.session_exists("alice")
        assert store.load_session("alice") == document

    def test_missing_session(self, store):
        assert not store.session_exists("nobody")
        assert store.load_session("nobody") is None

    def test_last_write_wins(self, store, document):
        store.save_session("alice", document)
        store.save_session("alice", {**document, "customComments": ["new"]})
        assert store.load_session("alice")["customComments"] == ["new"]
        assert len(store.list_sessions()) == 1

    def test_record_columns(self, store, document):
        store.save_session("alice", document)
        record = store.get_session_record("alice")
        assert record.snapshot_version == 2
        assert record.company_name == "ACME Ltda"
        assert record.saved_at == "2024-03-01T10:00:00Z"

    def test_delete(self, store, document):
        store.save_session("alice", document)
        assert store.delete_session("alice") is True
        assert store.delete_session("alice") is False
        assert not store.session_exists("alice")

    def test_list_most_recent_first(self, store, document):
        store.save_session("old", {**document, "savedAt": "2024-01-01T00:00:00Z"})
        store.save_session("new", {**document, "savedAt": "2024-06-01T00:00:00Z"})
        summaries = store.list_sessions()
        assert [s.identity for s in summaries] == ["new", "old"]
        assert summaries[0].company_name == "ACME Ltda"

    def test_corrupt_document(self, store, temp_db):
        conn = sqlite3.connect(temp_db)
        conn.execute(
            "INSERT INTO sessions (identity, document_json, snapshot_version, saved_at) "
            "VALUES ('bad', '{oops', 2, 'x')"
        )
        conn.commit()
        conn.close()

        with pytest.raises(SessionBackendError):
            store.load_session("bad")


class TestBlobOperations:
    @pytest.fixture
    def store(self, temp_db):
        return SqliteStateStore(temp_db)

    def test_put_get_delete(self, store):
        store.put_blob("file-1", b"\x00\x01binary")
        assert store.get_blob("file-1") == b"\x00\x01binary"
        assert store.delete_blob("file-1") is True
        assert store.get_blob("file-1") is None
        assert store.delete_blob("file-1") is False

    def test_put_replaces(self, store):
        store.put_blob("file-1", b"a")
        store.put_blob("file-1", b"bb")
        assert store.get_blob("file-1") == b"bb"

    def test_stats(self, store):
        store.put_blob("file-1", b"abc")
        store.save_session("alice", {"version": 2})
        assert store.get_stats() == {"sessions": 1, "blobs": 1, "blob_bytes": 3}


class TestMigrations:
    def test_all_migrations_discovered(self):
        versions = [m.version for m in get_all_migrations()]
        assert versions == sorted(versions)
        assert versions[:2] == [1, 2]

    def test_run_pending_is_idempotent(self, temp_db):
        SqliteStateStore(temp_db)
        conn = sqlite3.connect(temp_db)
        conn.row_factory = sqlite3.Row
        try:
            runner = MigrationRunner(conn)
            assert runner.run_pending() == []
            assert runner.get_current_version() == 2
        finally:
            conn.close()

    def test_rollback_to(self, temp_db):
        SqliteStateStore(temp_db)
        conn = sqlite3.connect(temp_db)
        try:
            runner = MigrationRunner(conn)
            assert runner.rollback_to(1) == [2]
            assert runner.get_current_version() == 1
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master")}
            assert "file_blobs" not in tables
            assert "sessions" in tables

            # Reapplying restores the dropped step only
            assert runner.run_pending() == [2]
        finally:
            conn.close()

    def test_newer_schema_refused(self, temp_db):
        SqliteStateStore(temp_db)
        conn = sqlite3.connect(temp_db)
        conn.execute(
            "INSERT INTO migrations (version, name, applied_at) VALUES (99, 'future', 'x')"
        )
        conn.commit()
        conn.close()

        with pytest.raises(PersistenceError) as exc_info:
            SqliteStateStore(temp_db)
        assert "newer than this release" in str(exc_info.value)
