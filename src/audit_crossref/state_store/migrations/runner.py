"""
Schema steps for the state database.

Each step is a module next to this file named {version}_{name}.py
(001_sessions.py, 002_file_blobs.py, ...) exposing VERSION, NAME,
upgrade(conn) and optionally downgrade(conn).

A database whose recorded schema is newer than the newest known step was
written by a newer release; it is refused rather than written to.
"""

import importlib
import logging
import pkgutil
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ...errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]
    downgrade: Callable[[sqlite3.Connection], None] | None = None


def get_all_migrations() -> list[Migration]:
    """Every schema step of this package, oldest first."""
    package = __name__.rsplit(".", 1)[0]
    steps = []
    for info in pkgutil.iter_modules([str(Path(__file__).parent)]):
        if not info.name[:3].isdigit():
            continue
        module = importlib.import_module(f"{package}.{info.name}")
        steps.append(
            Migration(
                version=module.VERSION,
                name=module.NAME,
                upgrade=module.upgrade,
                downgrade=getattr(module, "downgrade", None),
            )
        )
    return sorted(steps, key=lambda m: m.version)


class MigrationRunner:
    """Brings the state database schema up to date on one connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        with self.conn:
            self.conn.execute(
                "CREATE TABLE IF NOT EXISTS migrations ("
                "version INTEGER PRIMARY KEY, name TEXT NOT NULL, applied_at TEXT NOT NULL)"
            )

    def get_applied_versions(self) -> set[int]:
        return {row[0] for row in self.conn.execute("SELECT version FROM migrations")}

    def get_current_version(self) -> int:
        row = self.conn.execute("SELECT MAX(version) FROM migrations").fetchone()
        return row[0] or 0

    def _step(self, migration: Migration, action: str) -> None:
        """Run one upgrade or downgrade and its bookkeeping as a single transaction."""
        try:
            with self.conn:
                if action == "upgrade":
                    migration.upgrade(self.conn)
                    self.conn.execute(
                        "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                        (
                            migration.version,
                            migration.name,
                            datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                        ),
                    )
                else:
                    migration.downgrade(self.conn)
                    self.conn.execute(
                        "DELETE FROM migrations WHERE version = ?", (migration.version,)
                    )
        except sqlite3.Error as e:
            logger.error(f"Schema {action} {migration.version} ({migration.name}) failed: {e}")
            raise PersistenceError(
                f"State database schema {action} {migration.version} ({migration.name}) "
                f"failed: {e}"
            ) from e
        logger.info(f"Schema {action} {migration.version}: {migration.name}")

    def run_pending(self) -> list[int]:
        """
        Apply the steps not yet recorded.

        Returns:
            Versions applied, oldest first

        Raises:
            PersistenceError: If the database schema is newer than this
                release, or a step fails (that step is rolled back)
        """
        migrations = get_all_migrations()
        current = self.get_current_version()
        newest = migrations[-1].version if migrations else 0
        if current > newest:
            raise PersistenceError(
                f"State database schema version {current} is newer than this release "
                f"supports ({newest}); upgrade audit-crossref or use another state_db_path"
            )

        applied = self.get_applied_versions()
        done = []
        for migration in migrations:
            if migration.version not in applied:
                self._step(migration, "upgrade")
                done.append(migration.version)
        return done

    def rollback_to(self, target_version: int) -> list[int]:
        """
        Undo steps newer than target_version, newest first.

        Returns:
            Versions rolled back

        Raises:
            PersistenceError: If a step has no downgrade
        """
        applied = self.get_applied_versions()
        undone = []
        for migration in reversed(get_all_migrations()):
            if migration.version <= target_version or migration.version not in applied:
                continue
            if migration.downgrade is None:
                raise PersistenceError(
                    f"Schema step {migration.version} ({migration.name}) cannot be rolled back"
                )
            self._step(migration, "downgrade")
            undone.append(migration.version)
        return undone
