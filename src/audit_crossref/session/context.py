"""
Session lifecycle: start, recovery prompt, autosave, portable export/import.

State machine:

    NO_SESSION --start--> CHECKING_REMOTE --no stored session--> ACTIVE
                                  |
                                  +--stored session--> AWAITING_RECOVERY_CHOICE
                                                          |--recover--> ACTIVE
                                                          +--discard--> ACTIVE
    any --stop--> NO_SESSION

While ACTIVE a scheduler periodically snapshots the workspace and hands the
document to the autosave writer. Manual save/load failures raise with an
actionable message; autosave failures are only logged.
"""

import json
import logging
import threading
from dataclasses import replace
from enum import Enum
from pathlib import Path

from ..config import Config
from ..errors import (
    PersistenceError,
    SessionBackendError,
    SessionStateError,
    SnapshotError,
)
from ..schemas.snapshot import ProgressSnapshot
from ..services.ingestion import IngestionService
from ..state_store.base import BinaryStore, SessionBackend
from ..workspace import Workspace
from . import snapshot as codec
from .autosave import AutosaveScheduler, AutosaveWriter

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle state of a session context."""

    NO_SESSION = "NO_SESSION"
    CHECKING_REMOTE = "CHECKING_REMOTE"
    AWAITING_RECOVERY_CHOICE = "AWAITING_RECOVERY_CHOICE"
    ACTIVE = "ACTIVE"


class RecoveryChoice(str, Enum):
    """Answer to the recovery prompt."""

    RECOVER = "recover"
    DISCARD = "discard"


class SessionContext:
    """
    Owns one identity's workspace and its persistence.

    Usage:
        ctx = SessionContext(store, store, config)
        if ctx.start("auditor") == SessionState.AWAITING_RECOVERY_CHOICE:
            ctx.recover()
        ...
        ctx.stop()
    """

    def __init__(
        self,
        backend: SessionBackend,
        binary_store: BinaryStore,
        config: Config | None = None,
        autosave: bool = True,
    ):
        """
        Initialize a session context.

        Args:
            backend: Session document store
            binary_store: Upload payload store
            config: Application configuration
            autosave: Run the periodic autosave while ACTIVE
        """
        self.backend = backend
        self.blobs = binary_store
        self.config = config or Config()
        self.autosave_enabled = autosave

        self.workspace = Workspace()
        self.identity: str | None = None
        self._state = SessionState.NO_SESSION
        self._writer: AutosaveWriter | None = None
        self._scheduler: AutosaveScheduler | None = None
        self._save_lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_autosave(self) -> str | None:
        return self._writer.last_saved_at if self._writer else None

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionStateError(f"Session is {self._state.value}; expected {allowed}")

    # Lifecycle

    def start(self, identity: str) -> SessionState:
        """
        Open a session for an identity.

        Returns:
            ACTIVE for a fresh session, AWAITING_RECOVERY_CHOICE if a stored
            session exists

        Raises:
            SessionBackendError: If the backend cannot be checked; the context
                stays in NO_SESSION so stored data is never overwritten
        """
        self._require(SessionState.NO_SESSION)
        if not identity:
            raise SessionStateError("An identity is required to start a session")

        self.identity = identity
        self._state = SessionState.CHECKING_REMOTE
        try:
            exists = self.backend.session_exists(identity)
        except PersistenceError as e:
            self._state = SessionState.NO_SESSION
            self.identity = None
            raise SessionBackendError(
                f"Could not check for a saved session ({e}). "
                "Check the session backend settings and try again."
            ) from e

        if exists:
            self._state = SessionState.AWAITING_RECOVERY_CHOICE
            logger.info(f"Stored session found for {identity}; awaiting recovery choice")
            return self._state

        self.workspace.reset(auditor_name=identity)
        self._activate()
        return self._state

    def choose(self, choice: RecoveryChoice) -> SessionState:
        if choice == RecoveryChoice.RECOVER:
            self.recover()
        else:
            self.discard()
        return self._state

    def recover(self) -> ProgressSnapshot | None:
        """
        Load the stored session into the workspace.

        Raises:
            PersistenceError: If the stored session cannot be read; the
                recovery prompt stays open so the user can discard instead
        """
        self._require(SessionState.AWAITING_RECOVERY_CHOICE)
        document = self.backend.load_session(self.identity)
        if document is None:
            logger.warning(f"Stored session for {self.identity} disappeared; starting fresh")
            self.workspace.reset(auditor_name=self.identity)
            self._activate()
            return None

        snapshot = self._restore(codec.deserialize(document))
        self._activate()
        return snapshot

    def discard(self) -> None:
        """Drop the stored session and start from an empty workspace."""
        self._require(SessionState.AWAITING_RECOVERY_CHOICE)
        try:
            self.backend.delete_session(self.identity)
        except PersistenceError as e:
            logger.error(f"Could not delete stored session for {self.identity}: {e}")
        self.workspace.reset(auditor_name=self.identity)
        self._activate()

    def stop(self) -> None:
        """End the session: cancel autosave, finish pending writes, clear state."""
        if self._scheduler is not None:
            self._scheduler.cancel()
            self._scheduler = None
        if self._writer is not None:
            self._writer.stop()
            self._writer = None
        self._state = SessionState.NO_SESSION
        self.identity = None
        self.workspace.reset()
        logger.info("Session stopped")

    def _activate(self) -> None:
        self._state = SessionState.ACTIVE
        if not self.autosave_enabled:
            return
        self._writer = AutosaveWriter(self.backend, self.identity)
        self._writer.start()
        self._scheduler = AutosaveScheduler(
            self.config.session.autosave_interval_seconds,
            self.autosave_tick,
            name=f"autosave-{self.identity}",
        )
        self._scheduler.start()
        logger.info(f"Session active for {self.identity}")

    # Saving

    def build_document(self, embed_payloads: bool | None = None) -> dict:
        """Serialize a point-in-time snapshot of the workspace."""
        if self.identity:
            self.workspace.ensure_auditor_name(self.identity)
        snapshot = replace(self.workspace.to_snapshot(), saved_at=codec.utc_now())
        if embed_payloads is None:
            embed_payloads = self.config.session.embed_payloads
        if embed_payloads:
            snapshot = codec.embed_payloads(snapshot, self.blobs)
        return codec.serialize(snapshot)

    def autosave_tick(self) -> None:
        """Hand the current state to the writer (scheduler callback)."""
        with self._save_lock:
            if self._state != SessionState.ACTIVE or self._writer is None:
                return
            self._writer.submit(self.build_document())

    def save_now(self, timeout: float | None = None) -> None:
        """
        Synchronous save to the backend.

        With autosave running the write goes through the autosave writer, so
        it is ordered with the periodic saves and never overwritten by an
        older document.

        Raises:
            SessionBackendError: If the backend write fails
        """
        self._require(SessionState.ACTIVE)
        with self._save_lock:
            document = self.build_document()
            writer = self._writer
            if writer is not None:
                ticket = writer.submit(document)
        try:
            if writer is None:
                self.backend.save_session(self.identity, document)
            else:
                error = writer.wait(ticket, timeout)
                if error is not None:
                    raise error
        except PersistenceError as e:
            raise SessionBackendError(
                f"Saving the session failed ({e}). Your work is still in memory; "
                "export a snapshot file to keep a copy."
            ) from e
        logger.info(f"Session saved for {self.identity}")

    def flush(self, timeout: float | None = None) -> bool:
        return self._writer.flush(timeout) if self._writer else True

    # Portable snapshot files

    def download_snapshot(self, path: Path) -> Path:
        """
        Write a portable snapshot file (payloads embedded).

        Raises:
            SnapshotError: If the file cannot be written
        """
        self._require(SessionState.ACTIVE)
        path = Path(path)
        document = self.build_document(embed_payloads=True)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            text = json.dumps(document, ensure_ascii=False, indent=2)
            path.write_text(text, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise SnapshotError(f"Could not write the backup file {path}: {e}") from e
        logger.info(f"Snapshot exported to {path}")
        return path

    def load_snapshot_file(self, path: Path) -> ProgressSnapshot:
        """
        Replace the workspace with a portable snapshot file.

        Raises:
            SnapshotError: If the file is missing, not JSON, or invalid
        """
        self._require(SessionState.ACTIVE, SessionState.AWAITING_RECOVERY_CHOICE)
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SnapshotError(f"Could not read the backup file {path}: {e}") from e

        snapshot = self._restore(codec.loads(text))
        if self._state != SessionState.ACTIVE:
            self._activate()
        logger.info(f"Snapshot loaded from {path}")
        return snapshot

    def _restore(self, snapshot: ProgressSnapshot) -> ProgressSnapshot:
        """Move payloads to the binary store, restore the workspace, rebuild lines."""
        snapshot = codec.detach_payloads(snapshot, self.blobs)
        self.workspace.restore(snapshot)
        rebuilt = IngestionService(self.workspace, self.blobs).rebuild_line_files()
        if rebuilt:
            logger.info(f"Rebuilt {rebuilt} XML line files from stored payloads")
        return snapshot
