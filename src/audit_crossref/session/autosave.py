"""
Background autosave.

Two threads per active session:
- AutosaveScheduler ticks at a fixed interval and hands a freshly built
  session document to the writer
- AutosaveWriter performs the backend writes one at a time through a
  single-slot queue: a document submitted while another is still pending
  replaces it, so writes complete in order and the newest state wins

A document older (by savedAt) than the last one written is dropped rather
than written. A failed write is logged and simply waits for the next tick.
"""

import logging
import threading
from collections.abc import Callable

from ..errors import SessionStateError
from ..state_store.base import SessionBackend

logger = logging.getLogger(__name__)


class AutosaveWriter:
    """Serializes session writes for one identity."""

    def __init__(self, backend: SessionBackend, identity: str):
        self.backend = backend
        self.identity = identity
        self.last_saved_at: str | None = None
        self.failures = 0
        self.superseded = 0
        self.stale = 0

        self._cond = threading.Condition()
        self._pending: tuple[int, dict] | None = None
        self._ticket = 0
        self._done = 0
        self._last_error: Exception | None = None
        self._busy = False
        self._stopped = False
        self._thread = threading.Thread(
            target=self._run,
            name=f"autosave-writer-{identity}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def submit(self, document: dict) -> int:
        """Queue a document for writing, replacing any unflushed one.

        Returns:
            Ticket to pass to wait().
        """
        with self._cond:
            if self._stopped:
                raise SessionStateError("Autosave writer is stopped")
            if self._pending is not None:
                self.superseded += 1
            self._ticket += 1
            self._pending = (self._ticket, document)
            self._cond.notify_all()
            return self._ticket

    def wait(self, ticket: int, timeout: float | None = None) -> Exception | None:
        """Wait until the document behind a ticket (or a newer one) is handled.

        Returns:
            The error of the last handled write, None if it succeeded.

        Raises:
            SessionStateError: On timeout.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._done >= ticket, timeout):
                raise SessionStateError("Timed out waiting for the session write")
            return self._last_error

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until nothing is pending or being written. False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending is None and not self._busy, timeout)

    def stop(self, timeout: float | None = None) -> None:
        """Write whatever is pending, then end the worker."""
        with self._cond:
            self._stopped = True
            self._cond.notify_all()
        if self._thread.is_alive():
            self._thread.join(timeout)

    def _is_stale(self, document: dict) -> bool:
        saved_at = document.get("savedAt")
        return bool(saved_at and self.last_saved_at and saved_at < self.last_saved_at)

    def _run(self) -> None:
        while True:
            with self._cond:
                while self._pending is None and not self._stopped:
                    self._cond.wait()
                if self._pending is None:
                    return
                ticket, document = self._pending
                self._pending = None
                self._busy = True

            error = None
            try:
                if self._is_stale(document):
                    self.stale += 1
                    logger.warning(
                        f"Dropped a session document for {self.identity} older than "
                        f"the last write ({document.get('savedAt')} < {self.last_saved_at})"
                    )
                else:
                    self.backend.save_session(self.identity, document)
                    self.last_saved_at = document.get("savedAt") or self.last_saved_at
                    logger.info(f"Autosaved session for {self.identity}")
            except Exception as e:
                error = e
                self.failures += 1
                logger.error(f"Autosave failed for {self.identity}: {e}", exc_info=True)
            finally:
                with self._cond:
                    self._done = ticket
                    self._last_error = error
                    self._busy = False
                    self._cond.notify_all()


class AutosaveScheduler:
    """Calls tick() every interval_seconds until cancelled."""

    def __init__(self, interval_seconds: float, tick: Callable[[], None], name: str = "autosave"):
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._shutdown = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()
        logger.debug(f"Autosave scheduled every {self.interval_seconds}s")

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def cancel(self, timeout: float | None = None) -> None:
        self._shutdown.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._shutdown.wait(self.interval_seconds):
            try:
                self._tick()
            except Exception as e:
                logger.error(f"Autosave tick failed: {e}", exc_info=True)
