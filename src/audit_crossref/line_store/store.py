"""
Line Store: ingested structured files held as ordered, fixed-length lines.

Mutations are replace-on-write: the store swaps in a new LineFile tuple on
every edit, so a reader holding an earlier reference (search, autosave) keeps
a consistent point-in-time view.
"""

import logging
import re
import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..errors import IngestionError, LineNotFoundError
from ..schemas.lines import Line, LineFile, LineStatus

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def new_file_id() -> str:
    """Generate a globally unique file id."""
    return f"file-{uuid.uuid4().hex}"


def make_line_id(file_id: str, index: int) -> str:
    """Line ids embed the file id and the position in the raw source."""
    return f"line-{file_id}-{index}"


def split_lines(file_id: str, raw_text: str) -> tuple[Line, ...]:
    """Split raw text into Lines, dropping blank and whitespace-only lines."""
    return tuple(
        Line(id=make_line_id(file_id, index), content=text)
        for index, text in enumerate(_LINE_BREAK.split(raw_text))
        if text.strip()
    )


@dataclass(frozen=True)
class FileProgress:
    """Review progress of one line file."""

    file_id: str
    file_name: str
    reviewed: int
    total: int

    @property
    def completed(self) -> bool:
        return self.total > 0 and self.reviewed == self.total

    @property
    def started(self) -> bool:
        return self.reviewed > 0

    @property
    def percent(self) -> float:
        return (self.reviewed / self.total * 100) if self.total else 0.0


class LineStore:
    """
    Registry of ingested line files in registration order.

    Unknown file or line ids raise LineNotFoundError.
    """

    def __init__(self, files: Iterable[LineFile] = ()):
        self._files: tuple[LineFile, ...] = tuple(files)
        self._lock = threading.RLock()

    @property
    def files(self) -> tuple[LineFile, ...]:
        """All files in registration order (immutable view)."""
        return self._files

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, file_id: object) -> bool:
        return any(f.id == file_id for f in self._files)

    # Ingestion

    def ingest(self, file_name: str, raw_text: str, file_id: str | None = None) -> LineFile:
        """
        Parse raw text into a new LineFile and register it.

        Args:
            file_name: Display name of the source file
            raw_text: Decoded file content
            file_id: Id to use (registry id); generated when omitted

        Returns:
            The registered LineFile
        """
        file_id = file_id or new_file_id()
        line_file = LineFile(id=file_id, name=file_name, lines=split_lines(file_id, raw_text))

        with self._lock:
            if file_id in self:
                raise IngestionError(file_name, f"file id {file_id} is already loaded")
            self._files = self._files + (line_file,)

        logger.info(f"Ingested {file_name}: {len(line_file)} lines")
        return line_file

    def ingest_bytes(self, file_name: str, data: bytes, file_id: str | None = None) -> LineFile:
        """Decode a UTF-8 payload (BOM tolerated) and ingest it."""
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise IngestionError(file_name, f"not valid UTF-8 ({e.reason})") from e
        return self.ingest(file_name, text, file_id=file_id)

    def replace_files(self, files: Iterable[LineFile]) -> None:
        """Replace every loaded file (session restore)."""
        with self._lock:
            self._files = tuple(files)

    def remove(self, file_id: str) -> LineFile:
        """Remove a whole file. Links to its lines are left dangling."""
        with self._lock:
            removed = self.get_file(file_id)
            self._files = tuple(f for f in self._files if f.id != file_id)
        logger.info(f"Removed line file {removed.name}")
        return removed

    # Lookups

    def find_file(self, file_id: str) -> LineFile | None:
        for line_file in self._files:
            if line_file.id == file_id:
                return line_file
        return None

    def find_file_by_name(self, file_name: str) -> LineFile | None:
        for line_file in self._files:
            if line_file.name == file_name:
                return line_file
        return None

    def get_file(self, file_id: str) -> LineFile:
        line_file = self.find_file(file_id)
        if line_file is None:
            raise LineNotFoundError(f"Unknown line file: {file_id}")
        return line_file

    def get_line(self, file_id: str, line_id: str) -> Line:
        line = self.get_file(file_id).get(line_id)
        if line is None:
            raise LineNotFoundError(f"Unknown line {line_id} in file {file_id}")
        return line

    def locate(self, line_id: str) -> tuple[LineFile, int] | None:
        """Find the file and position holding a line id, or None if gone."""
        for line_file in self._files:
            index = line_file.index_of(line_id)
            if index is not None:
                return line_file, index
        return None

    def file_progress(self, file_id: str) -> FileProgress:
        line_file = self.get_file(file_id)
        return FileProgress(
            file_id=line_file.id,
            file_name=line_file.name,
            reviewed=line_file.reviewed_count,
            total=len(line_file),
        )

    # Mutations

    def _update_line(self, file_id: str, line_id: str, change) -> tuple[Line, Line]:
        """Replace one line with change(line); returns (old, new)."""
        with self._lock:
            line_file = self.get_file(file_id)
            index = line_file.index_of(line_id)
            if index is None:
                raise LineNotFoundError(f"Unknown line {line_id} in file {file_id}")
            old = line_file.lines[index]
            new = change(old)
            if new is not old:
                updated = line_file.with_line(index, new)
                self._files = tuple(updated if f.id == file_id else f for f in self._files)
            return old, new

    def toggle_status(self, file_id: str, line_id: str) -> Line:
        """Flip a line between pending and reviewed."""
        _, new = self._update_line(file_id, line_id, lambda line: line.toggled())
        return new

    def mark_reviewed(self, file_id: str, line_id: str) -> bool:
        """Mark a line reviewed. Returns True only if the status changed."""
        old, new = self._update_line(
            file_id,
            line_id,
            lambda line: line if line.is_reviewed else replace(line, status=LineStatus.REVIEWED),
        )
        return old is not new

    def set_comment(self, file_id: str, line_id: str, comment: str | None) -> Line:
        """Set a line comment; None or empty clears it."""
        _, new = self._update_line(
            file_id, line_id, lambda line: replace(line, comment=comment or None)
        )
        return new

    def update_content(self, file_id: str, line_id: str, content: str) -> Line:
        """Manual correction of a line's raw content."""
        _, new = self._update_line(file_id, line_id, lambda line: replace(line, content=content))
        return new
