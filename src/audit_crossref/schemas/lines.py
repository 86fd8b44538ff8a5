"""
Line-oriented representation of uploaded structured (XML) files.

One LineFile per uploaded source file, one Line per non-blank source line.

Key invariants:
- Line ids embed the originating file id and the original position
  ("line-{file_id}-{index}"), so they are never reused across files
- The line sequence of a LineFile is fixed after ingestion; edits replace a
  single Line (frozen dataclasses, replace-on-write)
"""

from dataclasses import dataclass, replace
from enum import Enum
from functools import cached_property


class LineStatus(str, Enum):
    """Review status of a single line."""

    PENDING = "pending"
    REVIEWED = "reviewed"


@dataclass(frozen=True)
class Line:
    """One parsed record from a structured source file."""

    id: str
    content: str
    status: LineStatus = LineStatus.PENDING
    comment: str | None = None

    @property
    def is_reviewed(self) -> bool:
        return self.status == LineStatus.REVIEWED

    def toggled(self) -> "Line":
        """Return a copy with the status flipped pending <-> reviewed."""
        new_status = LineStatus.PENDING if self.is_reviewed else LineStatus.REVIEWED
        return replace(self, status=new_status)

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "content": self.content,
            "status": self.status.value,
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Line":
        """Deserialize from dictionary (unknown statuses fall back to pending)."""
        try:
            status = LineStatus(data.get("status") or LineStatus.PENDING.value)
        except ValueError:
            status = LineStatus.PENDING
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            status=status,
            comment=data.get("comment"),
        )


@dataclass(frozen=True)
class LineFile:
    """An ingested structured file: an ordered, fixed-length sequence of lines."""

    id: str
    name: str
    lines: tuple[Line, ...] = ()

    def __len__(self) -> int:
        return len(self.lines)

    @cached_property
    def _positions(self) -> dict[str, int]:
        # Built lazily once per immutable instance
        return {line.id: index for index, line in enumerate(self.lines)}

    def index_of(self, line_id: str) -> int | None:
        """Get the position of a line in this file, or None if absent."""
        return self._positions.get(line_id)

    def get(self, line_id: str) -> Line | None:
        """Get a line by id, or None if absent."""
        index = self.index_of(line_id)
        return self.lines[index] if index is not None else None

    def with_line(self, index: int, line: Line) -> "LineFile":
        """Return a copy with the line at `index` replaced."""
        lines = self.lines[:index] + (line,) + self.lines[index + 1 :]
        return replace(self, lines=lines)

    @property
    def reviewed_count(self) -> int:
        return sum(1 for line in self.lines if line.is_reviewed)

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "name": self.name,
            "lines": [line.to_dict() for line in self.lines],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LineFile":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            lines=tuple(Line.from_dict(item) for item in data.get("lines") or []),
        )
