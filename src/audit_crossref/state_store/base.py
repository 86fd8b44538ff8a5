"""
Persistence contracts shared by the session backends.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class SessionSummary:
    """Listing entry for a stored session."""

    identity: str
    saved_at: str | None = None
    company_name: str = ""

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "savedAt": self.saved_at,
            "companyName": self.company_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionSummary":
        return cls(
            identity=data["identity"],
            saved_at=data.get("savedAt"),
            company_name=data.get("companyName") or "",
        )


@runtime_checkable
class SessionBackend(Protocol):
    """Stores one session document per identity (last write wins)."""

    def session_exists(self, identity: str) -> bool: ...

    def load_session(self, identity: str) -> dict | None: ...

    def save_session(self, identity: str, document: dict) -> None: ...

    def delete_session(self, identity: str) -> bool: ...

    def list_sessions(self) -> list[SessionSummary]: ...


@runtime_checkable
class BinaryStore(Protocol):
    """Stores raw upload payloads keyed by file id."""

    def put_blob(self, file_id: str, data: bytes) -> None: ...

    def get_blob(self, file_id: str) -> bytes | None: ...

    def delete_blob(self, file_id: str) -> bool: ...
