"""
Exception hierarchy (SSOT).

Every error raised by the engine derives from AuditCrossrefError so callers
can surface a localized failure without crashing the session.

Taxonomy:
- IngestionError: source file could not be read; isolated per file
- ExtractionError: external collaborator failed; degrades to "no metadata"
- PersistenceError: snapshot / backend save or load failed
- LineNotFoundError / MovementNotFoundError: explicit edit on an unknown id
"""


class AuditCrossrefError(Exception):
    """Base exception for all engine errors."""

    pass


class IngestionError(AuditCrossrefError):
    """A structured source file could not be ingested."""

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.message = message
        super().__init__(f"Cannot ingest '{file_name}': {message}")


class ExtractionError(AuditCrossrefError):
    """An extraction collaborator failed or produced nothing usable."""

    pass


class PersistenceError(AuditCrossrefError):
    """Base exception for persistence failures."""

    pass


class SnapshotError(PersistenceError):
    """A snapshot could not be written or read."""

    pass


class SnapshotValidationError(SnapshotError):
    """A snapshot document is structurally invalid."""

    pass


class SessionBackendError(PersistenceError):
    """The session backend returned an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class SessionConnectionError(SessionBackendError):
    """The session backend could not be reached."""

    pass


class SessionStateError(AuditCrossrefError):
    """Operation is not allowed in the current session state."""

    pass


class LineNotFoundError(AuditCrossrefError, KeyError):
    """Unknown line file or line id."""

    __str__ = Exception.__str__


class MovementNotFoundError(AuditCrossrefError, KeyError):
    """Unknown movement id."""

    __str__ = Exception.__str__
