"""
Progress snapshot: the whole workspace as one persistable value.

Serialization (camelCase JSON document, versioning and migrations) lives in
audit_crossref.session.snapshot.
"""

from dataclasses import dataclass, field

from .audit import AuditDetails, AuditFileRegistry
from .declarations import DeclarationReview, ProcessedDeclaration
from .lines import LineFile
from .movements import Movement

SNAPSHOT_VERSION = 2


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time copy of a workspace."""

    audit_details: AuditDetails = field(default_factory=AuditDetails)
    custom_comments: tuple[str, ...] = ()
    movements: tuple[Movement, ...] = ()
    line_files: tuple[LineFile, ...] = ()
    declaration_reviews: tuple[DeclarationReview, ...] = ()
    processed_declarations: tuple[ProcessedDeclaration, ...] = ()
    audit_files: AuditFileRegistry = field(default_factory=AuditFileRegistry)
    version: int = SNAPSHOT_VERSION
    saved_at: str | None = None
