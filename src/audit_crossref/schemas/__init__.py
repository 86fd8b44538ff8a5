"""
Data model for the reconciliation engine.

All entities are frozen dataclasses with to_dict/from_dict using the
camelCase keys of the persisted session document.
"""

from .audit import (
    PREDEFINED_COMMENTS,
    SAFE_COMMENTS,
    AuditDetails,
    AuditFile,
    AuditFileCategory,
    AuditFileRegistry,
    FileMetadata,
    is_safe_comment,
)
from .declarations import (
    NUMERAL_DESCRIPTIONS,
    DeclarationMetadata,
    DeclarationReview,
    DeclarationReviewStatus,
    PdfAnnotation,
    ProcessedDeclaration,
    normalize_declaration_number,
)
from .lines import Line, LineFile, LineStatus
from .movements import (
    CorrectionStatus,
    LinkType,
    Movement,
    Operation,
    ReviewAreaData,
    ReviewData,
    SmartLink,
)
from .snapshot import SNAPSHOT_VERSION, ProgressSnapshot

__all__ = [
    "PREDEFINED_COMMENTS",
    "SAFE_COMMENTS",
    "AuditDetails",
    "AuditFile",
    "AuditFileCategory",
    "AuditFileRegistry",
    "FileMetadata",
    "is_safe_comment",
    "NUMERAL_DESCRIPTIONS",
    "DeclarationMetadata",
    "DeclarationReview",
    "DeclarationReviewStatus",
    "PdfAnnotation",
    "ProcessedDeclaration",
    "normalize_declaration_number",
    "Line",
    "LineFile",
    "LineStatus",
    "CorrectionStatus",
    "LinkType",
    "Movement",
    "Operation",
    "ReviewAreaData",
    "ReviewData",
    "SmartLink",
    "SNAPSHOT_VERSION",
    "ProgressSnapshot",
]
