"""
Services for the audit cross-referencing engine.

This module contains business logic services that coordinate the line store,
link graph and external collaborators.
"""

from audit_crossref.services.ingestion import (
    DeclarationBatchReport,
    IngestionReport,
    IngestionService,
    TemplateResult,
    UploadedFile,
)
from audit_crossref.services.reconciliation import (
    CommentSyncResult,
    ReconciliationService,
    ReviewSyncResult,
)

__all__ = [
    "DeclarationBatchReport",
    "IngestionReport",
    "IngestionService",
    "TemplateResult",
    "UploadedFile",
    "CommentSyncResult",
    "ReconciliationService",
    "ReviewSyncResult",
]
