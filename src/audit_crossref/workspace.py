"""
Workspace: the complete in-memory state of one audit session.

Aggregates the Line Store, the Link Graph and the remaining session data
(audit details, comment bank, declaration data, upload registry). Every
component is replace-on-write, so to_snapshot() is a cheap point-in-time
copy that the autosave thread can serialize while edits continue.
"""

import logging
import threading
from dataclasses import replace

from .line_store import LineStore
from .linking import LinkGraph
from .schemas.audit import PREDEFINED_COMMENTS, AuditDetails, AuditFileRegistry
from .schemas.declarations import DeclarationReview, ProcessedDeclaration
from .schemas.snapshot import ProgressSnapshot

logger = logging.getLogger(__name__)


class Workspace:
    """Mutable holder of immutable session state."""

    def __init__(self, auditor_name: str | None = None):
        self.line_store = LineStore()
        self.link_graph = LinkGraph()
        self.audit_details = AuditDetails(auditor_name=auditor_name)
        self.custom_comments: tuple[str, ...] = PREDEFINED_COMMENTS
        self.declaration_reviews: tuple[DeclarationReview, ...] = ()
        self.processed_declarations: tuple[ProcessedDeclaration, ...] = ()
        self.audit_files = AuditFileRegistry()
        self._lock = threading.RLock()

    # Snapshot

    def to_snapshot(self) -> ProgressSnapshot:
        """Point-in-time copy of the whole workspace."""
        with self._lock:
            return ProgressSnapshot(
                audit_details=self.audit_details,
                custom_comments=tuple(self.custom_comments),
                movements=self.link_graph.movements,
                line_files=self.line_store.files,
                declaration_reviews=self.declaration_reviews,
                processed_declarations=self.processed_declarations,
                audit_files=self.audit_files,
            )

    def restore(self, snapshot: ProgressSnapshot) -> None:
        """Replace the whole workspace state with a snapshot's content."""
        with self._lock:
            self.line_store.replace_files(snapshot.line_files)
            self.link_graph.replace_movements(snapshot.movements)
            self.audit_details = snapshot.audit_details
            self.custom_comments = tuple(snapshot.custom_comments)
            self.declaration_reviews = tuple(snapshot.declaration_reviews)
            self.processed_declarations = tuple(snapshot.processed_declarations)
            self.audit_files = snapshot.audit_files

    def reset(self, auditor_name: str | None = None) -> None:
        """Back to an empty-but-valid session."""
        self.restore(
            ProgressSnapshot(
                audit_details=AuditDetails(auditor_name=auditor_name),
                custom_comments=PREDEFINED_COMMENTS,
            )
        )
        logger.info("Workspace reset")

    # Small edits

    def set_audit_details(self, details: AuditDetails) -> None:
        with self._lock:
            self.audit_details = details

    def ensure_auditor_name(self, name: str) -> None:
        """Fill in the auditor name if it is not set yet."""
        with self._lock:
            if not self.audit_details.auditor_name:
                self.audit_details = replace(self.audit_details, auditor_name=name)

    def add_custom_comment(self, comment: str) -> bool:
        """Add a comment to the bank. Returns False for blanks and duplicates."""
        if not comment or comment in self.custom_comments:
            return False
        with self._lock:
            self.custom_comments = self.custom_comments + (comment,)
        return True

    def find_processed_declaration(self, number: str) -> ProcessedDeclaration | None:
        """Look up derived declaration metadata by declaration number."""
        for declaration in self.processed_declarations:
            if declaration.matches_number(number):
                return declaration
        return None

    def find_declaration_review(self, file_id: str) -> DeclarationReview | None:
        for review in self.declaration_reviews:
            if review.file_id == file_id:
                return review
        return None

    def stats(self) -> dict:
        """Summary counts for status displays."""
        lines = sum(len(f) for f in self.line_store.files)
        reviewed = sum(f.reviewed_count for f in self.line_store.files)
        movements = self.link_graph.movements
        return {
            "xml_files": len(self.line_store),
            "lines": lines,
            "lines_reviewed": reviewed,
            "movements": len(movements),
            "xml_links": sum(len(m.linked_xmls) for m in movements),
            "declaration_links": sum(len(m.linked_declarations) for m in movements),
            "processed_declarations": len(self.processed_declarations),
            "declaration_reviews": len(self.declaration_reviews),
            "uploaded_files": len(self.audit_files),
        }
