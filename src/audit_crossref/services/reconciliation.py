"""Cross-document reconciliation service.

The single "apply edit and propagate" surface over a Workspace. Every edit
that must ripple from one document set into another goes through here:

- XML line comments are appended to the comments of every operation of the
  movements linked to that line
- Declaration review comments overwrite the comments of every operation of
  the movements linked to that declaration file

The asymmetry (append vs. overwrite) is intentional and preserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from audit_crossref.linking import LinkKey, xml_link_label
from audit_crossref.matching import MatchingResolver, ResolveResult
from audit_crossref.schemas.declarations import DeclarationReview, ProcessedDeclaration
from audit_crossref.schemas.lines import Line
from audit_crossref.schemas.movements import Movement, ReviewData, SmartLink

if TYPE_CHECKING:
    from audit_crossref.config import Config
    from audit_crossref.workspace import Workspace

logger = logging.getLogger(__name__)

XML_COMMENT_PREFIX = "[XML]: "


def append_xml_comment(existing: str, comment: str) -> str:
    """Append an XML line comment to an operation comment."""
    if existing:
        return f"{existing}\n{XML_COMMENT_PREFIX}{comment}"
    return f"{XML_COMMENT_PREFIX}{comment}"


@dataclass
class CommentSyncResult:
    """Outcome of saving an XML line comment."""

    line: Line
    movements_updated: int = 0
    added_to_bank: bool = False


@dataclass
class ReviewSyncResult:
    """Outcome of saving a declaration review."""

    review: DeclarationReview
    created: bool
    declaration: ProcessedDeclaration | None = None
    movements_updated: int = 0


class ReconciliationService:
    """Applies reconciliation edits to a workspace and propagates them.

    Usage:
        service = ReconciliationService(workspace, config)
        result = service.resolve(declaration_number="0012345", movement_id="m1")
    """

    def __init__(self, workspace: Workspace, config: Config | None = None) -> None:
        """Initialize the reconciliation service.

        Args:
            workspace: Session state to operate on.
            config: Application configuration (defaults when omitted).
        """
        self.workspace = workspace
        self.config = config
        self.resolver = MatchingResolver(
            workspace.line_store,
            workspace.link_graph,
            search_config=config.search if config else None,
            matching_config=config.matching if config else None,
        )

    # Resolution

    def resolve(
        self,
        declaration_number: str | None = None,
        amount: float | None = None,
        date: str | None = None,
        movement_id: str | None = None,
    ) -> ResolveResult:
        """Resolve a movement to an XML line (see MatchingResolver.resolve)."""
        return self.resolver.resolve(
            declaration_number=declaration_number,
            amount=amount,
            date=date,
            movement_id=movement_id,
        )

    def find_declaration(self, declaration_number: str) -> ProcessedDeclaration | None:
        """Look up a processed declaration by number (leading zeros ignored)."""
        return self.workspace.find_processed_declaration(declaration_number)

    # Line edits

    def toggle_line_status(self, file_id: str, line_id: str) -> Line:
        return self.workspace.line_store.toggle_status(file_id, line_id)

    def save_line_comment(
        self,
        file_id: str,
        line_id: str,
        comment: str,
        save_for_future: bool = False,
    ) -> CommentSyncResult:
        """Comment an XML line and copy the comment to linked movements.

        The line is marked reviewed. Every operation of every movement linked
        to the line gets "[XML]: <comment>" appended to its comments.

        Args:
            file_id: Line file id.
            line_id: Line id.
            comment: Comment text.
            save_for_future: Also add the comment to the comment bank.

        Returns:
            CommentSyncResult with the updated line and the propagation count.
        """
        store = self.workspace.line_store
        store.set_comment(file_id, line_id, comment)
        store.mark_reviewed(file_id, line_id)
        line = store.get_line(file_id, line_id)

        linked = self.workspace.link_graph.links_for_line_id(line_id)
        updated = self.workspace.link_graph.update_movements(
            linked,
            lambda m: m.with_review_comments(lambda old: append_xml_comment(old, comment)),
        )

        added = self.workspace.add_custom_comment(comment) if save_for_future else False

        logger.info(f"Line comment saved; synced to {updated} linked movements")
        return CommentSyncResult(line=line, movements_updated=updated, added_to_bank=added)

    def update_line_content(self, file_id: str, line_id: str, content: str) -> Line:
        return self.workspace.line_store.update_content(file_id, line_id, content)

    # Declaration reviews

    def update_declaration_review(self, review: DeclarationReview) -> ReviewSyncResult:
        """Upsert a declaration review and sync its comments to linked movements.

        When the declaration is known (a processed declaration with the same
        file id or file name), the comments of every operation of every
        movement linked to that file name are overwritten with the auditor
        comments.

        Args:
            review: The review to store (keyed by file id).

        Returns:
            ReviewSyncResult.
        """
        ws = self.workspace
        reviews = list(ws.declaration_reviews)
        index = next((i for i, r in enumerate(reviews) if r.file_id == review.file_id), None)
        if index is None:
            reviews.append(review)
        else:
            reviews[index] = review
        ws.declaration_reviews = tuple(reviews)

        declaration = next(
            (
                p
                for p in ws.processed_declarations
                if p.id == review.file_id or p.file_name == review.file_name
            ),
            None,
        )

        updated = 0
        if declaration is not None:
            linked = ws.link_graph.links_for_declaration(review.file_name)
            comments = review.auditor_comments
            updated = ws.link_graph.update_movements(
                linked, lambda m: m.with_review_comments(lambda _old: comments)
            )

        logger.info(
            f"Declaration review {review.status.value} for {review.file_name}; "
            f"synced to {updated} linked movements"
        )
        return ReviewSyncResult(
            review=review,
            created=index is None,
            declaration=declaration,
            movements_updated=updated,
        )

    # Links

    def link_declaration(
        self, movement_id: str, file_name: str, label: str | None = None
    ) -> Movement:
        return self.workspace.link_graph.add_declaration_link(movement_id, file_name, label)

    def link_declaration_by_number(self, movement_id: str, declaration_number: str) -> Movement | None:
        """Link a movement to the declaration file carrying a number, if known."""
        declaration = self.find_declaration(declaration_number)
        if declaration is None:
            logger.info(f"No processed declaration for number {declaration_number!r}")
            return None
        return self.link_declaration(
            movement_id, declaration.file_name, label=f"PDF: {declaration.file_name}"
        )

    def link_xml_line(self, movement_id: str, file_id: str, line_id: str) -> Movement:
        """Manually link a movement to a specific XML line."""
        ws = self.workspace
        line_file = ws.line_store.get_file(file_id)
        index = line_file.index_of(line_id)
        if index is None:
            ws.line_store.get_line(file_id, line_id)  # raises LineNotFoundError

        return ws.link_graph.add_xml_link(
            movement_id,
            file_id,
            line_id,
            label=xml_link_label(line_file.name, index),
            file_name=line_file.name,
        )

    def unlink(self, movement_id: str, key: LinkKey) -> bool:
        return self.workspace.link_graph.remove_link(movement_id, key)

    def dangling_links(self) -> list[tuple[str, SmartLink]]:
        ws = self.workspace
        return ws.link_graph.dangling_links(ws.line_store, ws.audit_files)

    def prune_dangling_links(self) -> int:
        """Explicit cleanup of links whose target was removed."""
        ws = self.workspace
        return ws.link_graph.prune_dangling(ws.line_store, ws.audit_files)

    def set_operation_review(
        self, movement_id: str, operation_id: str, review_data: ReviewData
    ) -> Movement:
        """Replace the review data of one operation."""

        def change(movement: Movement) -> Movement:
            operations = tuple(
                replace(op, review_data=review_data) if op.id == operation_id else op
                for op in movement.operations
            )
            return replace(movement, operations=operations)

        return self.workspace.link_graph.update_movement(movement_id, change)
