"""Upload ingestion service.

Registers uploaded files per category, keeps their payloads in the binary
store, turns XML uploads into line files and runs the external extraction
collaborators for declarations and bank statements.

Every file is handled in isolation: one unreadable file is logged and
reported, never aborting the rest of the batch.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from audit_crossref.errors import ExtractionError, IngestionError, PersistenceError
from audit_crossref.extractors.base import (
    DeclarationMetadataExtractor,
    DeclarationText,
    StatementMovementExtractor,
    StatementText,
    TextExtractor,
)
from audit_crossref.line_store import new_file_id
from audit_crossref.schemas.audit import AuditFile, AuditFileCategory, FileMetadata
from audit_crossref.schemas.declarations import ProcessedDeclaration
from audit_crossref.schemas.lines import LineFile

if TYPE_CHECKING:
    from audit_crossref.state_store.base import BinaryStore
    from audit_crossref.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    """A file handed to the engine by the user."""

    name: str
    data: bytes
    type: str = ""
    last_modified: int = 0  # epoch milliseconds
    password: str | None = None

    @classmethod
    def from_path(cls, path: Path, password: str | None = None) -> UploadedFile:
        """Read an upload from disk."""
        path = Path(path)
        mime, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            data=path.read_bytes(),
            type=mime or "",
            last_modified=int(path.stat().st_mtime * 1000),
            password=password,
        )

    def metadata(self) -> FileMetadata:
        return FileMetadata(
            name=self.name, size=len(self.data), type=self.type, last_modified=self.last_modified
        )


@dataclass
class DeclarationBatchReport:
    """Outcome of one declaration metadata batch."""

    processed: list[ProcessedDeclaration] = field(default_factory=list)
    failed: int = 0
    duplicates: int = 0


@dataclass
class IngestionReport:
    """Outcome of adding a batch of files to one category."""

    category: AuditFileCategory
    added: list[AuditFile] = field(default_factory=list)
    line_files: list[LineFile] = field(default_factory=list)
    failures: list[IngestionError] = field(default_factory=list)
    declarations: DeclarationBatchReport | None = None

    @property
    def success(self) -> bool:
        return not self.failures


@dataclass
class TemplateResult:
    """Outcome of statement template generation."""

    success: bool
    message: str
    movements: int = 0


class IngestionService:
    """Handles uploads for a workspace.

    Usage:
        service = IngestionService(workspace, state_store, text_extractor=pdf_reader)
        report = service.add_files(AuditFileCategory.XMLS, [UploadedFile.from_path(p)])
    """

    def __init__(
        self,
        workspace: Workspace,
        binary_store: BinaryStore,
        text_extractor: TextExtractor | None = None,
        declaration_extractor: DeclarationMetadataExtractor | None = None,
        statement_extractor: StatementMovementExtractor | None = None,
    ) -> None:
        """Initialize the ingestion service.

        Args:
            workspace: Session state to populate.
            binary_store: Store for raw file payloads, keyed by file id.
            text_extractor: PDF text extraction collaborator.
            declaration_extractor: Declaration metadata collaborator.
            statement_extractor: Bank statement movement collaborator.
        """
        self.workspace = workspace
        self.blobs = binary_store
        self.text_extractor = text_extractor
        self.declaration_extractor = declaration_extractor
        self.statement_extractor = statement_extractor

    def add_files(
        self, category: AuditFileCategory, uploads: list[UploadedFile]
    ) -> IngestionReport:
        """Register uploads under a category.

        XML uploads are parsed into line files; declaration uploads trigger a
        metadata batch. A file that cannot be ingested is reported in
        `failures` and left out of the registry.

        Args:
            category: Upload category.
            uploads: Files to add.

        Returns:
            IngestionReport.
        """
        report = IngestionReport(category=category)
        ws = self.workspace

        try:
            for upload in uploads:
                file_id = new_file_id()
                try:
                    self._store_upload(category, upload, file_id, report)
                except IngestionError as e:
                    logger.warning(f"Skipping {upload.name}: {e.message}")
                    report.failures.append(e)
                    continue

                report.added.append(
                    AuditFile(id=file_id, file=upload.metadata(), password=upload.password)
                )
        finally:
            # Files stored before an unexpected error must still be registered
            if report.added:
                ws.audit_files = ws.audit_files.with_added(category, report.added)

        logger.info(
            f"Added {len(report.added)} files to {category.value} "
            f"({len(report.failures)} failed)"
        )

        if category == AuditFileCategory.DECLARACIONES and report.added:
            report.declarations = self.process_declarations(report.added)

        return report

    def _store_upload(
        self,
        category: AuditFileCategory,
        upload: UploadedFile,
        file_id: str,
        report: IngestionReport,
    ) -> None:
        """Derive an upload's line file, then persist its payload.

        Raises:
            IngestionError: The upload could not be parsed or its payload
                could not be stored. Nothing of the upload is left behind.
        """
        line_file = None
        if category == AuditFileCategory.XMLS:
            line_file = self.workspace.line_store.ingest_bytes(
                upload.name, upload.data, file_id=file_id
            )

        try:
            self.blobs.put_blob(file_id, upload.data)
        except PersistenceError as e:
            if line_file is not None:
                self.workspace.line_store.remove(file_id)
            raise IngestionError(upload.name, f"payload could not be stored ({e})") from e

        if line_file is not None:
            report.line_files.append(line_file)

    def remove_file(self, category: AuditFileCategory, file_id: str) -> bool:
        """Remove an upload and the data derived from it.

        Links pointing at the removed file are left dangling.

        Returns:
            False if the file was not registered under the category.
        """
        ws = self.workspace
        if not any(f.id == file_id for f in ws.audit_files.get(category)):
            return False

        ws.audit_files = ws.audit_files.without(category, file_id)
        self.blobs.delete_blob(file_id)

        if category == AuditFileCategory.XMLS and file_id in ws.line_store:
            ws.line_store.remove(file_id)
        if category == AuditFileCategory.DECLARACIONES:
            ws.processed_declarations = tuple(
                p for p in ws.processed_declarations if p.id != file_id
            )

        logger.info(f"Removed file {file_id} from {category.value}")
        return True

    # Extraction collaborators

    def _extract_text(self, entry: AuditFile) -> list[str]:
        """Page texts of a stored upload; raises ExtractionError."""
        if self.text_extractor is None:
            raise ExtractionError("No text extractor configured")
        data = self.blobs.get_blob(entry.id)
        if data is None:
            raise ExtractionError(f"No stored payload for {entry.name}")
        try:
            return self.text_extractor.extract_text(data)
        except Exception as e:
            raise ExtractionError(f"Text extraction failed for {entry.name}: {e}") from e

    def process_declarations(self, entries: list[AuditFile]) -> DeclarationBatchReport:
        """Derive metadata for declaration uploads.

        Text is extracted per file (failures isolated), then all texts go to
        the metadata collaborator in one call. Results already known by id
        are dropped.

        Args:
            entries: Declaration registry entries.

        Returns:
            DeclarationBatchReport.
        """
        report = DeclarationBatchReport()
        if self.declaration_extractor is None:
            logger.info("No declaration extractor configured; skipping metadata")
            return report

        docs: list[DeclarationText] = []
        for entry in entries:
            try:
                pages = self._extract_text(entry)
            except ExtractionError as e:
                logger.warning(str(e))
                report.failed += 1
                continue
            docs.append(DeclarationText(id=entry.id, file_name=entry.name, text="\n".join(pages)))

        if not docs:
            return report

        try:
            results = self.declaration_extractor.extract_declaration_metadata(docs)
        except Exception as e:
            logger.error(f"Declaration metadata extraction failed: {e}")
            report.failed += len(docs)
            return report

        ws = self.workspace
        known = {p.id for p in ws.processed_declarations}
        for declaration in results:
            if declaration.id in known:
                report.duplicates += 1
                continue
            known.add(declaration.id)
            report.processed.append(declaration)

        ws.processed_declarations = ws.processed_declarations + tuple(report.processed)
        logger.info(
            f"Processed {len(report.processed)} declarations "
            f"({report.failed} failed, {report.duplicates} duplicates)"
        )
        return report

    def generate_template(self) -> TemplateResult:
        """Replace the movement list with movements read from bank statements."""
        statements_files = self.workspace.audit_files.get(AuditFileCategory.EXTRACTOS)
        if not statements_files:
            return TemplateResult(
                success=False,
                message="Upload at least one bank statement (extractos) to generate the template.",
            )
        if self.statement_extractor is None:
            return TemplateResult(success=False, message="No statement extractor configured.")

        statements: list[StatementText] = []
        for entry in statements_files:
            try:
                pages = self._extract_text(entry)
            except ExtractionError as e:
                logger.warning(str(e))
                continue
            statements.append(StatementText(file_name=entry.name, text="\n".join(pages)))

        if not statements:
            return TemplateResult(
                success=False,
                message="Could not read any bank statement. Make sure they are valid PDFs.",
            )

        try:
            movements = self.statement_extractor.extract_movements(statements)
        except Exception as e:
            logger.error(f"Statement extraction failed: {e}")
            return TemplateResult(
                success=False, message="Template generation failed. Please try again."
            )

        if not movements:
            return TemplateResult(
                success=False, message="No movements could be identified in the statements."
            )

        self.workspace.link_graph.replace_movements(movements)
        return TemplateResult(
            success=True, message=f"Generated {len(movements)} movements.", movements=len(movements)
        )

    # Restore support

    def rebuild_line_files(self) -> int:
        """Re-ingest XML uploads that have a payload but no line file.

        Returns:
            Number of line files rebuilt.
        """
        ws = self.workspace
        rebuilt = 0
        for entry in ws.audit_files.get(AuditFileCategory.XMLS):
            if entry.id in ws.line_store:
                continue
            data = self.blobs.get_blob(entry.id)
            if data is None:
                logger.warning(f"No stored payload for {entry.name}; cannot rebuild its lines")
                continue
            try:
                ws.line_store.ingest_bytes(entry.name, data, file_id=entry.id)
                rebuilt += 1
            except IngestionError as e:
                logger.warning(f"Cannot rebuild lines for {entry.name}: {e.message}")
        return rebuilt
