"""
Collaborator interfaces for text and metadata extraction.

Implementations (PDF text extraction, AI metadata extraction) live outside
the engine. The engine calls them per file and isolates each failure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..schemas.declarations import ProcessedDeclaration
from ..schemas.movements import Movement


@dataclass(frozen=True)
class DeclarationText:
    """Extracted text of one declaration file."""

    id: str
    file_name: str
    text: str


@dataclass(frozen=True)
class StatementText:
    """Extracted text of one bank statement."""

    file_name: str
    text: str


class TextExtractor(ABC):
    """Extracts page text from a binary document."""

    @abstractmethod
    def extract_text(self, data: bytes) -> list[str]:
        """
        Extract text per page.

        Args:
            data: Document bytes

        Returns:
            One string per page; [] for zero-byte or corrupt input
        """
        pass


class DeclarationMetadataExtractor(ABC):
    """Derives declaration metadata from declaration text."""

    @abstractmethod
    def extract_declaration_metadata(
        self, docs: list[DeclarationText]
    ) -> list[ProcessedDeclaration]:
        """
        Extract metadata for a batch of declarations.

        Args:
            docs: Declaration texts (ids are the registry file ids)

        Returns:
            One ProcessedDeclaration per recognized document
        """
        pass


class StatementMovementExtractor(ABC):
    """Derives ledger movements from bank statement text."""

    @abstractmethod
    def extract_movements(self, statements: list[StatementText]) -> list[Movement]:
        """
        Extract the chronological movement list.

        Args:
            statements: Statement texts

        Returns:
            Movements with their operations
        """
        pass
