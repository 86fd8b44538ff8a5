"""
Extractors.

Provides:
- Attribute extraction from raw XML lines (vusd, vusdi, identifiers)
- Collaborator interfaces for PDF text and AI metadata extraction
"""

from .attributes import (
    SelectionSummary,
    XmlAttributes,
    attribute_values,
    extract_attributes,
    find_attribute,
    is_main_record_line,
    parse_number,
    summarize_selection,
)
from .base import (
    DeclarationMetadataExtractor,
    DeclarationText,
    StatementMovementExtractor,
    StatementText,
    TextExtractor,
)

__all__ = [
    "SelectionSummary",
    "XmlAttributes",
    "attribute_values",
    "extract_attributes",
    "find_attribute",
    "is_main_record_line",
    "parse_number",
    "summarize_selection",
    "DeclarationMetadataExtractor",
    "DeclarationText",
    "StatementMovementExtractor",
    "StatementText",
    "TextExtractor",
]
