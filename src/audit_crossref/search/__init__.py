"""
Search Index / Query Engine.
"""

from .engine import (
    SEARCH_INACTIVE,
    AlertItem,
    DuplicateIdentifierGroup,
    IdentifierLocation,
    SearchEngine,
    SearchHit,
    page_of,
)

__all__ = [
    "SEARCH_INACTIVE",
    "AlertItem",
    "DuplicateIdentifierGroup",
    "IdentifierLocation",
    "SearchEngine",
    "SearchHit",
    "page_of",
]
