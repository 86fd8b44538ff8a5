"""
Matching Resolver.
"""

from .resolver import (
    Highlight,
    MatchingResolver,
    ResolveResult,
    amount_candidates,
    declaration_number_candidates,
)

__all__ = [
    "Highlight",
    "MatchingResolver",
    "ResolveResult",
    "amount_candidates",
    "declaration_number_candidates",
]
