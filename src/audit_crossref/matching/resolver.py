"""
Matching Resolver: movement -> XML line by declaration number or amount.

Scans files in registration order and lines in order; the first line whose
`ndec` equals the declaration number, or whose `vusd` equals the absolute
amount, wins. There is no scoring: when several lines qualify, the earliest
one is returned.

On a hit the line is marked reviewed (at most once) and, when a movement is
given, an xml link is created (idempotent). A miss is a normal result, never
an exception.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from ..config import MatchingConfig, SearchConfig
from ..extractors.attributes import attribute_values
from ..line_store import LineStore
from ..linking import LinkGraph, xml_link_label
from ..schemas.lines import Line
from ..search import page_of

logger = logging.getLogger(__name__)


def _plain_decimal(value: Decimal) -> str:
    """Shortest plain (non-exponent) rendering: 150.50 -> '150.5', 200.0 -> '200'."""
    return format(value.normalize(), "f")


def declaration_number_candidates(number: str | None) -> set[str]:
    """
    Literal forms an `ndec` value may take for a declaration number.

    "0012345" yields {"0012345", "12345"}; non-numeric input yields itself.
    """
    if number is None or not number.strip():
        return set()
    literal = number.strip()
    candidates = {literal.casefold()}
    try:
        candidates.add(_plain_decimal(Decimal(literal)))
    except InvalidOperation:
        pass
    return candidates


def amount_candidates(amount: float | None) -> set[str]:
    """
    Literal forms a `vusd` value may take for an amount.

    The sign is ignored; -150.5 yields {"150.5", "150.50"}. Zero or missing
    amounts yield nothing.
    """
    if not amount:
        return set()
    absolute = abs(float(amount))
    plain = _plain_decimal(Decimal(repr(absolute)))
    return {plain, f"{absolute:.2f}"}


@dataclass(frozen=True)
class Highlight:
    """Advisory highlight on a found line, with a fixed maximum lifetime."""

    line_id: str
    expires_at: float

    def active(self, now: float | None = None) -> bool:
        return (time.time() if now is None else now) < self.expires_at


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of one resolution request."""

    found: bool
    declaration_number: str | None = None
    amount: float | None = None
    date: str | None = None
    movement_id: str | None = None
    file_id: str | None = None
    file_name: str | None = None
    line_id: str | None = None
    line_index: int | None = None
    page: int | None = None
    status_changed: bool = False
    link_created: bool = False
    highlight: Highlight | None = None

    @property
    def line_number(self) -> int | None:
        return self.line_index + 1 if self.line_index is not None else None

    @property
    def message(self) -> str:
        """Human-readable outcome for the caller to show."""
        if self.found:
            return f"Found in {self.file_name}, line {self.line_number} (page {self.page})"
        return (
            f"No XML record found for NDC: {self.declaration_number or 'N/A'} "
            f"or amount: {self.amount if self.amount is not None else 'N/A'}"
        )

    @classmethod
    def not_found(
        cls,
        declaration_number: str | None = None,
        amount: float | None = None,
        date: str | None = None,
        movement_id: str | None = None,
    ) -> "ResolveResult":
        return cls(
            found=False,
            declaration_number=declaration_number,
            amount=amount,
            date=date,
            movement_id=movement_id,
        )


class MatchingResolver:
    """First-match resolver over a Line Store, linking through a Link Graph."""

    def __init__(
        self,
        line_store: LineStore,
        link_graph: LinkGraph,
        search_config: SearchConfig | None = None,
        matching_config: MatchingConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.line_store = line_store
        self.link_graph = link_graph
        self.search_config = search_config or SearchConfig()
        self.matching_config = matching_config or MatchingConfig()
        self._clock = clock

    @staticmethod
    def line_matches(line: Line, numbers: set[str], amounts: set[str]) -> bool:
        """Declaration number is checked before amount."""
        if numbers:
            for value in attribute_values(line.content, "ndec"):
                if value.strip().casefold() in numbers:
                    return True
        if amounts:
            for value in attribute_values(line.content, "vusd"):
                if value.strip() in amounts:
                    return True
        return False

    def resolve(
        self,
        declaration_number: str | None = None,
        amount: float | None = None,
        date: str | None = None,
        movement_id: str | None = None,
    ) -> ResolveResult:
        """
        Resolve a movement's declaration number / amount to an XML line.

        Args:
            declaration_number: Declaration number (leading zeros ignored)
            amount: Movement amount (sign ignored, 0 means "no amount")
            date: Movement date, carried for messaging only
            movement_id: Movement to link to the found line

        Returns:
            ResolveResult (found=False on a miss)

        Raises:
            MovementNotFoundError: If movement_id is given but unknown
        """
        if movement_id is not None:
            # Fail before mutating anything
            self.link_graph.get_movement(movement_id)

        numbers = declaration_number_candidates(declaration_number)
        amounts = amount_candidates(amount)
        miss = ResolveResult.not_found(declaration_number, amount, date, movement_id)

        if not numbers and not amounts:
            logger.info("Resolve skipped: no declaration number or amount given")
            return miss

        files = self.line_store.files
        if not files:
            logger.info("Resolve miss: no XML files loaded")
            return miss

        for line_file in files:
            for index, line in enumerate(line_file.lines):
                if not self.line_matches(line, numbers, amounts):
                    continue
                return self._apply_hit(
                    line_file.id, line_file.name, line.id, index, miss
                )

        logger.info(f"Resolve miss for NDC={declaration_number!r} amount={amount!r}")
        return miss

    def _apply_hit(
        self,
        file_id: str,
        file_name: str,
        line_id: str,
        index: int,
        request: ResolveResult,
    ) -> ResolveResult:
        status_changed = self.line_store.mark_reviewed(file_id, line_id)

        link_created = False
        if request.movement_id is not None:
            before = self.link_graph.get_movement(request.movement_id)
            after = self.link_graph.add_xml_link(
                request.movement_id,
                file_id,
                line_id,
                label=xml_link_label(file_name, index),
                file_name=file_name,
            )
            link_created = after is not before

        highlight = Highlight(
            line_id=line_id,
            expires_at=self._clock() + self.matching_config.highlight_seconds,
        )
        logger.info(
            f"Resolved to {file_name} line {index + 1} "
            f"(status_changed={status_changed}, link_created={link_created})"
        )
        return ResolveResult(
            found=True,
            declaration_number=request.declaration_number,
            amount=request.amount,
            date=request.date,
            movement_id=request.movement_id,
            file_id=file_id,
            file_name=file_name,
            line_id=line_id,
            line_index=index,
            page=page_of(index, self.search_config.page_size),
            status_changed=status_changed,
            link_created=link_created,
            highlight=highlight,
        )
