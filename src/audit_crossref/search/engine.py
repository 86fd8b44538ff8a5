"""
Search Index / Query Engine over the Line Store.

Substring search across every line of every loaded file, with the page
number each hit falls on in the paginated viewer.

Key invariants:
- Result order: file registration order, then line order
- Terms shorter than the minimum length leave search inactive, which is a
  distinct outcome from "no matches"
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass

from ..config import SearchConfig
from ..extractors.attributes import attribute_values, extract_attributes
from ..line_store import LineStore
from ..schemas.audit import is_safe_comment
from ..schemas.lines import Line, LineFile

logger = logging.getLogger(__name__)

IDENTIFIER_NAMES = ("ndec", "ndeci", "ndex")


class _SearchInactive:
    """Sentinel type for a search term that is too short."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "SEARCH_INACTIVE"


SEARCH_INACTIVE = _SearchInactive()


@dataclass(frozen=True)
class SearchHit:
    """One matching line."""

    file_id: str
    file_name: str
    line_id: str
    line_index: int
    content: str
    page: int

    @property
    def line_number(self) -> int:
        """1-based position in the file."""
        return self.line_index + 1


@dataclass(frozen=True)
class AlertItem:
    """A line whose comment flags a problem."""

    file_id: str
    file_name: str
    line_id: str
    line_index: int
    line_content: str
    comment: str


@dataclass(frozen=True)
class IdentifierLocation:
    """Where an identifier value occurs."""

    file_id: str
    file_name: str
    line_id: str
    line_content: str
    identifier_name: str  # 'ndec' | 'ndeci' | 'ndex'


@dataclass(frozen=True)
class DuplicateIdentifierGroup:
    """An identifier value found on more than one line."""

    identifier_value: str
    locations: tuple[IdentifierLocation, ...]
    total_vusd: float
    total_vusdi: float
    total_ndec: int
    total_ndeci: int
    total_ndex: int


def page_of(index: int, page_size: int) -> int:
    """1-based page number of a 0-based line position."""
    return index // page_size + 1


class SearchEngine:
    """
    Query engine bound to a Line Store.

    Case-folded line contents are cached per LineFile instance; since files
    are replaced on every edit, a stale entry is simply never hit again.
    """

    def __init__(self, line_store: LineStore, config: SearchConfig | None = None):
        self.line_store = line_store
        self.config = config or SearchConfig()
        self._folded: dict[str, tuple[LineFile, list[str]]] = {}

    @property
    def page_size(self) -> int:
        return self.config.page_size

    def _folded_contents(self, line_file: LineFile) -> list[str]:
        cached = self._folded.get(line_file.id)
        if cached is not None and cached[0] is line_file:
            return cached[1]
        folded = [line.content.casefold() for line in line_file.lines]
        self._folded[line_file.id] = (line_file, folded)
        return folded

    def _prune_cache(self, files: tuple[LineFile, ...]) -> None:
        live = {f.id for f in files}
        for file_id in list(self._folded):
            if file_id not in live:
                del self._folded[file_id]

    def search(self, term: str) -> list[SearchHit] | _SearchInactive:
        """
        Find every line containing `term` (case-insensitive).

        Args:
            term: Search text

        Returns:
            Hits in file then line order, or SEARCH_INACTIVE if the term is
            shorter than the configured minimum
        """
        if term is None or len(term) < self.config.min_term_length:
            return SEARCH_INACTIVE

        needle = term.casefold()
        files = self.line_store.files
        self._prune_cache(files)

        hits: list[SearchHit] = []
        for line_file in files:
            for index, folded in enumerate(self._folded_contents(line_file)):
                if needle in folded:
                    line = line_file.lines[index]
                    hits.append(
                        SearchHit(
                            file_id=line_file.id,
                            file_name=line_file.name,
                            line_id=line.id,
                            line_index=index,
                            content=line.content,
                            page=page_of(index, self.page_size),
                        )
                    )

        logger.debug(f"Search matched {len(hits)} lines")
        return hits

    # Pagination

    def page_for_line(self, line_file: LineFile, line_id: str) -> int | None:
        index = line_file.index_of(line_id)
        return page_of(index, self.page_size) if index is not None else None

    def total_pages(self, line_file: LineFile) -> int:
        return max(1, math.ceil(len(line_file) / self.page_size))

    def page_lines(self, line_file: LineFile, page: int) -> tuple[Line, ...]:
        """Lines shown on a 1-based page (out-of-range pages are empty)."""
        if page < 1:
            return ()
        start = (page - 1) * self.page_size
        return line_file.lines[start : start + self.page_size]

    # Review aids

    def alerts(self) -> list[AlertItem]:
        """Lines whose comment is not one of the safe remarks."""
        items = []
        for line_file in self.line_store.files:
            for index, line in enumerate(line_file.lines):
                if line.comment and not is_safe_comment(line.comment):
                    items.append(
                        AlertItem(
                            file_id=line_file.id,
                            file_name=line_file.name,
                            line_id=line.id,
                            line_index=index,
                            line_content=line.content,
                            comment=line.comment,
                        )
                    )
        return items

    def duplicate_identifiers(self) -> list[DuplicateIdentifierGroup]:
        """
        Group identifier values (ndec, ndeci, ndex) seen on more than one line.

        Returns:
            Groups in order of first occurrence
        """
        locations: dict[str, list[IdentifierLocation]] = defaultdict(list)
        contents: dict[str, dict[str, str]] = defaultdict(dict)

        for line_file in self.line_store.files:
            for line in line_file.lines:
                for name in IDENTIFIER_NAMES:
                    for raw in attribute_values(line.content, name):
                        value = raw.strip()
                        if not value:
                            continue
                        locations[value].append(
                            IdentifierLocation(
                                file_id=line_file.id,
                                file_name=line_file.name,
                                line_id=line.id,
                                line_content=line.content,
                                identifier_name=name,
                            )
                        )
                        contents[value][line.id] = line.content

        groups = []
        for value, locs in locations.items():
            distinct_lines = contents[value]
            if len(distinct_lines) < 2:
                continue
            attrs = [extract_attributes(content) for content in distinct_lines.values()]
            groups.append(
                DuplicateIdentifierGroup(
                    identifier_value=value,
                    locations=tuple(locs),
                    total_vusd=sum(a.vusd for a in attrs),
                    total_vusdi=sum(a.vusdi for a in attrs),
                    total_ndec=sum(1 for loc in locs if loc.identifier_name == "ndec"),
                    total_ndeci=sum(1 for loc in locs if loc.identifier_name == "ndeci"),
                    total_ndex=sum(1 for loc in locs if loc.identifier_name == "ndex"),
                )
            )
        return groups
