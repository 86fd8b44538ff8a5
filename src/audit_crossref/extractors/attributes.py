"""
Attribute extraction from raw line content.

Lines are matched with local regular expressions rather than an XML parser:
a line is an arbitrary fragment (often not well-formed on its own) and must
never fail to yield a value.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from ..schemas.lines import LineFile

_LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")

_MAIN_RECORD = re.compile(
    r"<(Registro|Item|Declaracion|Factura|Comprobante|cservicios|operaciones)", re.IGNORECASE
)


@lru_cache(maxsize=64)
def _attribute_pattern(name: str) -> re.Pattern:
    # Not preceded by a name character, so "ndec" never matches inside "xndec"
    return re.compile(rf'(?<![\w:.-]){re.escape(name)}\s*=\s*"([^"]*)"', re.IGNORECASE)


def find_attribute(content: str, name: str) -> str | None:
    """
    Get the raw value of the first `name="value"` pair in a line.

    Args:
        content: Raw line content
        name: Attribute name (matched case-insensitively)

    Returns:
        The attribute value, or None if absent
    """
    match = _attribute_pattern(name).search(content)
    return match.group(1) if match else None


def attribute_values(content: str, name: str) -> list[str]:
    """Get every value of an attribute in a line (it may repeat)."""
    return _attribute_pattern(name).findall(content)


def parse_number(raw: str | None) -> float:
    """
    Parse the leading number of a string ("12.5abc" -> 12.5).

    Missing or non-numeric input yields 0.
    """
    if not raw:
        return 0.0
    match = _LEADING_NUMBER.match(raw)
    if not match:
        return 0.0
    try:
        return float(match.group(1))
    except ValueError:
        return 0.0


@dataclass(frozen=True)
class XmlAttributes:
    """Numeric attributes of one line."""

    vusd: float = 0.0
    vusdi: float = 0.0


def extract_attributes(content: str) -> XmlAttributes:
    """Extract vusd and vusdi from a line; missing values are 0."""
    return XmlAttributes(
        vusd=parse_number(find_attribute(content, "vusd")),
        vusdi=parse_number(find_attribute(content, "vusdi")),
    )


def is_main_record_line(content: str) -> bool:
    """Check whether a line opens a main record element."""
    return _MAIN_RECORD.search(content) is not None


@dataclass(frozen=True)
class SelectionSummary:
    """Totals over a set of selected lines."""

    vusd: float
    vusdi: float
    count: int


def summarize_selection(
    files: Iterable[LineFile], selected_line_ids: Iterable[str]
) -> SelectionSummary | None:
    """
    Sum vusd and vusdi over selected lines.

    Args:
        files: Line files to look in
        selected_line_ids: Ids of selected lines (unknown ids are ignored)

    Returns:
        SelectionSummary, or None when nothing is selected
    """
    selected = set(selected_line_ids)
    if not selected:
        return None

    vusd = 0.0
    vusdi = 0.0
    count = 0
    for line_file in files:
        for line in line_file.lines:
            if line.id in selected:
                attrs = extract_attributes(line.content)
                vusd += attrs.vusd
                vusdi += attrs.vusdi
                count += 1

    return SelectionSummary(vusd=vusd, vusdi=vusdi, count=count)
