"""
Ledger movements, their operations, and smart links.

A Movement is one bank-ledger entry. It owns zero or more Operations (the
granular amounts that must each reconcile against one external record) and
two link sets pointing at XML lines and declaration files.

Key invariants:
- Operation count and ids are stable after creation; only review data and
  link sets change afterwards
- Within one movement no two xml links share (target_file_id, target_line_id)
  and no two pdf links share target_file_name
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

logger = logging.getLogger(__name__)


class LinkType(str, Enum):
    """Target kind of a smart link."""

    XML = "xml"
    PDF = "pdf"


class CorrectionStatus(str, Enum):
    """Correction state of a review area."""

    CORREGIDO = "CORREGIDO"
    SIN_CORREGIR = "SIN CORREGIR"


def _correction_status(raw: str | None) -> CorrectionStatus | None:
    """Parse a stored correction status; unknown values read as unset."""
    if not raw:
        return None
    try:
        return CorrectionStatus(raw)
    except ValueError:
        logger.warning(f"Unknown correction status {raw!r}; treating it as unset")
        return None


@dataclass(frozen=True)
class SmartLink:
    """Directed edge from a movement to an XML line or a declaration file."""

    type: LinkType
    label: str
    target_file_name: str
    target_file_id: str | None = None
    target_line_id: str | None = None

    @property
    def key(self) -> tuple:
        """Uniqueness key inside one movement's link set."""
        if self.type == LinkType.XML:
            return (LinkType.XML, self.target_file_id, self.target_line_id)
        return (LinkType.PDF, self.target_file_name)

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON storage."""
        data = {
            "type": self.type.value,
            "label": self.label,
            "targetFileName": self.target_file_name,
        }
        if self.target_file_id is not None:
            data["targetFileId"] = self.target_file_id
        if self.target_line_id is not None:
            data["targetLineId"] = self.target_line_id
        return data

    @classmethod
    def from_dict(cls, data: dict, default_type: LinkType | None = None) -> "SmartLink":
        """Deserialize from dictionary.

        An unknown or missing type falls back to default_type (the kind of
        link set the entry was stored in); without one it raises ValueError.
        """
        try:
            link_type = LinkType(data.get("type"))
        except ValueError:
            if default_type is None:
                raise
            logger.warning(
                f"Unknown link type {data.get('type')!r}; reading it as {default_type.value}"
            )
            link_type = default_type
        return cls(
            type=link_type,
            label=data.get("label", ""),
            target_file_name=data.get("targetFileName", ""),
            target_file_id=data.get("targetFileId"),
            target_line_id=data.get("targetLineId"),
        )


@dataclass(frozen=True)
class ReviewAreaData:
    """Status of one review area (documentary, central bank, customs)."""

    status: str = ""
    correction_status: CorrectionStatus | None = None
    correction_date: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "correctionStatus": self.correction_status.value if self.correction_status else None,
            "correctionDate": self.correction_date,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ReviewAreaData":
        data = data or {}
        raw_correction = data.get("correctionStatus")
        return cls(
            status=data.get("status", ""),
            correction_status=_correction_status(raw_correction),
            correction_date=data.get("correctionDate"),
        )


@dataclass(frozen=True)
class ReviewData:
    """Review state of an operation.

    Three independent areas plus a free-text comment field, which is the
    sync target for cross-document annotations.
    """

    documental: ReviewAreaData = field(default_factory=ReviewAreaData)
    banrep: ReviewAreaData = field(default_factory=ReviewAreaData)
    dian: ReviewAreaData = field(default_factory=ReviewAreaData)
    comments: str = ""

    def with_comments(self, comments: str) -> "ReviewData":
        return replace(self, comments=comments)

    def to_dict(self) -> dict:
        return {
            "documental": self.documental.to_dict(),
            "banrep": self.banrep.to_dict(),
            "dian": self.dian.to_dict(),
            "comments": self.comments,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ReviewData":
        data = data or {}
        return cls(
            documental=ReviewAreaData.from_dict(data.get("documental")),
            banrep=ReviewAreaData.from_dict(data.get("banrep")),
            dian=ReviewAreaData.from_dict(data.get("dian")),
            comments=data.get("comments") or "",
        )


@dataclass(frozen=True)
class Operation:
    """A granular amount of a movement that reconciles against one record."""

    id: str
    amount: float
    include_in_review: bool = True
    review_data: ReviewData = field(default_factory=ReviewData)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "includeInReview": self.include_in_review,
            "reviewData": self.review_data.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Operation":
        return cls(
            id=data["id"],
            amount=float(data.get("amount") or 0),
            include_in_review=bool(data.get("includeInReview", True)),
            review_data=ReviewData.from_dict(data.get("reviewData")),
        )


@dataclass(frozen=True)
class Movement:
    """One ledger entry with its operations and link sets."""

    id: str
    date: str
    description: str
    amount: float
    source_file: str = ""
    operations: tuple[Operation, ...] = ()
    linked_declarations: tuple[SmartLink, ...] = ()
    linked_xmls: tuple[SmartLink, ...] = ()

    def has_xml_link(self, file_id: str, line_id: str) -> bool:
        return any(
            link.target_file_id == file_id and link.target_line_id == line_id
            for link in self.linked_xmls
        )

    def has_declaration_link(self, file_name: str) -> bool:
        return any(link.target_file_name == file_name for link in self.linked_declarations)

    @property
    def links(self) -> tuple[SmartLink, ...]:
        return self.linked_declarations + self.linked_xmls

    def with_review_comments(self, transform) -> "Movement":
        """Return a copy with every operation's comment replaced by transform(old)."""
        operations = tuple(
            replace(op, review_data=op.review_data.with_comments(transform(op.review_data.comments)))
            for op in self.operations
        )
        return replace(self, operations=operations)

    def to_dict(self) -> dict:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "date": self.date,
            "description": self.description,
            "amount": self.amount,
            "sourceFile": self.source_file,
            "operations": [op.to_dict() for op in self.operations],
            "linkedDeclarations": [link.to_dict() for link in self.linked_declarations],
            "linkedXmls": [link.to_dict() for link in self.linked_xmls],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Movement":
        """Deserialize from dictionary (link sets are optional)."""
        return cls(
            id=data["id"],
            date=data.get("date", ""),
            description=data.get("description", ""),
            amount=float(data.get("amount") or 0),
            source_file=data.get("sourceFile", ""),
            operations=tuple(Operation.from_dict(op) for op in data.get("operations") or []),
            linked_declarations=tuple(
                SmartLink.from_dict(link, LinkType.PDF)
                for link in data.get("linkedDeclarations") or []
            ),
            linked_xmls=tuple(
                SmartLink.from_dict(link, LinkType.XML) for link in data.get("linkedXmls") or []
            ),
        )
