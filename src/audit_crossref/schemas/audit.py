"""
Audit engagement details and the uploaded-file registry.

The registry only holds file metadata. Binary payloads live in a separate
binary store keyed by file id; `content` (base64) is populated only while a
registry travels inside a portable export.
"""

from dataclasses import dataclass, replace
from enum import Enum

# Comment bank seeded on every fresh session
PREDEFINED_COMMENTS: tuple[str, ...] = (
    "Legalización PARCIAL",
    "Legalización con ERROR",
    "Legalización EXTEMPORANEA",
    "Legalizado OPORTUNAMENTE",
    "NO requiere legalización por ser Devolución",
    "O.K.",
    "SIN Identificar",
    "SIN LEGALIZAR",
    "Mal Registrada",
)

# Comments that do not raise an alert (compared lowercased and stripped)
SAFE_COMMENTS: frozenset[str] = frozenset(
    {"o.k.", "o.k", "ok", "legalizado", "legalizado oportunamente"}
)


def is_safe_comment(comment: str | None) -> bool:
    """Check whether a line comment is an "all clear" remark."""
    if comment is None:
        return True
    normalized = comment.strip().lower()
    return not normalized or normalized in SAFE_COMMENTS


@dataclass(frozen=True)
class AuditDetails:
    """Header data of an audit engagement."""

    company_name: str = ""
    nit: str = ""
    start_date: str = ""
    end_date: str = ""
    auditor_name: str | None = None

    def to_dict(self) -> dict:
        data = {
            "companyName": self.company_name,
            "nit": self.nit,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }
        if self.auditor_name is not None:
            data["auditorName"] = self.auditor_name
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> "AuditDetails":
        data = data or {}
        return cls(
            company_name=data.get("companyName", ""),
            nit=data.get("nit", ""),
            start_date=data.get("startDate", ""),
            end_date=data.get("endDate", ""),
            auditor_name=data.get("auditorName"),
        )


class AuditFileCategory(str, Enum):
    """Upload categories, in display order."""

    DECLARACIONES = "declaraciones"
    BANREP = "banrep"
    EXTRACTOS = "extractos"
    SOPORTES_ADUANEROS = "soportesAduaneros"
    SOPORTES_BANCARIOS = "soportesBancarios"
    XMLS = "xmls"


@dataclass(frozen=True)
class FileMetadata:
    """Browser-style file metadata kept for every upload."""

    name: str
    size: int = 0
    type: str = ""
    last_modified: int = 0  # epoch milliseconds

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "size": self.size,
            "type": self.type,
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "FileMetadata":
        data = data or {}
        return cls(
            name=data.get("name", ""),
            size=int(data.get("size") or 0),
            type=data.get("type", ""),
            last_modified=int(data.get("lastModified") or 0),
        )


@dataclass(frozen=True)
class AuditFile:
    """One registry entry."""

    id: str
    file: FileMetadata
    content: str | None = None  # base64, exports only
    password: str | None = None

    @property
    def name(self) -> str:
        return self.file.name

    def without_content(self) -> "AuditFile":
        return replace(self, content=None) if self.content is not None else self

    def to_dict(self) -> dict:
        data = {"id": self.id, "file": self.file.to_dict()}
        if self.content is not None:
            data["content"] = self.content
        if self.password is not None:
            data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AuditFile":
        return cls(
            id=data["id"],
            file=FileMetadata.from_dict(data.get("file")),
            content=data.get("content"),
            password=data.get("password"),
        )


@dataclass(frozen=True)
class AuditFileRegistry:
    """Ordered upload lists per category."""

    declaraciones: tuple[AuditFile, ...] = ()
    banrep: tuple[AuditFile, ...] = ()
    extractos: tuple[AuditFile, ...] = ()
    soportes_aduaneros: tuple[AuditFile, ...] = ()
    soportes_bancarios: tuple[AuditFile, ...] = ()
    xmls: tuple[AuditFile, ...] = ()

    @staticmethod
    def _attr(category: AuditFileCategory) -> str:
        return {
            AuditFileCategory.SOPORTES_ADUANEROS: "soportes_aduaneros",
            AuditFileCategory.SOPORTES_BANCARIOS: "soportes_bancarios",
        }.get(category, category.value)

    def get(self, category: AuditFileCategory) -> tuple[AuditFile, ...]:
        return getattr(self, self._attr(category))

    def with_added(self, category: AuditFileCategory, files: list[AuditFile]) -> "AuditFileRegistry":
        return replace(self, **{self._attr(category): self.get(category) + tuple(files)})

    def with_entry(self, category: AuditFileCategory, entry: AuditFile) -> "AuditFileRegistry":
        """Replace the entry with the same id."""
        entries = tuple(entry if e.id == entry.id else e for e in self.get(category))
        return replace(self, **{self._attr(category): entries})

    def without(self, category: AuditFileCategory, file_id: str) -> "AuditFileRegistry":
        remaining = tuple(f for f in self.get(category) if f.id != file_id)
        return replace(self, **{self._attr(category): remaining})

    def find(self, file_id: str) -> tuple[AuditFileCategory, AuditFile] | None:
        """Locate an entry by id across all categories."""
        for category in AuditFileCategory:
            for entry in self.get(category):
                if entry.id == file_id:
                    return category, entry
        return None

    def find_by_name(self, category: AuditFileCategory, name: str) -> AuditFile | None:
        for entry in self.get(category):
            if entry.name == name:
                return entry
        return None

    def all_files(self) -> list[tuple[AuditFileCategory, AuditFile]]:
        return [(category, entry) for category in AuditFileCategory for entry in self.get(category)]

    def __len__(self) -> int:
        return sum(len(self.get(category)) for category in AuditFileCategory)

    def to_dict(self) -> dict:
        return {
            category.value: [entry.to_dict() for entry in self.get(category)]
            for category in AuditFileCategory
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "AuditFileRegistry":
        data = data or {}
        registry = cls()
        for category in AuditFileCategory:
            entries = [AuditFile.from_dict(item) for item in data.get(category.value) or []]
            if entries:
                registry = registry.with_added(category, entries)
        return registry
