"""
Customs declaration metadata and auditor reviews.

ProcessedDeclaration is produced by the external metadata collaborator and
keyed by file id; it is looked up by declaration number with leading-zero
insensitive comparison when resolving cross-links.
"""

from dataclasses import dataclass
from enum import Enum

# Exchange-control "numeral cambiario" codes → description
NUMERAL_DESCRIPTIONS: dict[str, str] = {
    # Exports
    "1000": "Reintegro por exportaciones de café.",
    "1010": "Reintegro por exportaciones de carbón incluidos los anticipos.",
    "1020": "Reintegro por exportaciones de ferroníquel incluidos los anticipos.",
    "1030": "Reintegro por exportaciones de petróleo y sus derivados, incluidos los anticipos.",
    "1040": "Reintegro por exportaciones de bienes diferentes de café, carbón, ferroníquel, petróleo.",
    "1045": "Anticipos por exportaciones de café.",
    "1050": "Anticipos por exportaciones de bienes diferentes de café, carbón, ferroníquel, petróleo.",
    "1060": "Pago de exportaciones de bienes en moneda legal colombiana.",
    "1510": "Gastos de exportación de bienes incluidos en la declaración de exportación definitiva.",
    # Imports
    "2015": "Giro por importaciones de bienes ya embarcados en un plazo igual o inferior a un (1) mes.",
    "2016": "Gastos de importación de bienes incluidos en la factura de los proveedores.",
    "2017": "Pago anticipado de futuras importaciones de bienes.",
    "2022": "Giro por importaciones > 1 mes y <= 12 meses (Proveedores).",
    "2023": "Giro por importaciones > 1 mes y <= 12 meses (IMC).",
    "2024": "Giro por importaciones > 12 meses (Proveedores).",
    "2025": "Giro por importaciones > 12 meses (IMC).",
    "2060": "Pago de importación de bienes en moneda legal colombiana.",
    # Services and others
    "1600": "Compra a residentes que compran y venden divisas de manera profesional.",
    "1601": "Otros conceptos (Ingresos).",
    "2904": "Otros conceptos (Egresos).",
    "1704": "Comisiones no financieras (Ingresos).",
    "2850": "Comisiones no financieras (Egresos).",
    "1540": "Servicios financieros (Ingresos).",
    "2270": "Servicios financieros (Egresos).",
    "1840": "Servicios empresariales, profesionales y técnicos (Ingresos).",
    "2906": "Servicios empresariales, profesionales y técnicos (Egresos).",
    # Debt
    "4000": "Desembolso de créditos – deuda privada- otorgados por IMC a residentes.",
    "4500": "Amortización de créditos – deuda privada- otorgados por IMC a residentes.",
    "4005": "Desembolso de créditos - deuda privada- otorgados por no residentes.",
    "4505": "Amortización de créditos - deuda privada- otorgados por proveedores u otros no residentes.",
    "2125": "Intereses de créditos –deuda privada- otorgados por IMC a residentes.",
    "2135": "Intereses de créditos –deuda privada- otorgados por proveedores u otros no residentes.",
    # Investments
    "4030": "Inversión de portafolio de capitales del exterior.",
    "4035": "Inversión directa de capitales del exterior en empresas.",
    "4560": "Giro al exterior de la inversión directa y suplementaria de capitales del exterior.",
    "4580": "Inversión colombiana directa en el exterior.",
    "4055": "Retorno de la inversión colombiana directa en el exterior.",
    # Compensation accounts
    "5378": "Traslados entre cuentas de compensación de un mismo titular. Ingresos.",
    "5912": "Traslados entre cuentas de compensación de un mismo titular. Egresos.",
    "5380": "Compra de divisas a otros titulares de cuentas de compensación (Ingreso).",
    "5909": "Venta de divisas a otros titulares de cuentas de compensación (Egreso).",
    "3500": "Egreso para el cumplimiento de obligaciones derivadas de operaciones internas.",
    "3000": "Ingreso por el cumplimiento de obligaciones derivadas de operaciones internas.",
}


def normalize_declaration_number(value: str | None) -> str:
    """Strip whitespace and leading zeros ("0012345" -> "12345", "000" -> "0")."""
    if not value:
        return ""
    stripped = value.strip()
    if not stripped:
        return ""
    return stripped.lstrip("0") or "0"


class DeclarationReviewStatus(str, Enum):
    """Auditor decision on a declaration."""

    PENDING = "pending"
    APPROVED = "approved"
    CORRECTION_NEEDED = "correction_needed"


@dataclass(frozen=True)
class ProcessedDeclaration:
    """Derived metadata for one declaration file."""

    id: str
    file_name: str
    date: str
    amount: float
    number: str
    content_sample: str = ""
    numeral: str | None = None

    def matches_number(self, number: str | None) -> bool:
        """Compare declaration numbers ignoring leading zeros."""
        if not number or not number.strip():
            return False
        if self.number == number:
            return True
        return normalize_declaration_number(self.number) == normalize_declaration_number(number)

    @property
    def numeral_description(self) -> str | None:
        if not self.numeral:
            return None
        return NUMERAL_DESCRIPTIONS.get(self.numeral.strip())

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "fileName": self.file_name,
            "date": self.date,
            "amount": self.amount,
            "number": self.number,
            "contentSample": self.content_sample,
        }
        if self.numeral is not None:
            data["numeral"] = self.numeral
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProcessedDeclaration":
        return cls(
            id=data["id"],
            file_name=data.get("fileName", ""),
            date=data.get("date", ""),
            amount=float(data.get("amount") or 0),
            number=str(data.get("number") or ""),
            content_sample=data.get("contentSample", ""),
            numeral=data.get("numeral"),
        )


@dataclass(frozen=True)
class DeclarationMetadata:
    """Metadata fields an auditor confirms on a declaration."""

    numero: str = ""
    fecha: str = ""  # YYYY-MM-DD
    nit: str = ""
    numeral: str = ""
    valor: float = 0.0
    moneda: str = ""
    tipo_operacion: str = ""  # 'Ingreso' | 'Egreso'

    def to_dict(self) -> dict:
        return {
            "numero": self.numero,
            "fecha": self.fecha,
            "nit": self.nit,
            "numeral": self.numeral,
            "valor": self.valor,
            "moneda": self.moneda,
            "tipoOperacion": self.tipo_operacion,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "DeclarationMetadata":
        data = data or {}
        return cls(
            numero=str(data.get("numero") or ""),
            fecha=data.get("fecha", ""),
            nit=data.get("nit", ""),
            numeral=data.get("numeral", ""),
            valor=float(data.get("valor") or 0),
            moneda=data.get("moneda", ""),
            tipo_operacion=data.get("tipoOperacion", ""),
        )


@dataclass(frozen=True)
class PdfAnnotation:
    """A note pinned on a declaration page (coordinates are 0-1 fractions)."""

    id: str
    page: int
    x: float
    y: float
    text: str
    author: str = ""
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "page": self.page,
            "x": self.x,
            "y": self.y,
            "text": self.text,
            "author": self.author,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PdfAnnotation":
        return cls(
            id=data["id"],
            page=int(data.get("page") or 1),
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            text=data.get("text", ""),
            author=data.get("author", ""),
            created_at=data.get("createdAt", ""),
        )


@dataclass(frozen=True)
class DeclarationReview:
    """Auditor review of one declaration file."""

    file_id: str
    file_name: str
    status: DeclarationReviewStatus = DeclarationReviewStatus.PENDING
    metadata: DeclarationMetadata = DeclarationMetadata()
    auditor_comments: str = ""
    annotations: tuple[PdfAnnotation, ...] = ()
    reviewed_by: str = ""
    reviewed_at: str | None = None

    def to_dict(self) -> dict:
        data = {
            "fileId": self.file_id,
            "fileName": self.file_name,
            "status": self.status.value,
            "metadata": self.metadata.to_dict(),
            "auditorComments": self.auditor_comments,
            "annotations": [a.to_dict() for a in self.annotations],
            "reviewedBy": self.reviewed_by,
        }
        if self.reviewed_at is not None:
            data["reviewedAt"] = self.reviewed_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DeclarationReview":
        try:
            status = DeclarationReviewStatus(data.get("status") or "pending")
        except ValueError:
            status = DeclarationReviewStatus.PENDING
        return cls(
            file_id=data["fileId"],
            file_name=data.get("fileName", ""),
            status=status,
            metadata=DeclarationMetadata.from_dict(data.get("metadata")),
            auditor_comments=data.get("auditorComments") or "",
            annotations=tuple(PdfAnnotation.from_dict(a) for a in data.get("annotations") or []),
            reviewed_by=data.get("reviewedBy", ""),
            reviewed_at=data.get("reviewedAt"),
        )
