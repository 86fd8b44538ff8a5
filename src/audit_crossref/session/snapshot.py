"""
Snapshot codec: ProgressSnapshot <-> versioned JSON document.

Document shape (camelCase keys, as in previously exported files):

    {
      "version": 2,
      "savedAt": "2026-01-31T12:00:00Z",
      "auditDetails": {...},
      "customComments": [...],
      "chronologicalMovements": [...],
      "fileData": [...],
      "declarationReviews": [...],
      "processedDeclarations": [...],
      "auditFiles": {"declaraciones": [...], ..., "xmls": [...]}
    }

Older documents are upgraded by one migration function per version bump.
Documents from a newer version are read best-effort.
"""

import base64
import copy
import json
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from ..errors import SnapshotError, SnapshotValidationError
from ..schemas.audit import PREDEFINED_COMMENTS, AuditDetails, AuditFileRegistry
from ..schemas.declarations import DeclarationReview, ProcessedDeclaration
from ..schemas.lines import LineFile
from ..schemas.movements import Movement
from ..schemas.snapshot import SNAPSHOT_VERSION, ProgressSnapshot

logger = logging.getLogger(__name__)

# Top-level keys and the container type each must have when present
_LIST_KEYS = (
    "customComments",
    "chronologicalMovements",
    "fileData",
    "declarationReviews",
    "processedDeclarations",
)
_DICT_KEYS = ("auditDetails", "auditFiles")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


# Migrations


def _migrate_v1_to_v2(doc: dict) -> dict:
    """
    v1 -> v2.

    v1 kept the raw XML text on each fileData entry; v2 keeps payloads only
    in the registry (base64 `content` of the matching xmls entry).
    """
    xml_entries = {
        entry.get("id"): entry
        for entry in (doc.get("auditFiles") or {}).get("xmls") or []
        if isinstance(entry, dict)
    }
    for line_file in doc.get("fileData") or []:
        if not isinstance(line_file, dict):
            continue
        raw = line_file.pop("content", None)
        entry = xml_entries.get(line_file.get("id"))
        if isinstance(raw, str) and entry is not None and not entry.get("content"):
            entry["content"] = base64.b64encode(raw.encode("utf-8")).decode("ascii")

    for movement in doc.get("chronologicalMovements") or []:
        if isinstance(movement, dict):
            movement["linkedDeclarations"] = movement.get("linkedDeclarations") or []
            movement["linkedXmls"] = movement.get("linkedXmls") or []

    doc.setdefault("savedAt", None)
    doc["version"] = 2
    return doc


# MIGRATIONS[v] upgrades a version-v document to version v+1
MIGRATIONS: dict[int, Callable[[dict], dict]] = {
    1: _migrate_v1_to_v2,
}


def migrate(doc: dict) -> dict:
    """Upgrade a document to the current version (in a copy)."""
    version = doc.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise SnapshotValidationError(f"Invalid snapshot version: {version!r}")

    if version > SNAPSHOT_VERSION:
        logger.warning(
            f"Snapshot version {version} is newer than supported ({SNAPSHOT_VERSION}); "
            "loading best-effort"
        )
        return doc

    doc = copy.deepcopy(doc)
    while version < SNAPSHOT_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise SnapshotValidationError(f"No migration from snapshot version {version}")
        logger.info(f"Migrating snapshot v{version} -> v{version + 1}")
        doc = step(doc)
        version += 1
    doc["version"] = version
    return doc


# Validation


def validate_document(doc: object) -> dict:
    """
    Check the container structure of a snapshot document.

    Missing optional keys are fine; present keys must have the right type.

    Raises:
        SnapshotValidationError: If the document is structurally invalid
    """
    if not isinstance(doc, dict):
        raise SnapshotValidationError("Snapshot must be a JSON object")
    for key in _LIST_KEYS:
        if doc.get(key) is not None and not isinstance(doc[key], list):
            raise SnapshotValidationError(f"'{key}' must be a list")
    for key in _DICT_KEYS:
        if doc.get(key) is not None and not isinstance(doc[key], dict):
            raise SnapshotValidationError(f"'{key}' must be an object")
    return doc


# Codec


def serialize(snapshot: ProgressSnapshot) -> dict:
    """Convert a snapshot into a JSON-ready document."""
    return {
        "version": SNAPSHOT_VERSION,
        "savedAt": snapshot.saved_at,
        "auditDetails": snapshot.audit_details.to_dict(),
        "customComments": list(snapshot.custom_comments),
        "chronologicalMovements": [m.to_dict() for m in snapshot.movements],
        "fileData": [f.to_dict() for f in snapshot.line_files],
        "declarationReviews": [r.to_dict() for r in snapshot.declaration_reviews],
        "processedDeclarations": [p.to_dict() for p in snapshot.processed_declarations],
        "auditFiles": snapshot.audit_files.to_dict(),
    }


def _custom_comments(doc: dict) -> tuple[str, ...]:
    # Documents saved without a comment bank get the predefined one; an
    # emptied bank stays empty
    if "customComments" not in doc:
        return PREDEFINED_COMMENTS
    return tuple(str(c) for c in doc.get("customComments") or [])


def deserialize(doc: object) -> ProgressSnapshot:
    """
    Build a snapshot from a document, migrating older versions.

    Raises:
        SnapshotValidationError: If the document is structurally invalid
    """
    doc = migrate(validate_document(doc))
    try:
        return ProgressSnapshot(
            audit_details=AuditDetails.from_dict(doc.get("auditDetails")),
            custom_comments=_custom_comments(doc),
            movements=tuple(Movement.from_dict(m) for m in doc.get("chronologicalMovements") or []),
            line_files=tuple(LineFile.from_dict(f) for f in doc.get("fileData") or []),
            declaration_reviews=tuple(
                DeclarationReview.from_dict(r) for r in doc.get("declarationReviews") or []
            ),
            processed_declarations=tuple(
                ProcessedDeclaration.from_dict(p) for p in doc.get("processedDeclarations") or []
            ),
            audit_files=AuditFileRegistry.from_dict(doc.get("auditFiles")),
            version=doc["version"],
            saved_at=doc.get("savedAt"),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SnapshotValidationError(f"Malformed snapshot entity: {e}") from e


def dumps(snapshot: ProgressSnapshot) -> str:
    return json.dumps(serialize(snapshot), ensure_ascii=False, indent=2)


def loads(text: str) -> ProgressSnapshot:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"The file is not valid JSON ({e.msg} at line {e.lineno})") from e
    return deserialize(doc)


# Binary payloads


def embed_payloads(snapshot: ProgressSnapshot, blobs) -> ProgressSnapshot:
    """Copy of a snapshot with every registry entry carrying its base64 payload."""
    registry = snapshot.audit_files
    for category, entry in registry.all_files():
        if entry.content is not None:
            continue
        data = blobs.get_blob(entry.id)
        if data is None:
            logger.warning(f"No stored payload for {entry.name}; exporting metadata only")
            continue
        encoded = base64.b64encode(data).decode("ascii")
        registry = registry.with_entry(category, replace(entry, content=encoded))
    return replace(snapshot, audit_files=registry)


def detach_payloads(snapshot: ProgressSnapshot, blobs) -> ProgressSnapshot:
    """Move embedded payloads into the binary store; returns the stripped snapshot."""
    registry = snapshot.audit_files
    for category, entry in registry.all_files():
        if entry.content is None:
            continue
        try:
            data = base64.b64decode(entry.content, validate=True)
        except ValueError:
            logger.warning(f"Invalid embedded payload for {entry.name}; skipped")
        else:
            blobs.put_blob(entry.id, data)
        registry = registry.with_entry(category, entry.without_content())
    return replace(snapshot, audit_files=registry)

