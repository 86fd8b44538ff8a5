"""Tests for the snapshot codec."""

import base64
import json

import pytest

from audit_crossref.errors import SnapshotError, SnapshotValidationError
from audit_crossref.schemas.audit import (
    PREDEFINED_COMMENTS,
    AuditDetails,
    AuditFile,
    AuditFileCategory,
    AuditFileRegistry,
    FileMetadata,
)
from audit_crossref.schemas.declarations import (
    DeclarationMetadata,
    DeclarationReview,
    DeclarationReviewStatus,
    PdfAnnotation,
    ProcessedDeclaration,
)
from audit_crossref.schemas.movements import CorrectionStatus, LinkType
from audit_crossref.schemas.snapshot import SNAPSHOT_VERSION, ProgressSnapshot
from audit_crossref.session import snapshot as codec


@pytest.fixture
def populated(workspace):
    """Workspace with every kind of state filled in."""
    line = workspace.line_store.files[0].lines[2]
    workspace.line_store.set_comment("file-a", line.id, "SIN LEGALIZAR")
    workspace.line_store.mark_reviewed("file-a", line.id)
    workspace.link_graph.add_xml_link("m1", "file-a", line.id, "XML: export.xml (Línea 3)", "export.xml")
    workspace.link_graph.add_declaration_link("m1", "dec.pdf")
    workspace.set_audit_details(
        AuditDetails(
            company_name="Importadora S.A.S.",
            nit="900123456",
            start_date="2024-01-01",
            end_date="2024-12-31",
            auditor_name="auditor",
        )
    )
    workspace.add_custom_comment("Revisar soporte")
    workspace.processed_declarations = (
        ProcessedDeclaration(
            id="file-d", file_name="dec.pdf", date="2024-01-15", amount=150.5, number="0012345"
        ),
    )
    workspace.declaration_reviews = (
        DeclarationReview(
            file_id="file-d",
            file_name="dec.pdf",
            status=DeclarationReviewStatus.APPROVED,
            metadata=DeclarationMetadata(numero="0012345", valor=150.5, moneda="USD"),
            auditor_comments="Conforme",
            annotations=(PdfAnnotation(id="a1", page=1, x=0.5, y=0.25, text="firma"),),
            reviewed_by="auditor",
            reviewed_at="2024-03-01T10:00:00Z",
        ),
    )
    workspace.audit_files = AuditFileRegistry().with_added(
        AuditFileCategory.XMLS,
        [AuditFile(id="file-a", file=FileMetadata(name="export.xml", size=10, type="text/xml"))],
    )
    return workspace


class TestRoundTrip:
    """serialize -> JSON -> deserialize reproduces the snapshot."""

    def test_round_trip_equal(self, populated):
        snapshot = populated.to_snapshot()
        text = codec.dumps(snapshot)
        assert codec.loads(text) == snapshot

    def test_document_shape(self, populated):
        doc = codec.serialize(populated.to_snapshot())
        assert doc["version"] == SNAPSHOT_VERSION
        assert set(doc) == {
            "version",
            "savedAt",
            "auditDetails",
            "customComments",
            "chronologicalMovements",
            "fileData",
            "declarationReviews",
            "processedDeclarations",
            "auditFiles",
        }
        assert doc["auditDetails"]["companyName"] == "Importadora S.A.S."
        assert set(doc["auditFiles"]) == {c.value for c in AuditFileCategory}
        json.dumps(doc)

    def test_empty_snapshot(self):
        snapshot = ProgressSnapshot()
        assert codec.deserialize(codec.serialize(snapshot)) == snapshot

    def test_restore_into_fresh_workspace(self, populated):
        from audit_crossref.workspace import Workspace

        fresh = Workspace()
        fresh.restore(codec.loads(codec.dumps(populated.to_snapshot())))
        assert fresh.stats() == populated.stats()
        assert fresh.line_store.files == populated.line_store.files

    def test_emptied_comment_bank_stays_empty(self, populated):
        from audit_crossref.workspace import Workspace

        populated.custom_comments = ()
        fresh = Workspace()
        fresh.restore(codec.loads(codec.dumps(populated.to_snapshot())))
        assert fresh.custom_comments == ()

    def test_document_without_comment_bank_gets_predefined(self):
        snapshot = codec.deserialize({"version": 2})
        assert snapshot.custom_comments == PREDEFINED_COMMENTS


class TestValidation:
    def test_not_an_object(self):
        with pytest.raises(SnapshotValidationError):
            codec.deserialize([1, 2])

    def test_wrong_container_type(self):
        with pytest.raises(SnapshotValidationError):
            codec.deserialize({"version": 2, "chronologicalMovements": {}})

    def test_malformed_entity(self):
        with pytest.raises(SnapshotValidationError):
            codec.deserialize({"version": 2, "chronologicalMovements": [{"date": "x"}]})

    def test_invalid_json(self):
        with pytest.raises(SnapshotError):
            codec.loads("{not json")

    def test_invalid_version(self):
        with pytest.raises(SnapshotValidationError):
            codec.deserialize({"version": "two"})

    def test_missing_optional_keys(self):
        snapshot = codec.deserialize({"version": 2})
        assert snapshot.movements == ()
        assert snapshot.audit_details == AuditDetails()

    def test_unknown_correction_status_reads_as_unset(self):
        document = {
            "version": 2,
            "chronologicalMovements": [
                {
                    "id": "m1",
                    "operations": [
                        {
                            "id": "op1",
                            "amount": -10,
                            "reviewData": {
                                "dian": {"status": "ok", "correctionStatus": "PARCIAL"},
                                "banrep": {"correctionStatus": "CORREGIDO"},
                            },
                        }
                    ],
                }
            ],
        }
        review = codec.deserialize(document).movements[0].operations[0].review_data
        assert review.dian.correction_status is None
        assert review.dian.status == "ok"
        assert review.banrep.correction_status == CorrectionStatus.CORREGIDO

    def test_unknown_link_type_keeps_link(self):
        document = {
            "version": 2,
            "chronologicalMovements": [
                {
                    "id": "m1",
                    "linkedXmls": [
                        {"type": "xmlfile", "targetFileId": "f1", "targetLineId": "line-f1-0"}
                    ],
                    "linkedDeclarations": [{"targetFileName": "dec.pdf"}],
                }
            ],
        }
        movement = codec.deserialize(document).movements[0]
        assert movement.linked_xmls[0].type == LinkType.XML
        assert movement.linked_xmls[0].target_line_id == "line-f1-0"
        assert movement.linked_declarations[0].type == LinkType.PDF


class TestMigrations:
    """Older documents are upgraded on load."""

    @pytest.fixture
    def v1_document(self):
        return {
            "auditDetails": {"companyName": "ACME"},
            "chronologicalMovements": [
                {"id": "m1", "date": "2024-01-15", "description": "Giro", "amount": -150.5}
            ],
            "fileData": [
                {
                    "id": "file-a",
                    "name": "export.xml",
                    "content": '<R ndec="1"/>',
                    "lines": [{"id": "line-file-a-0", "content": '<R ndec="1"/>', "status": "pending"}],
                }
            ],
            "auditFiles": {"xmls": [{"id": "file-a", "file": {"name": "export.xml"}}]},
        }

    def test_missing_version_is_v1(self, v1_document):
        migrated = codec.migrate(v1_document)
        assert migrated["version"] == SNAPSHOT_VERSION
        assert "version" not in v1_document

    def test_v1_raw_text_moves_to_registry(self, v1_document):
        migrated = codec.migrate(v1_document)
        assert "content" not in migrated["fileData"][0]
        entry = migrated["auditFiles"]["xmls"][0]
        assert base64.b64decode(entry["content"]) == b'<R ndec="1"/>'

    def test_v1_links_normalized(self, v1_document):
        snapshot = codec.deserialize(v1_document)
        movement = snapshot.movements[0]
        assert movement.linked_xmls == ()
        assert movement.linked_declarations == ()

    def test_newer_version_best_effort(self):
        snapshot = codec.deserialize({"version": SNAPSHOT_VERSION + 1, "customComments": ["x"]})
        assert snapshot.custom_comments == ("x",)


class TestPayloads:
    """Embedding and detaching binary payloads."""

    def test_embed_and_detach(self, populated, blob_store):
        blob_store.put_blob("file-a", b"<xml/>")
        embedded = codec.embed_payloads(populated.to_snapshot(), blob_store)
        entry = embedded.audit_files.get(AuditFileCategory.XMLS)[0]
        assert base64.b64decode(entry.content) == b"<xml/>"

        target = type(blob_store)()
        detached = codec.detach_payloads(embedded, target)
        assert target.get_blob("file-a") == b"<xml/>"
        assert detached.audit_files.get(AuditFileCategory.XMLS)[0].content is None

    def test_missing_blob_exports_metadata_only(self, populated, blob_store):
        embedded = codec.embed_payloads(populated.to_snapshot(), blob_store)
        assert embedded.audit_files.get(AuditFileCategory.XMLS)[0].content is None

    def test_invalid_payload_skipped(self, blob_store):
        registry = AuditFileRegistry().with_added(
            AuditFileCategory.XMLS,
            [AuditFile(id="file-x", file=FileMetadata(name="x.xml"), content="***")],
        )
        detached = codec.detach_payloads(ProgressSnapshot(audit_files=registry), blob_store)
        assert blob_store.get_blob("file-x") is None
        assert detached.audit_files.get(AuditFileCategory.XMLS)[0].content is None
