"""Tests for the reconciliation service (edit propagation)."""

import pytest

from audit_crossref.config import Config
from audit_crossref.errors import LineNotFoundError, MovementNotFoundError
from audit_crossref.linking import LinkKey
from audit_crossref.schemas.declarations import (
    DeclarationReview,
    DeclarationReviewStatus,
    ProcessedDeclaration,
)
from audit_crossref.schemas.lines import LineStatus
from audit_crossref.schemas.movements import ReviewAreaData, ReviewData
from audit_crossref.services import ReconciliationService
from audit_crossref.services.reconciliation import append_xml_comment


@pytest.fixture
def service(workspace):
    return ReconciliationService(workspace, Config())


@pytest.fixture
def line(workspace):
    return workspace.line_store.files[0].lines[2]


def comments_of(workspace, movement_id):
    movement = workspace.link_graph.get_movement(movement_id)
    return [op.review_data.comments for op in movement.operations]


class TestAppendXmlComment:
    def test_first_comment(self):
        assert append_xml_comment("", "SIN LEGALIZAR") == "[XML]: SIN LEGALIZAR"

    def test_appends_on_new_line(self):
        assert append_xml_comment("manual", "O.K.") == "manual\n[XML]: O.K."


class TestLineComments:
    """XML line comments are appended to linked movements."""

    def test_comment_marks_line_reviewed(self, service, workspace, line):
        result = service.save_line_comment("file-a", line.id, "O.K.")
        assert result.line.comment == "O.K."
        assert result.line.status == LineStatus.REVIEWED
        assert workspace.line_store.get_line("file-a", line.id).status == LineStatus.REVIEWED

    def test_comment_appended_to_every_operation(self, service, workspace, line, movement_factory):
        workspace.link_graph.replace_movements([movement_factory("m1", operations=2)])
        service.link_xml_line("m1", "file-a", line.id)

        service.save_line_comment("file-a", line.id, "SIN LEGALIZAR")
        result = service.save_line_comment("file-a", line.id, "Mal Registrada")

        assert result.movements_updated == 1
        assert comments_of(workspace, "m1") == [
            "[XML]: SIN LEGALIZAR\n[XML]: Mal Registrada",
            "[XML]: SIN LEGALIZAR\n[XML]: Mal Registrada",
        ]

    def test_unlinked_movements_untouched(self, service, workspace, line):
        service.link_xml_line("m1", "file-a", line.id)
        service.save_line_comment("file-a", line.id, "note")
        assert comments_of(workspace, "m2") == [""]

    def test_save_for_future_adds_to_bank(self, service, workspace, line):
        result = service.save_line_comment("file-a", line.id, "Revisar soporte", save_for_future=True)
        assert result.added_to_bank is True
        assert "Revisar soporte" in workspace.custom_comments

        again = service.save_line_comment("file-a", line.id, "Revisar soporte", save_for_future=True)
        assert again.added_to_bank is False
        assert workspace.custom_comments.count("Revisar soporte") == 1

    def test_unknown_line(self, service):
        with pytest.raises(LineNotFoundError):
            service.save_line_comment("file-a", "line-missing", "x")


class TestDeclarationReviews:
    """Declaration review comments overwrite linked movements."""

    @pytest.fixture
    def declaration(self, workspace):
        declaration = ProcessedDeclaration(
            id="file-d",
            file_name="dec_12345.pdf",
            date="2024-01-15",
            amount=150.5,
            number="0012345",
            numeral="2015",
        )
        workspace.processed_declarations = (declaration,)
        return declaration

    def test_review_overwrites_comments(self, service, workspace, declaration):
        service.link_declaration("m1", "dec_12345.pdf")
        workspace.link_graph.update_movement(
            "m1", lambda m: m.with_review_comments(lambda _old: "previous")
        )

        review = DeclarationReview(
            file_id="file-d",
            file_name="dec_12345.pdf",
            status=DeclarationReviewStatus.CORRECTION_NEEDED,
            auditor_comments="Numeral incorrecto",
        )
        result = service.update_declaration_review(review)

        assert result.created is True
        assert result.declaration == declaration
        assert result.movements_updated == 1
        assert comments_of(workspace, "m1") == ["Numeral incorrecto"]

    def test_review_upsert_by_file_id(self, service, workspace, declaration):
        service.update_declaration_review(DeclarationReview(file_id="file-d", file_name="dec_12345.pdf"))
        result = service.update_declaration_review(
            DeclarationReview(
                file_id="file-d",
                file_name="dec_12345.pdf",
                status=DeclarationReviewStatus.APPROVED,
            )
        )
        assert result.created is False
        assert len(workspace.declaration_reviews) == 1
        assert workspace.find_declaration_review("file-d").status == DeclarationReviewStatus.APPROVED

    def test_unknown_declaration_does_not_sync(self, service, workspace):
        service.link_declaration("m1", "unknown.pdf")
        result = service.update_declaration_review(
            DeclarationReview(file_id="file-x", file_name="unknown.pdf", auditor_comments="x")
        )
        assert result.declaration is None
        assert result.movements_updated == 0
        assert comments_of(workspace, "m1") == [""]

    def test_find_declaration_ignores_leading_zeros(self, service, declaration):
        assert service.find_declaration("12345") == declaration
        assert service.find_declaration("000012345") == declaration
        assert service.find_declaration("54321") is None

    def test_link_declaration_by_number(self, service, declaration):
        movement = service.link_declaration_by_number("m1", "12345")
        assert [link.target_file_name for link in movement.linked_declarations] == ["dec_12345.pdf"]
        assert service.link_declaration_by_number("m1", "999") is None

    def test_numeral_description(self, declaration):
        assert declaration.numeral_description.startswith("Giro por importaciones")


class TestLinks:
    def test_link_xml_line_label(self, service, line):
        movement = service.link_xml_line("m1", "file-a", line.id)
        assert movement.linked_xmls[0].label == "XML: export.xml (Línea 3)"

    def test_link_unknown_line(self, service):
        with pytest.raises(LineNotFoundError):
            service.link_xml_line("m1", "file-a", "line-missing")

    def test_unlink(self, service, line):
        service.link_xml_line("m1", "file-a", line.id)
        assert service.unlink("m1", LinkKey.xml("file-a", line.id)) is True

    def test_prune_after_file_removed(self, service, workspace, line):
        service.link_xml_line("m1", "file-a", line.id)
        workspace.line_store.remove("file-a")
        assert len(service.dangling_links()) == 1
        assert service.prune_dangling_links() == 1
        assert service.dangling_links() == []


class TestOperationReview:
    def test_set_operation_review(self, service, workspace):
        op_id = workspace.link_graph.get_movement("m1").operations[0].id
        data = ReviewData(documental=ReviewAreaData(status="OK"), comments="revisado")
        movement = service.set_operation_review("m1", op_id, data)
        assert movement.operations[0].review_data == data

    def test_unknown_movement(self, service):
        with pytest.raises(MovementNotFoundError):
            service.set_operation_review("ghost", "op", ReviewData())


class TestResolveThroughService:
    def test_resolve_links_and_reviews(self, service, workspace):
        result = service.resolve(declaration_number="0012345", amount=-150.5, movement_id="m1")
        assert result.found
        assert workspace.link_graph.get_movement("m1").linked_xmls[0].target_line_id == result.line_id
