"""Tests for the link graph."""

import pytest

from audit_crossref.errors import MovementNotFoundError
from audit_crossref.linking import LinkGraph, LinkKey, xml_link_label
from audit_crossref.schemas.audit import AuditFile, AuditFileCategory, AuditFileRegistry, FileMetadata
from audit_crossref.schemas.movements import LinkType


@pytest.fixture
def graph(workspace):
    return workspace.link_graph


@pytest.fixture
def line(workspace):
    return workspace.line_store.files[0].lines[2]


class TestLinkCreation:
    """Tests for idempotent link creation."""

    def test_add_xml_link(self, graph, line):
        movement = graph.add_xml_link("m1", "file-a", line.id, "XML: export.xml (Línea 3)", "export.xml")
        assert len(movement.linked_xmls) == 1
        link = movement.linked_xmls[0]
        assert link.type == LinkType.XML
        assert link.target_file_id == "file-a"
        assert link.target_line_id == line.id
        assert link.target_file_name == "export.xml"

    def test_duplicate_xml_link_stored_once(self, graph, line):
        first = graph.add_xml_link("m1", "file-a", line.id, "label", "export.xml")
        second = graph.add_xml_link("m1", "file-a", line.id, "other label", "export.xml")
        assert second is first
        assert len(graph.get_movement("m1").linked_xmls) == 1

    def test_duplicate_declaration_link_stored_once(self, graph):
        graph.add_declaration_link("m1", "dec_001.pdf")
        graph.add_declaration_link("m1", "dec_001.pdf", label="again")
        movement = graph.get_movement("m1")
        assert len(movement.linked_declarations) == 1
        assert movement.linked_declarations[0].label == "PDF: dec_001.pdf"

    def test_same_target_on_two_movements(self, graph, line):
        graph.add_xml_link("m1", "file-a", line.id, "l", "export.xml")
        graph.add_xml_link("m2", "file-a", line.id, "l", "export.xml")
        assert graph.links_for_line("file-a", line.id) == {"m1", "m2"}

    def test_unknown_movement_raises(self, graph, line):
        with pytest.raises(MovementNotFoundError):
            graph.add_xml_link("nope", "file-a", line.id, "l", "export.xml")

    def test_label_format(self):
        assert xml_link_label("export.xml", 2) == "XML: export.xml (Línea 3)"


class TestLinkRemoval:
    def test_remove_xml_link(self, graph, line):
        graph.add_xml_link("m1", "file-a", line.id, "l", "export.xml")
        assert graph.remove_link("m1", LinkKey.xml("file-a", line.id)) is True
        assert graph.get_movement("m1").linked_xmls == ()
        assert graph.remove_link("m1", LinkKey.xml("file-a", line.id)) is False

    def test_remove_declaration_link(self, graph):
        graph.add_declaration_link("m1", "a.pdf")
        graph.add_declaration_link("m1", "b.pdf")
        assert graph.remove_link("m1", LinkKey.pdf("a.pdf")) is True
        names = [link.target_file_name for link in graph.get_movement("m1").linked_declarations]
        assert names == ["b.pdf"]


class TestReverseQueries:
    def test_links_for_line_id_ignores_file_id(self, graph, line):
        graph.add_xml_link("m1", "stale-file-id", line.id, "l", "export.xml")
        assert graph.links_for_line_id(line.id) == {"m1"}
        assert graph.links_for_line("file-a", line.id) == set()

    def test_links_for_declaration(self, graph):
        graph.add_declaration_link("m2", "dec.pdf")
        assert graph.links_for_declaration("dec.pdf") == {"m2"}
        assert graph.links_for_declaration("other.pdf") == set()


class TestDanglingLinks:
    """Removing a file leaves its links dangling until pruned."""

    def test_resolve_live_link(self, workspace, graph, line):
        movement = graph.add_xml_link("m1", "file-a", line.id, "l", "export.xml")
        target = graph.resolve_link(movement.linked_xmls[0], workspace.line_store)
        assert target.line == line
        assert target.line_index == 2

    def test_removed_file_leaves_link_dangling(self, workspace, graph, line):
        graph.add_xml_link("m1", "file-a", line.id, "l", "export.xml")
        workspace.line_store.remove("file-a")

        movement = graph.get_movement("m1")
        assert len(movement.linked_xmls) == 1
        assert graph.resolve_link(movement.linked_xmls[0], workspace.line_store) is None
        assert graph.dangling_links(workspace.line_store) == [("m1", movement.linked_xmls[0])]

    def test_prune_dangling(self, workspace, graph, line):
        graph.add_xml_link("m1", "file-a", line.id, "l", "export.xml")
        workspace.line_store.remove("file-a")

        assert graph.prune_dangling(workspace.line_store) == 1
        assert graph.get_movement("m1").linked_xmls == ()
        assert graph.dangling_links(workspace.line_store) == []

    def test_declaration_links_resolve_through_registry(self, workspace, graph):
        graph.add_declaration_link("m1", "dec.pdf")
        graph.add_declaration_link("m1", "gone.pdf")
        registry = AuditFileRegistry().with_added(
            AuditFileCategory.DECLARACIONES,
            [AuditFile(id="file-d", file=FileMetadata(name="dec.pdf"))],
        )

        dangling = graph.dangling_links(workspace.line_store, registry)
        assert [link.target_file_name for _, link in dangling] == ["gone.pdf"]
        # Without a registry only xml links are checked
        assert graph.dangling_links(workspace.line_store) == []


class TestMovementUpdates:
    def test_update_movements_counts_present(self, graph):
        count = graph.update_movements({"m1", "ghost"}, lambda m: m)
        assert count == 1

    def test_replace_movements(self):
        graph = LinkGraph()
        assert len(graph) == 0
        graph.replace_movements([])
        assert graph.movements == ()
