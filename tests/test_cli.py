"""Tests for CLI commands.

Parser tests verify that commands are registered; the remaining tests run
commands end to end against a temporary state database.
"""

import json

import pytest

from audit_crossref.runner.main import create_cli, main
from audit_crossref.schemas.movements import Movement, Operation
from audit_crossref.schemas.snapshot import ProgressSnapshot
from audit_crossref.session import serialize
from audit_crossref.state_store import SqliteStateStore


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_ingest_defaults_to_xmls(self):
        args = create_cli().parse_args(["ingest", "a.xml", "b.xml"])
        assert args.command == "ingest"
        assert args.category == "xmls"
        assert [str(p) for p in args.files] == ["a.xml", "b.xml"]

    def test_ingest_rejects_unknown_category(self):
        with pytest.raises(SystemExit):
            create_cli().parse_args(["ingest", "a.pdf", "--category", "fotos"])

    def test_resolve_options(self):
        args = create_cli().parse_args(
            ["resolve", "--ndec", "0012345", "--amount", "-150.5", "--movement", "m1"]
        )
        assert args.ndec == "0012345"
        assert args.amount == -150.5
        assert args.movement == "m1"

    def test_link_declaration_requires_target(self):
        with pytest.raises(SystemExit):
            create_cli().parse_args(["link-declaration", "m1"])

    def test_global_options(self):
        args = create_cli().parse_args(["-v", "-u", "alice", "status"])
        assert args.verbose is True
        assert args.user == "alice"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(f"state_db_path: {tmp_path / 'state.db'}\n")
    return path


@pytest.fixture
def run(config_file):
    def _run(*args):
        return main(["-c", str(config_file), "-u", "alice", *args])

    return _run


@pytest.fixture
def xml_file(tmp_path, sample_xml):
    path = tmp_path / "export.xml"
    path.write_text(sample_xml, encoding="utf-8")
    return path


@pytest.fixture
def with_movement(tmp_path, run):
    """Seed the stored session with one movement via a snapshot import."""
    snapshot = ProgressSnapshot(
        movements=(
            Movement(
                id="m1",
                date="2024-01-15",
                description="Giro",
                amount=-150.5,
                operations=(Operation(id="op1", amount=-150.5),),
            ),
        )
    )
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(serialize(snapshot)), encoding="utf-8")
    assert run("import", str(path)) == 0


class TestCommands:
    """End-to-end command runs."""

    def test_init_config(self, tmp_path):
        path = tmp_path / "new.yaml"
        assert main(["-c", str(path), "init-config"]) == 0
        assert path.exists()
        assert main(["-c", str(path), "init-config"]) == 1

    def test_ingest_and_search(self, run, xml_file, capsys):
        assert run("ingest", str(xml_file)) == 0
        assert "Added 1 files" in capsys.readouterr().out

        assert run("search", "67890") == 0
        out = capsys.readouterr().out
        assert "1 matches" in out
        assert "export.xml:4" in out

    def test_short_search_term(self, run, xml_file):
        run("ingest", str(xml_file))
        assert run("search", "6") == 1

    def test_resolve_links_movement(self, run, xml_file, with_movement, tmp_path, capsys):
        run("ingest", str(xml_file))
        capsys.readouterr()

        assert run("resolve", "--ndec", "0012345", "--movement", "m1") == 0
        assert "line 3" in capsys.readouterr().out

        # Idempotent: the second run links nothing new
        assert run("resolve", "--ndec", "0012345", "--movement", "m1") == 0
        assert "already linked" in capsys.readouterr().out

        document = SqliteStateStore(tmp_path / "state.db").load_session("alice")
        links = document["chronologicalMovements"][0]["linkedXmls"]
        assert len(links) == 1

    def test_resolve_miss(self, run, xml_file):
        run("ingest", str(xml_file))
        assert run("resolve", "--ndec", "999") == 1

    def test_resolve_unknown_movement(self, run, xml_file, capsys):
        run("ingest", str(xml_file))
        assert run("resolve", "--ndec", "12345", "--movement", "ghost") == 1
        assert "Unknown movement" in capsys.readouterr().out

    def test_link_declaration_and_dangling_report(self, run, with_movement, capsys):
        assert run("link-declaration", "m1", "--file", "dec.pdf") == 0
        capsys.readouterr()

        assert run("links") == 0
        assert "1 dangling links" in capsys.readouterr().out

        assert run("links", "--prune") == 0
        assert run("links") == 0
        assert "All links resolve" in capsys.readouterr().out

    def test_link_declaration_unknown_number(self, run, with_movement):
        assert run("link-declaration", "m1", "--ndec", "12345") == 1

    def test_export_and_sessions(self, run, xml_file, tmp_path, capsys):
        run("ingest", str(xml_file))
        out_path = tmp_path / "backup.json"
        assert run("export", str(out_path)) == 0
        assert json.loads(out_path.read_text(encoding="utf-8"))["version"] == 2

        capsys.readouterr()
        assert run("sessions") == 0
        assert "alice" in capsys.readouterr().out

    def test_status(self, run, xml_file, capsys):
        run("ingest", str(xml_file))
        capsys.readouterr()
        assert run("status") == 0
        out = capsys.readouterr().out
        assert "Session status (alice)" in out
        assert "0/6" in out

    def test_comment_and_alerts(self, run, xml_file, tmp_path, capsys):
        run("ingest", str(xml_file))
        document = SqliteStateStore(tmp_path / "state.db").load_session("alice")
        line_file = document["fileData"][0]
        line_id = line_file["lines"][2]["id"]

        assert run("comment", line_file["id"], line_id, "SIN LEGALIZAR") == 0
        capsys.readouterr()
        assert run("alerts") == 0
        assert "SIN LEGALIZAR" in capsys.readouterr().out

    def test_invalid_backend_config(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text(f"state_db_path: {tmp_path / 'state.db'}\nsession:\n  backend: remote\n")
        assert main(["-c", str(path), "-u", "alice", "status"]) == 1
        assert "Invalid configuration" in capsys.readouterr().out
