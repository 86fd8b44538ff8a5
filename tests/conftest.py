"""Test fixtures and utilities."""

from pathlib import Path

import pytest

from audit_crossref.schemas.movements import Movement, Operation
from audit_crossref.workspace import Workspace

# Exchange record export as received from the central bank portal
SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Declaraciones nit="900123456">

  <Registro ndec="12345" fecha="2024-01-15" vusd="150.50" vusdi="10.00" numeral="2015"/>
  <Registro ndec="67890" fecha="2024-02-03" vusd="200" vusdi="0"/>
  <Registro ndeci="12345" fecha="2024-02-10" vusd="75.25" vusdi="5"/>
</Declaraciones>
"""

SECOND_XML = """<Declaraciones>
  <Registro ndec="55555" vusd="999.99"/>
  <Registro ndec="67890" vusd="1"/>
</Declaraciones>
"""


class MemoryBlobStore:
    """In-memory BinaryStore for service tests."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}

    def put_blob(self, file_id: str, data: bytes) -> None:
        self.blobs[file_id] = data

    def get_blob(self, file_id: str) -> bytes | None:
        return self.blobs.get(file_id)

    def delete_blob(self, file_id: str) -> bool:
        return self.blobs.pop(file_id, None) is not None


def make_movement(movement_id: str = "m1", amount: float = -150.5, operations: int = 1) -> Movement:
    """Movement with `operations` operations splitting the amount."""
    return Movement(
        id=movement_id,
        date="2024-01-15",
        description=f"Giro {movement_id}",
        amount=amount,
        source_file="extracto_enero.pdf",
        operations=tuple(
            Operation(id=f"{movement_id}-op{i}", amount=amount / operations)
            for i in range(operations)
        ),
    )


@pytest.fixture
def sample_xml() -> str:
    """Sample XML export with three records."""
    return SAMPLE_XML


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def workspace() -> Workspace:
    """Workspace with the sample XML loaded and one movement."""
    ws = Workspace(auditor_name="auditor")
    ws.line_store.ingest("export.xml", SAMPLE_XML, file_id="file-a")
    ws.link_graph.replace_movements([make_movement("m1"), make_movement("m2", amount=200.0)])
    return ws


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test_state.db"


@pytest.fixture
def second_xml() -> str:
    """A second export sharing one identifier with the sample."""
    return SECOND_XML


@pytest.fixture
def movement_factory():
    """Factory for movements with operations."""
    return make_movement
