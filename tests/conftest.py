from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from residencytracker.catalog import Catalog  # noqa: E402
from residencytracker.ledger import ProcedureLedger  # noqa: E402
from residencytracker.models import RequiredProcedure, Resident, Rotation  # noqa: E402

SCRATCH_DIR = ROOT / ".tmp_pytest"


@pytest.fixture(name="tmp_path")
def workspace_tmp_path() -> Iterator[Path]:
    """Per-test scratch directory under ``.tmp_pytest/`` in the project root.

    Replaces pytest's builtin ``tmp_path`` so ledger databases and JSON files
    written by tests stay inside the checkout.
    """
    SCRATCH_DIR.mkdir(parents=True, exist_ok=True)
    path = SCRATCH_DIR / uuid4().hex
    path.mkdir()
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        if SCRATCH_DIR.exists() and not any(SCRATCH_DIR.iterdir()):
            SCRATCH_DIR.rmdir()


@pytest.fixture
def catalog() -> Catalog:
    """Two rotations and two residents; Radiología I matches the worked example."""
    radiology = Rotation(
        id="ROT-RAD1",
        name="Radiología I",
        lead_teacher_id="T-LEAD",
        participating_teacher_ids=frozenset({"T-PART"}),
        procedures=(
            RequiredProcedure(id="PUNC", name="Punción", goal=10),
            RequiredProcedure(id="ECO", name="Ecografía", goal=4),
        ),
    )
    neuro = Rotation(
        id="ROT-NEURO",
        name="Neurorradiología",
        lead_teacher_id="T-NEURO",
        procedures=(RequiredProcedure(id="TC", name="Informe TC", goal=0),),
    )
    residents = (
        Resident(id="R", name="Resident R", level="R1"),
        Resident(id="S", name="Resident S", level="R2"),
    )
    return Catalog(rotations=(radiology, neuro), residents=residents)


@pytest.fixture
def ledger(catalog: Catalog) -> Iterator[ProcedureLedger]:
    store = ProcedureLedger(":memory:", catalog)
    try:
        yield store
    finally:
        store.close()
