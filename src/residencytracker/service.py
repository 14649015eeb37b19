"""Application service for procedure logging, validation and evaluation worklists."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .catalog import Catalog, EvaluationRecords
from .catalog_loader import load_catalog, load_records
from .compliance import ComplianceSnapshot, compute_obligations
from .errors import NotFoundError
from .ledger import ProcedureLedger, ValidationEvent, ValidationResult
from .models import Obligation, ProcedureLogRow, RequiredProcedure, Resident, Rotation, RowState, ViewerScope
from .projector import ProgressView, project, summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcedureProgress:
    """Progress of one required procedure for display."""

    procedure: RequiredProcedure
    row: ProcedureLogRow
    view: ProgressView

    @property
    def state(self) -> RowState:
        return self.row.state


@dataclass(frozen=True)
class RotationProgress:
    """Procedure progress of a resident across one rotation."""

    resident: Resident
    rotation: Rotation
    procedures: tuple[ProcedureProgress, ...]
    summary: ProgressView

    @property
    def pending_count(self) -> int:
        return sum(item.row.pending_count for item in self.procedures)


class TrackerService:
    """Coordinates the ledger, the progress projector and the compliance engine.

    Logging is the resident's entry point and validation the supervisor's;
    deciding who may call which is left to the caller.
    """

    def __init__(
        self,
        db_path: Path | str,
        catalog: Catalog | None = None,
        records: EvaluationRecords | None = None,
    ) -> None:
        """Initialize service with database path and collaborator data."""
        self.catalog = catalog if catalog is not None else load_catalog()
        self.records = records if records is not None else load_records()
        self.ledger = ProcedureLedger(db_path, self.catalog)

    def list_residents(self) -> list[Resident]:
        return self.catalog.list_residents()

    def list_rotations(self) -> list[Rotation]:
        return self.catalog.list_rotations()

    def rotations_for_teacher(self, teacher_id: str) -> list[Rotation]:
        """Return rotations the teacher leads or participates in."""
        return [rotation for rotation in self.catalog.list_rotations() if rotation.involves(teacher_id)]

    def log_procedure(self, resident_id: str, rotation_id: str, procedure_id: str) -> ProcedureLogRow:
        """Record one performance reported by the resident."""
        return self.ledger.log_procedure(resident_id, rotation_id, procedure_id)

    def get_progress(self, resident_id: str, rotation_id: str) -> dict[str, ProcedureLogRow]:
        return self.ledger.get_progress(resident_id, rotation_id)

    def validate_all(
        self, resident_id: str, rotation_id: str, validated_by: str | None = None
    ) -> ValidationResult:
        """Confirm all pending counts of a resident in a rotation."""
        return self.ledger.validate_all(resident_id, rotation_id, validated_by=validated_by)

    def validation_history(self, resident_id: str, rotation_id: str) -> list[ValidationEvent]:
        return self.ledger.list_validation_events(resident_id, rotation_id)

    def rotation_progress(self, resident_id: str, rotation_id: str) -> RotationProgress:
        """Return per-procedure and overall progress for a resident in a rotation."""
        resident = self.catalog.get_resident(resident_id)
        if resident is None:
            raise NotFoundError("resident", resident_id)
        rotation = self.catalog.get_rotation(rotation_id)
        if rotation is None:
            raise NotFoundError("rotation", rotation_id)

        rows = self.ledger.get_progress(resident_id, rotation_id)
        items = tuple(
            ProcedureProgress(
                procedure=procedure,
                row=rows[procedure.id],
                view=project(rows[procedure.id], procedure.goal),
            )
            for procedure in rotation.procedures
        )
        summary = summarize((item.row, item.procedure.goal) for item in items)
        return RotationProgress(resident=resident, rotation=rotation, procedures=items, summary=summary)

    def snapshot(self) -> ComplianceSnapshot:
        """Take one consistent copy of all compliance inputs."""
        return ComplianceSnapshot.capture(self.catalog, self.records)

    def pending_evaluations(self, scope: ViewerScope, rotation_id: str | None = None) -> list[Obligation]:
        """Return missing competency/presentation evaluations visible to `scope`."""
        obligations = compute_obligations(self.snapshot(), scope, rotation_id=rotation_id)
        logger.debug("Computed %d pending evaluation(s) for %s scope", len(obligations), scope.kind.value)
        return obligations

    def close(self) -> None:
        """Close resources."""
        self.ledger.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.close()
        except Exception:
            pass
