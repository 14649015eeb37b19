"""Core domain models for procedure tracking and evaluation compliance."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

INTERDISCIPLINARY_ROTATION_NAME = "Interdisciplinario"
QUALIFYING_ATTEMPT_STATES = frozenset({"submitted", "pending_review"})


@dataclass(frozen=True)
class Resident:
    """Trainee whose procedures and evaluations are tracked."""

    id: str
    name: str
    level: str


@dataclass(frozen=True)
class RequiredProcedure:
    """Clinical procedure a rotation expects `goal` performances of."""

    id: str
    name: str
    goal: int


@dataclass(frozen=True)
class Rotation:
    """Clinical rotation with its teaching staff and required procedures."""

    id: str
    name: str
    lead_teacher_id: str
    participating_teacher_ids: frozenset[str] = frozenset()
    procedures: tuple[RequiredProcedure, ...] = ()

    def procedure(self, procedure_id: str) -> RequiredProcedure | None:
        """Return the required procedure with this id, if any."""
        for procedure in self.procedures:
            if procedure.id == procedure_id:
                return procedure
        return None

    def involves(self, teacher_id: str) -> bool:
        """Return whether the teacher leads or participates in the rotation."""
        return teacher_id == self.lead_teacher_id or teacher_id in self.participating_teacher_ids


class RowState(str, Enum):
    """Validation state of one ledger row."""

    UNTOUCHED = "untouched"
    PENDING = "pending"
    VALIDATED = "validated"


@dataclass(frozen=True)
class ProcedureLogRow:
    """Aggregate counter for one (resident, rotation, procedure) key."""

    resident_id: str
    rotation_id: str
    procedure_id: str
    count: int = 0
    validated_count: int = 0
    first_logged_at: str | None = None
    last_logged_at: str | None = None
    validated_at: str | None = None

    @property
    def pending_count(self) -> int:
        return self.count - self.validated_count

    @property
    def state(self) -> RowState:
        if self.count == 0:
            return RowState.UNTOUCHED
        if self.count > self.validated_count:
            return RowState.PENDING
        return RowState.VALIDATED


@dataclass(frozen=True)
class Quiz:
    """Written exam; belongs to a rotation by name or to every rotation."""

    id: str
    title: str
    rotation_name: str
    interdisciplinary: bool = False


@dataclass(frozen=True)
class ExamAttempt:
    """One resident attempt on a quiz."""

    id: str
    quiz_id: str
    resident_id: str
    state: str

    @property
    def qualifies(self) -> bool:
        """Whether the attempt counts as a written grade."""
        return self.state in QUALIFYING_ATTEMPT_STATES


@dataclass(frozen=True)
class CompetencyRecord:
    """Performed competency evaluation for a resident in a rotation."""

    id: str
    resident_id: str
    rotation_id: str
    teacher_id: str = ""
    average: float | None = None


@dataclass(frozen=True)
class PresentationRecord:
    """Performed presentation evaluation for a resident in a rotation."""

    id: str
    resident_id: str
    rotation_id: str
    teacher_id: str = ""
    average: float | None = None


class ObligationKind(str, Enum):
    """Kind of evaluation that is still missing."""

    COMPETENCY = "competency"
    PRESENTATION = "presentation"


@dataclass(frozen=True)
class Obligation:
    """Missing evaluation for a resident/rotation pair.

    Only the key fields take part in equality and hashing; the names are
    carried for display.
    """

    resident_id: str
    rotation_id: str
    kind: ObligationKind
    resident_name: str = field(default="", compare=False)
    rotation_name: str = field(default="", compare=False)


class ScopeKind(str, Enum):
    """Who is asking for the obligation worklist."""

    TEACHER = "teacher"
    ADMIN = "admin"


@dataclass(frozen=True)
class ViewerScope:
    """Viewing scope of a compliance query."""

    kind: ScopeKind
    teacher_id: str | None = None

    @classmethod
    def teacher(cls, teacher_id: str) -> ViewerScope:
        return cls(kind=ScopeKind.TEACHER, teacher_id=teacher_id)

    @classmethod
    def admin(cls) -> ViewerScope:
        return cls(kind=ScopeKind.ADMIN)

    def sees(self, rotation: Rotation) -> bool:
        """Return whether the rotation is inside this scope."""
        if self.kind is ScopeKind.ADMIN:
            return True
        if self.teacher_id is None:
            return False
        return rotation.involves(self.teacher_id)
