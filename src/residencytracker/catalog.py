"""Read-only snapshots of rotations, residents and evaluation records."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import CompetencyRecord, ExamAttempt, PresentationRecord, Quiz, Resident, Rotation


@dataclass(frozen=True)
class Catalog:
    """Rotation and resident registry owned by the administrative side."""

    rotations: tuple[Rotation, ...] = ()
    residents: tuple[Resident, ...] = ()

    @classmethod
    def from_iterables(cls, rotations: Iterable[Rotation], residents: Iterable[Resident]) -> Catalog:
        return cls(rotations=tuple(rotations), residents=tuple(residents))

    def list_rotations(self) -> list[Rotation]:
        """Return rotations in registry order."""
        return list(self.rotations)

    def list_residents(self) -> list[Resident]:
        """Return residents in registry order."""
        return list(self.residents)

    def get_rotation(self, rotation_id: str) -> Rotation | None:
        for rotation in self.rotations:
            if rotation.id == rotation_id:
                return rotation
        return None

    def get_resident(self, resident_id: str) -> Resident | None:
        for resident in self.residents:
            if resident.id == resident_id:
                return resident
        return None


@dataclass(frozen=True)
class EvaluationRecords:
    """Quizzes, exam attempts and performed evaluations from collaborator modules."""

    quizzes: tuple[Quiz, ...] = ()
    attempts: tuple[ExamAttempt, ...] = ()
    competencies: tuple[CompetencyRecord, ...] = ()
    presentations: tuple[PresentationRecord, ...] = ()

    def list_quizzes(self) -> list[Quiz]:
        return list(self.quizzes)

    def list_attempts(self) -> list[ExamAttempt]:
        return list(self.attempts)

    def list_competencies(self) -> list[CompetencyRecord]:
        return list(self.competencies)

    def list_presentations(self) -> list[PresentationRecord]:
        return list(self.presentations)
