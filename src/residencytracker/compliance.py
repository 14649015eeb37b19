"""Derive missing competency and presentation evaluations.

A resident owes a rotation its evaluations once they hold a written grade
for it: a submitted or pending-review attempt on one of the rotation's
quizzes (quizzes carrying the rotation's name, plus interdisciplinary ones).
From then on each of the two evaluations is missing until a record for the
(resident, rotation) pair exists.

Nothing here is stored. Every call works on a `ComplianceSnapshot`, whose
lookup tables are built once so the scan is one pass over rotations and
residents.
"""

from __future__ import annotations

from dataclasses import dataclass

from .catalog import Catalog, EvaluationRecords
from .models import (
    CompetencyRecord,
    ExamAttempt,
    Obligation,
    ObligationKind,
    PresentationRecord,
    Quiz,
    Resident,
    Rotation,
    ViewerScope,
)

_KIND_ORDER = {ObligationKind.COMPETENCY: 0, ObligationKind.PRESENTATION: 1}


@dataclass(frozen=True)
class ComplianceSnapshot:
    """Frozen copy of the six input collections for one computation."""

    rotations: tuple[Rotation, ...] = ()
    residents: tuple[Resident, ...] = ()
    quizzes: tuple[Quiz, ...] = ()
    attempts: tuple[ExamAttempt, ...] = ()
    competencies: tuple[CompetencyRecord, ...] = ()
    presentations: tuple[PresentationRecord, ...] = ()

    @classmethod
    def capture(cls, catalog: Catalog, records: EvaluationRecords) -> ComplianceSnapshot:
        """Read every collection once through its list method."""
        return cls(
            rotations=tuple(catalog.list_rotations()),
            residents=tuple(catalog.list_residents()),
            quizzes=tuple(records.list_quizzes()),
            attempts=tuple(records.list_attempts()),
            competencies=tuple(records.list_competencies()),
            presentations=tuple(records.list_presentations()),
        )


@dataclass(frozen=True)
class ComplianceIndex:
    """Lookup tables over one snapshot."""

    quiz_ids_by_rotation_name: dict[str, frozenset[str]]
    interdisciplinary_quiz_ids: frozenset[str]
    graded_quiz_ids_by_resident: dict[str, frozenset[str]]
    competency_pairs: frozenset[tuple[str, str]]
    presentation_pairs: frozenset[tuple[str, str]]

    @classmethod
    def build(cls, snapshot: ComplianceSnapshot) -> ComplianceIndex:
        by_name: dict[str, set[str]] = {}
        interdisciplinary: set[str] = set()
        for quiz in snapshot.quizzes:
            if quiz.interdisciplinary:
                interdisciplinary.add(quiz.id)
            else:
                by_name.setdefault(quiz.rotation_name, set()).add(quiz.id)

        graded: dict[str, set[str]] = {}
        for attempt in snapshot.attempts:
            if attempt.qualifies:
                graded.setdefault(attempt.resident_id, set()).add(attempt.quiz_id)

        return cls(
            quiz_ids_by_rotation_name={name: frozenset(ids) for name, ids in by_name.items()},
            interdisciplinary_quiz_ids=frozenset(interdisciplinary),
            graded_quiz_ids_by_resident={resident: frozenset(ids) for resident, ids in graded.items()},
            competency_pairs=frozenset((record.resident_id, record.rotation_id) for record in snapshot.competencies),
            presentation_pairs=frozenset(
                (record.resident_id, record.rotation_id) for record in snapshot.presentations
            ),
        )

    def rotation_quiz_ids(self, rotation: Rotation) -> frozenset[str]:
        """Quizzes that count as the written part of a rotation."""
        return self.quiz_ids_by_rotation_name.get(rotation.name, frozenset()) | self.interdisciplinary_quiz_ids

    def has_written_grade(self, resident_id: str, quiz_ids: frozenset[str]) -> bool:
        graded = self.graded_quiz_ids_by_resident.get(resident_id)
        if not graded:
            return False
        return not graded.isdisjoint(quiz_ids)


def compute_obligations(
    snapshot: ComplianceSnapshot,
    scope: ViewerScope,
    rotation_id: str | None = None,
) -> list[Obligation]:
    """Return outstanding evaluations visible to `scope`.

    Ordered by rotation id, resident id, then competency before presentation.
    Attempts on quizzes that no longer exist and records pointing at unknown
    rotations never match anything.
    """
    index = ComplianceIndex.build(snapshot)
    obligations: list[Obligation] = []
    for rotation in snapshot.rotations:
        if rotation_id is not None and rotation.id != rotation_id:
            continue
        if not scope.sees(rotation):
            continue
        quiz_ids = index.rotation_quiz_ids(rotation)
        if not quiz_ids:
            continue
        for resident in snapshot.residents:
            if not index.has_written_grade(resident.id, quiz_ids):
                continue
            pair = (resident.id, rotation.id)
            if pair not in index.competency_pairs:
                obligations.append(_obligation(resident, rotation, ObligationKind.COMPETENCY))
            if pair not in index.presentation_pairs:
                obligations.append(_obligation(resident, rotation, ObligationKind.PRESENTATION))

    obligations.sort(key=lambda item: (item.rotation_id, item.resident_id, _KIND_ORDER[item.kind]))
    return obligations


def _obligation(resident: Resident, rotation: Rotation, kind: ObligationKind) -> Obligation:
    return Obligation(
        resident_id=resident.id,
        rotation_id=rotation.id,
        kind=kind,
        resident_name=resident.name,
        rotation_name=rotation.name,
    )
