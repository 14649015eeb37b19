"""Load catalog and evaluation records from JSON documents."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from importlib import resources
from pathlib import Path
from typing import Any

from .catalog import Catalog, EvaluationRecords
from .models import (
    INTERDISCIPLINARY_ROTATION_NAME,
    CompetencyRecord,
    ExamAttempt,
    PresentationRecord,
    Quiz,
    RequiredProcedure,
    Resident,
    Rotation,
)

logger = logging.getLogger(__name__)

CONTENT_PACKAGE = "residencytracker.content"
CATALOG_RESOURCE = "catalog.json"
RECORDS_RESOURCE = "records.json"


def _procedure_from_dict(rotation_id: str, raw: dict[str, Any]) -> RequiredProcedure:
    """Build a required procedure from raw JSON content."""
    procedure_id = str(raw["id"]).strip()
    goal_raw = raw.get("goal", 0)
    if isinstance(goal_raw, bool) or not isinstance(goal_raw, int):
        raise ValueError(f"Procedure '{procedure_id}' in rotation '{rotation_id}' has a non-integer goal.")
    if goal_raw < 0:
        raise ValueError(f"Procedure '{procedure_id}' in rotation '{rotation_id}' has a negative goal.")
    return RequiredProcedure(id=procedure_id, name=str(raw.get("name", procedure_id)), goal=goal_raw)


def _rotation_from_dict(raw: dict[str, Any]) -> Rotation:
    """Build a rotation from raw JSON content."""
    rotation_id = str(raw["id"]).strip()
    lead = str(raw.get("lead_teacher_id", "")).strip()
    if not lead:
        raise ValueError(f"Rotation '{rotation_id}' has no lead teacher.")
    procedures = [_procedure_from_dict(rotation_id, item) for item in raw.get("procedures", [])]
    _ensure_unique((procedure.id for procedure in procedures), f"procedure id in rotation '{rotation_id}'")
    participants = frozenset(
        str(item).strip() for item in raw.get("participating_teacher_ids", []) if str(item).strip()
    )
    return Rotation(
        id=rotation_id,
        name=str(raw["name"]),
        lead_teacher_id=lead,
        participating_teacher_ids=participants,
        procedures=tuple(procedures),
    )


def _resident_from_dict(raw: dict[str, Any]) -> Resident:
    return Resident(id=str(raw["id"]).strip(), name=str(raw["name"]), level=str(raw.get("level", "")))


def _quiz_from_dict(raw: dict[str, Any]) -> Quiz:
    rotation_name = str(raw.get("rotation_name", ""))
    interdisciplinary = bool(raw.get("interdisciplinary", False)) or rotation_name == INTERDISCIPLINARY_ROTATION_NAME
    return Quiz(
        id=str(raw["id"]).strip(),
        title=str(raw.get("title", "")),
        rotation_name=rotation_name,
        interdisciplinary=interdisciplinary,
    )


def _attempt_from_dict(raw: dict[str, Any]) -> ExamAttempt:
    return ExamAttempt(
        id=str(raw["id"]).strip(),
        quiz_id=str(raw["quiz_id"]).strip(),
        resident_id=str(raw["resident_id"]).strip(),
        state=str(raw.get("state", "")).strip().lower(),
    )


def _average(raw: dict[str, Any]) -> float | None:
    """Return the evaluation average; absent or null means not yet averaged."""
    value = raw.get("average")
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Evaluation '{raw.get('id')}' has a non-numeric average.")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Evaluation '{raw.get('id')}' has a non-numeric average.") from None


def _competency_from_dict(raw: dict[str, Any]) -> CompetencyRecord:
    return CompetencyRecord(
        id=str(raw["id"]).strip(),
        resident_id=str(raw["resident_id"]).strip(),
        rotation_id=str(raw["rotation_id"]).strip(),
        teacher_id=str(raw.get("teacher_id", "")).strip(),
        average=_average(raw),
    )


def _presentation_from_dict(raw: dict[str, Any]) -> PresentationRecord:
    return PresentationRecord(
        id=str(raw["id"]).strip(),
        resident_id=str(raw["resident_id"]).strip(),
        rotation_id=str(raw["rotation_id"]).strip(),
        teacher_id=str(raw.get("teacher_id", "")).strip(),
        average=_average(raw),
    )


def catalog_from_payload(raw: dict[str, Any]) -> Catalog:
    """Build and validate a catalog from a decoded JSON object."""
    rotations = [_rotation_from_dict(item) for item in raw.get("rotations", [])]
    residents = [_resident_from_dict(item) for item in raw.get("residents", [])]
    _ensure_unique((rotation.id for rotation in rotations), "rotation id")
    _ensure_unique((resident.id for resident in residents), "resident id")
    return Catalog.from_iterables(rotations, residents)


def records_from_payload(raw: dict[str, Any]) -> EvaluationRecords:
    """Build evaluation records from a decoded JSON object.

    Records may point at residents, rotations or quizzes that do not exist;
    those are kept and simply never match.
    """
    quizzes = [_quiz_from_dict(item) for item in raw.get("quizzes", [])]
    _ensure_unique((quiz.id for quiz in quizzes), "quiz id")
    return EvaluationRecords(
        quizzes=tuple(quizzes),
        attempts=tuple(_attempt_from_dict(item) for item in raw.get("attempts", [])),
        competencies=tuple(_competency_from_dict(item) for item in raw.get("competency_evaluations", [])),
        presentations=tuple(_presentation_from_dict(item) for item in raw.get("presentation_evaluations", [])),
    )


def load_catalog() -> Catalog:
    """Load the bundled sample catalog."""
    raw = _read_resource(CATALOG_RESOURCE)
    return catalog_from_payload(raw)


def load_records() -> EvaluationRecords:
    """Load the bundled sample evaluation records."""
    raw = _read_resource(RECORDS_RESOURCE)
    return records_from_payload(raw)


def load_catalog_from_file(path: Path | str) -> Catalog:
    """Load a catalog JSON file."""
    catalog = catalog_from_payload(_read_json_file(Path(path)))
    logger.info(
        "Loaded catalog from %s: %d rotations, %d residents", path, len(catalog.rotations), len(catalog.residents)
    )
    return catalog


def load_records_from_file(path: Path | str) -> EvaluationRecords:
    """Load an evaluation records JSON file."""
    records = records_from_payload(_read_json_file(Path(path)))
    logger.info(
        "Loaded records from %s: %d quizzes, %d attempts, %d competency, %d presentation",
        path,
        len(records.quizzes),
        len(records.attempts),
        len(records.competencies),
        len(records.presentations),
    )
    return records


def _read_resource(name: str) -> dict[str, Any]:
    entry = resources.files(CONTENT_PACKAGE).joinpath(name)
    raw = json.loads(entry.read_text(encoding="utf-8-sig"))
    if not isinstance(raw, dict):
        raise ValueError(f"Bundled resource '{name}' root must be a JSON object.")
    return raw


def _read_json_file(path: Path) -> dict[str, Any]:
    raw = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(raw, dict):
        raise ValueError(f"File '{path}' root must be a JSON object.")
    return raw


def _ensure_unique(ids: Iterable[str], label: str) -> None:
    """Raise on the first repeated id."""
    seen: set[str] = set()
    for item in ids:
        if item in seen:
            raise ValueError(f"Duplicate {label}: {item}")
        seen.add(item)
