import json
from pathlib import Path
from typing import Any

from residencytracker.catalog_loader import (
    catalog_from_payload,
    load_catalog,
    load_catalog_from_file,
    load_records,
    load_records_from_file,
    records_from_payload,
)


def _rotation(rotation_id: str = "ROT", **overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "id": rotation_id,
        "name": "Radiología I",
        "lead_teacher_id": "T1",
        "participating_teacher_ids": ["T2", " ", "T3"],
        "procedures": [{"id": "P1", "name": "Punción", "goal": 10}],
    }
    raw.update(overrides)
    return raw


def _expect_value_error(payload: dict[str, Any], fragment: str) -> None:
    try:
        catalog_from_payload(payload)
        raise AssertionError(f"Expected ValueError containing '{fragment}'.")
    except ValueError as exc:
        assert fragment in str(exc)


def test_bundled_catalog_loads() -> None:
    catalog = load_catalog()
    rotation = catalog.get_rotation("ROT-RAD1")
    assert rotation is not None
    assert rotation.name == "Radiología I"
    punction = rotation.procedure("PROC-PUNC")
    assert punction is not None
    assert punction.goal == 10
    assert len(catalog.list_residents()) == 3


def test_bundled_records_load_and_flag_interdisciplinary_quiz() -> None:
    records = load_records()
    quizzes = {quiz.id: quiz for quiz in records.list_quizzes()}
    assert quizzes["Q-INTER"].interdisciplinary is True
    assert quizzes["Q-RAD1"].interdisciplinary is False
    assert {attempt.state for attempt in records.list_attempts()} == {"submitted", "pending_review", "draft"}


def test_rotation_fields_are_normalized() -> None:
    catalog = catalog_from_payload({"rotations": [_rotation()], "residents": []})
    rotation = catalog.list_rotations()[0]
    assert rotation.participating_teacher_ids == frozenset({"T2", "T3"})
    assert rotation.involves("T1") is True
    assert rotation.involves("T3") is True
    assert rotation.involves("T9") is False


def test_duplicate_rotation_id_raises() -> None:
    _expect_value_error({"rotations": [_rotation("A"), _rotation("A")]}, "Duplicate rotation id: A")


def test_duplicate_resident_id_raises() -> None:
    residents = [{"id": "R1", "name": "A"}, {"id": "R1", "name": "B"}]
    _expect_value_error({"residents": residents}, "Duplicate resident id: R1")


def test_duplicate_procedure_id_raises() -> None:
    procedures = [{"id": "P", "goal": 1}, {"id": "P", "goal": 2}]
    _expect_value_error({"rotations": [_rotation(procedures=procedures)]}, "Duplicate procedure id in rotation 'ROT'")


def test_negative_goal_raises() -> None:
    _expect_value_error({"rotations": [_rotation(procedures=[{"id": "P", "goal": -1}])]}, "negative goal")


def test_non_integer_goal_raises() -> None:
    for goal in (2.5, "3", True):
        _expect_value_error({"rotations": [_rotation(procedures=[{"id": "P", "goal": goal}])]}, "non-integer goal")


def test_rotation_without_lead_teacher_raises() -> None:
    _expect_value_error({"rotations": [_rotation(lead_teacher_id="  ")]}, "no lead teacher")


def test_records_keep_dangling_references_and_normalize_state() -> None:
    records = records_from_payload(
        {
            "quizzes": [{"id": "Q", "title": "T", "rotation_name": "Gone"}],
            "attempts": [{"id": "A", "quiz_id": "Q-MISSING", "resident_id": "R", "state": " Submitted "}],
            "competency_evaluations": [{"id": "C", "resident_id": "R", "rotation_id": "X", "average": "6.5"}],
            "presentation_evaluations": [{"id": "P", "resident_id": "R", "rotation_id": "X", "average": None}],
        }
    )
    assert records.list_attempts()[0].state == "submitted"
    assert records.list_attempts()[0].qualifies is True
    assert records.list_competencies()[0].average == 6.5
    assert records.list_presentations()[0].average is None


def test_malformed_average_raises() -> None:
    for average in ("n/a", True, [6.0]):
        payload = {"competency_evaluations": [{"id": "C9", "resident_id": "R", "rotation_id": "X", "average": average}]}
        try:
            records_from_payload(payload)
            raise AssertionError(f"Expected ValueError for average {average!r}.")
        except ValueError as exc:
            assert "Evaluation 'C9' has a non-numeric average." in str(exc)


def test_duplicate_quiz_id_raises() -> None:
    try:
        records_from_payload({"quizzes": [{"id": "Q"}, {"id": "Q"}]})
        raise AssertionError("Expected ValueError for duplicate quiz ids.")
    except ValueError as exc:
        assert "Duplicate quiz id: Q" in str(exc)


def test_load_from_files(tmp_path: Path) -> None:
    catalog_path = tmp_path / "catalog.json"
    records_path = tmp_path / "records.json"
    catalog_path.write_text(
        json.dumps({"rotations": [_rotation()], "residents": [{"id": "R", "name": "Ana", "level": "R1"}]}),
        encoding="utf-8",
    )
    records_path.write_text(json.dumps({"quizzes": [], "attempts": []}), encoding="utf-8")

    catalog = load_catalog_from_file(catalog_path)
    records = load_records_from_file(str(records_path))
    resident = catalog.get_resident("R")
    assert resident is not None
    assert resident.level == "R1"
    assert records.list_quizzes() == []


def test_file_root_must_be_object(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("[]", encoding="utf-8")
    try:
        load_catalog_from_file(path)
        raise AssertionError("Expected ValueError for non-object root.")
    except ValueError as exc:
        assert "root must be a JSON object" in str(exc)
