from residencytracker.models import ProcedureLogRow
from residencytracker.projector import ProgressView, project, summarize


def _row(count: int, validated: int) -> ProcedureLogRow:
    return ProcedureLogRow(resident_id="R", rotation_id="ROT", procedure_id="P", count=count, validated_count=validated)


def test_untouched_row_is_all_remaining() -> None:
    view = project(_row(0, 0), 10)
    assert view == ProgressView(validated_pct=0.0, pending_pct=0.0, remaining_pct=100.0, complete=False)


def test_pending_and_validated_segments() -> None:
    assert project(_row(3, 0), 10) == ProgressView(0.0, 30.0, 70.0, False)
    assert project(_row(3, 3), 10) == ProgressView(30.0, 0.0, 70.0, False)
    assert project(_row(5, 3), 10) == ProgressView(30.0, 20.0, 50.0, False)


def test_validated_segment_caps_at_one_hundred() -> None:
    view = project(_row(14, 12), 10)
    assert view.validated_pct == 100.0
    assert view.pending_pct == 0.0
    assert view.remaining_pct == 0.0
    assert view.complete is True


def test_pending_only_fills_what_validation_leaves() -> None:
    view = project(_row(15, 8), 10)
    assert view.validated_pct == 80.0
    assert view.pending_pct == 20.0
    assert view.complete is False


def test_pending_alone_never_completes() -> None:
    view = project(_row(40, 0), 10)
    assert view.pending_pct == 100.0
    assert view.complete is False


def test_zero_goal_is_complete_without_segments() -> None:
    view = project(_row(2, 1), 0)
    assert view == ProgressView(validated_pct=0.0, pending_pct=0.0, remaining_pct=0.0, complete=True)


def test_segments_stay_within_bounds() -> None:
    for goal in (1, 3, 7, 10):
        for count in range(0, 15):
            for validated in range(0, count + 1):
                view = project(_row(count, validated), goal)
                assert 0.0 <= view.validated_pct <= 100.0
                assert 0.0 <= view.pending_pct <= 100.0 - view.validated_pct
                assert 0.0 <= view.remaining_pct <= 100.0


def test_summarize_caps_each_procedure_at_its_goal() -> None:
    # 10 validated on a goal of 5 only counts as 5 out of the total 10.
    view = summarize([(_row(10, 10), 5), (_row(0, 0), 5)])
    assert view.validated_pct == 50.0
    assert view.pending_pct == 0.0
    assert view.complete is False


def test_summarize_mixes_pending_and_validated() -> None:
    view = summarize([(_row(3, 3), 10), (_row(4, 0), 10)])
    assert view.validated_pct == 15.0
    assert view.pending_pct == 20.0
    assert view.remaining_pct == 65.0


def test_summarize_ignores_zero_goals_and_handles_empty() -> None:
    assert summarize([]).complete is True
    assert summarize([(_row(1, 0), 0)]).complete is True
    view = summarize([(_row(2, 2), 0), (_row(2, 2), 2)])
    assert view.validated_pct == 100.0
    assert view.complete is True
