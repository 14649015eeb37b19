"""Percentage view of ledger rows against procedure goals."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import ProcedureLogRow


@dataclass(frozen=True)
class ProgressView:
    """Normalized progress bar segments, in percent."""

    validated_pct: float
    pending_pct: float
    remaining_pct: float
    complete: bool


def project(row: ProcedureLogRow, goal: int) -> ProgressView:
    """Project one row onto its goal.

    The validated segment is capped at 100 and the pending segment only fills
    what the validated one leaves. A zero goal counts as already complete with
    empty segments.
    """
    if goal <= 0:
        return ProgressView(validated_pct=0.0, pending_pct=0.0, remaining_pct=0.0, complete=True)
    return _segments(row.validated_count, row.count - row.validated_count, goal)


def summarize(rows_with_goals: Iterable[tuple[ProcedureLogRow, int]]) -> ProgressView:
    """Aggregate several rows into one view, counting at most `goal` per row.

    Logging far past one procedure's goal does not make up for another
    procedure that is still short.
    """
    total_goal = 0
    validated = 0
    pending = 0
    for row, goal in rows_with_goals:
        if goal <= 0:
            continue
        capped_validated = min(row.validated_count, goal)
        total_goal += goal
        validated += capped_validated
        pending += min(row.count - row.validated_count, goal - capped_validated)
    if total_goal == 0:
        return ProgressView(validated_pct=0.0, pending_pct=0.0, remaining_pct=0.0, complete=True)
    return _segments(validated, pending, total_goal)


def _segments(validated: int, pending: int, goal: int) -> ProgressView:
    validated_pct = _clamp(validated * 100 / goal)
    pending_pct = _clamp(min(100.0 - validated_pct, pending * 100 / goal))
    remaining_pct = _clamp(100.0 - validated_pct - pending_pct)
    return ProgressView(
        validated_pct=validated_pct,
        pending_pct=pending_pct,
        remaining_pct=remaining_pct,
        complete=validated >= goal,
    )


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))
