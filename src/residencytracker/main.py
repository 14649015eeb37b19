"""CLI entrypoint for the residency procedure and evaluation tracker."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TypeVar

from . import __version__
from .catalog_loader import load_catalog_from_file, load_records_from_file
from .errors import TrackerError
from .models import ObligationKind, ViewerScope
from .service import RotationProgress, TrackerService

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}
DB_ENV_VAR = "RESIDENCYTRACKER_DB"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

T = TypeVar("T")

_KIND_LABELS = {
    ObligationKind.COMPETENCY: "competency evaluation",
    ObligationKind.PRESENTATION: "presentation evaluation",
}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def default_db_path() -> Path:
    """Return the ledger database path from the environment or the working directory."""
    configured = os.environ.get(DB_ENV_VAR, "").strip()
    if configured:
        return Path(configured)
    return Path(".residencytracker") / "ledger.db"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="residencytracker",
        description="Procedure logging, validation and pending evaluations for residency rotations",
    )
    parser.add_argument("command", nargs="?", default="shell", choices=["shell"])
    parser.add_argument(
        "--db", type=Path, default=None, help=f"ledger database (default: ${DB_ENV_VAR} or .residencytracker/ledger.db)"
    )
    parser.add_argument("--catalog", type=Path, default=None, help="rotations/residents JSON (default: bundled)")
    parser.add_argument("--records", type=Path, default=None, help="quizzes/attempts/evaluations JSON")
    parser.add_argument("--log-level", default="WARNING", choices=LOG_LEVELS)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _service(args: argparse.Namespace) -> TrackerService:
    """Create app service from parsed command line options."""
    catalog = load_catalog_from_file(args.catalog) if args.catalog is not None else None
    records = load_records_from_file(args.records) if args.records is not None else None
    db_path = args.db if args.db is not None else default_db_path()
    return TrackerService(db_path=db_path, catalog=catalog, records=records)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    try:
        service = _service(args)
    except (ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    return shell(service)


def shell(service: TrackerService, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run persistent menu-driven shell."""
    try:
        while True:
            print_fn("\n=== Residency Tracker ===")
            print_fn("1) Log procedure (resident)")
            print_fn("2) Rotation progress")
            print_fn("3) Validate procedures (supervisor)")
            print_fn("4) Pending evaluations")
            print_fn("q) Quit")
            choice = input_fn("Choose: ").strip().lower()

            try:
                if choice == "1":
                    _log_flow(service, input_fn, print_fn)
                elif choice == "2":
                    _progress_flow(service, input_fn, print_fn)
                elif choice == "3":
                    _validate_flow(service, input_fn, print_fn)
                elif choice == "4":
                    _pending_flow(service, input_fn, print_fn)
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
            except (TrackerError, ValueError) as exc:
                print_fn(f"Error: {exc}")
    except QuitApp:
        return 0
    finally:
        service.close()


def _choose(
    items: Sequence[T],
    label: Callable[[T], str],
    title: str,
    input_fn: InputFn,
    print_fn: PrintFn,
) -> T | None:
    """Pick one item from a numbered list; None means back."""
    if not items:
        print_fn(f"No {title.lower()} available.")
        return None
    while True:
        print_fn(f"\n{title}:")
        for idx, item in enumerate(items, start=1):
            print_fn(f"{idx}) {label(item)}")
        print_fn("b) Back")
        choice = input_fn(f"Select {title.lower()}: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return None
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(items):
                return items[index]
        print_fn("Invalid choice.")


def _choose_pair(service: TrackerService, input_fn: InputFn, print_fn: PrintFn) -> tuple[str, str] | None:
    """Pick a resident and then a rotation."""
    resident = _choose(
        service.list_residents(), lambda item: f"{item.name} ({item.level})", "Resident", input_fn, print_fn
    )
    if resident is None:
        return None
    rotation = _choose(service.list_rotations(), lambda item: item.name, "Rotation", input_fn, print_fn)
    if rotation is None:
        return None
    return (resident.id, rotation.id)


def _log_flow(service: TrackerService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Log one performed procedure for a resident."""
    pair = _choose_pair(service, input_fn, print_fn)
    if pair is None:
        return
    resident_id, rotation_id = pair
    rotation = service.catalog.get_rotation(rotation_id)
    if rotation is None:
        return
    procedure = _choose(
        list(rotation.procedures), lambda item: f"{item.name} (goal {item.goal})", "Procedure", input_fn, print_fn
    )
    if procedure is None:
        return
    row = service.log_procedure(resident_id, rotation_id, procedure.id)
    print_fn(f"Logged {procedure.name}: {row.count} total, {row.validated_count} validated.")


def _progress_flow(service: TrackerService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Print procedure progress for a resident in a rotation."""
    pair = _choose_pair(service, input_fn, print_fn)
    if pair is None:
        return
    _print_progress(service.rotation_progress(*pair), print_fn)


def _print_progress(progress: RotationProgress, print_fn: PrintFn) -> None:
    print_fn(f"\n=== {progress.resident.name} / {progress.rotation.name} ===")
    if not progress.procedures:
        print_fn("This rotation has no required procedures.")
        return
    rows: list[tuple[str, str, str, str, str]] = []
    for item in progress.procedures:
        rows.append(
            (
                item.procedure.name,
                f"{item.row.count}/{item.procedure.goal}",
                str(item.row.validated_count),
                f"{item.view.validated_pct:.0f}% + {item.view.pending_pct:.0f}%",
                "complete" if item.view.complete else item.state.value,
            )
        )
    headers = ("Procedure", "Logged", "Validated", "Progress", "State")
    widths = [max(len(headers[col]), max(len(row[col]) for row in rows)) for col in range(len(headers))]
    print_fn(" ".join(f"{headers[col]:<{widths[col]}}" for col in range(len(headers))))
    print_fn(" ".join("-" * width for width in widths))
    for row in rows:
        print_fn(" ".join(f"{row[col]:<{widths[col]}}" for col in range(len(headers))))
    summary = progress.summary
    print_fn(f"Overall: {summary.validated_pct:.0f}% validated, {summary.pending_pct:.0f}% pending validation")


def _validate_flow(service: TrackerService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Validate every pending count for a resident in a rotation."""
    supervisor = input_fn("Supervisor id: ").strip()
    if not supervisor:
        print_fn("Supervisor id is required.")
        return
    pair = _choose_pair(service, input_fn, print_fn)
    if pair is None:
        return
    result = service.validate_all(pair[0], pair[1], validated_by=supervisor)
    if result.validated_rows == 0:
        print_fn("Nothing pending validation.")
    else:
        print_fn(f"Validated {result.validated_rows} procedure row(s).")


def _pending_flow(service: TrackerService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """List missing evaluations for a teacher, or for every rotation."""
    teacher_id = input_fn("Teacher id (blank = all rotations): ").strip()
    scope = ViewerScope.teacher(teacher_id) if teacher_id else ViewerScope.admin()
    obligations = service.pending_evaluations(scope)
    print_fn("\n=== Pending Evaluations ===")
    if not obligations:
        print_fn("No pending evaluations.")
        return
    for item in obligations:
        print_fn(f"- {item.resident_name} / {item.rotation_name}: {_KIND_LABELS[item.kind]} missing")
    print_fn(f"Total: {len(obligations)}")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
