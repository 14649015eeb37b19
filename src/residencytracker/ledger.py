"""SQLite-backed procedure ledger with supervisor batch validation."""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from .catalog import Catalog
from .errors import NotFoundError
from .models import ProcedureLogRow, Rotation

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

_ROW_COLUMNS = """
    resident_id,
    rotation_id,
    procedure_id,
    logged_count,
    validated_count,
    first_logged_at,
    last_logged_at,
    validated_at
"""


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one batch validation."""

    resident_id: str
    rotation_id: str
    validated_rows: int


@dataclass(frozen=True)
class ValidationEvent:
    """History entry written when a validation changed at least one row."""

    id: int
    resident_id: str
    rotation_id: str
    validated_by: str | None
    validated_rows: int
    created_at: str


class ProcedureLedger:
    """Per-(resident, rotation, procedure) counters and their validation state.

    Every mutation is one SQL statement run in its own transaction, so the
    database applies the increment or the validation copy atomically per row.
    The lock only guards the shared connection handle.
    """

    def __init__(self, db_path: Path | str, catalog: Catalog) -> None:
        """Open the database, apply migrations and bind the catalog."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self.catalog = catalog
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(target, timeout=10, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            elif version == 2:
                self._migrate_to_v2()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, _now()),
                )
            logger.info("Ledger schema migrated to version %d", version)

    def _migrate_to_v1(self) -> None:
        """Create the aggregate procedure counter table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS procedure_log (
                    resident_id TEXT NOT NULL,
                    rotation_id TEXT NOT NULL,
                    procedure_id TEXT NOT NULL,
                    logged_count INTEGER NOT NULL CHECK (logged_count >= 0),
                    validated_count INTEGER NOT NULL DEFAULT 0 CHECK (validated_count >= 0),
                    first_logged_at TEXT NOT NULL,
                    last_logged_at TEXT NOT NULL,
                    validated_at TEXT,
                    PRIMARY KEY (resident_id, rotation_id, procedure_id),
                    CHECK (validated_count <= logged_count)
                )
                """)

    def _migrate_to_v2(self) -> None:
        """Add the validation history table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS validation_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    resident_id TEXT NOT NULL,
                    rotation_id TEXT NOT NULL,
                    validated_by TEXT,
                    validated_rows INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
                """)

    def _require_rotation(self, resident_id: str, rotation_id: str) -> Rotation:
        if self.catalog.get_resident(resident_id) is None:
            raise NotFoundError("resident", resident_id)
        rotation = self.catalog.get_rotation(rotation_id)
        if rotation is None:
            raise NotFoundError("rotation", rotation_id)
        return rotation

    def log_procedure(self, resident_id: str, rotation_id: str, procedure_id: str) -> ProcedureLogRow:
        """Count one more performance of a procedure and return the updated row.

        The first call for a key creates the row with a count of one. Each call
        is a new performance; retrying a call that succeeded counts twice.
        """
        rotation = self._require_rotation(resident_id, rotation_id)
        if rotation.procedure(procedure_id) is None:
            raise NotFoundError("procedure", procedure_id)

        now = _now()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO procedure_log (
                    resident_id,
                    rotation_id,
                    procedure_id,
                    logged_count,
                    validated_count,
                    first_logged_at,
                    last_logged_at,
                    validated_at
                )
                VALUES (?, ?, ?, 1, 0, ?, ?, NULL)
                ON CONFLICT(resident_id, rotation_id, procedure_id) DO UPDATE SET
                    logged_count = procedure_log.logged_count + 1,
                    last_logged_at = excluded.last_logged_at
                """,
                (resident_id, rotation_id, procedure_id, now, now),
            )
            # Still inside the upsert's transaction: this is the post-increment value.
            stored = self._select_row(resident_id, rotation_id, procedure_id)
        if stored is None:
            raise RuntimeError(f"Ledger row {resident_id}/{rotation_id}/{procedure_id} missing after upsert.")
        row = _row_from_db(stored)
        logger.debug(
            "Logged %s for %s in %s: count=%d validated=%d",
            procedure_id,
            resident_id,
            rotation_id,
            row.count,
            row.validated_count,
        )
        return row

    def _select_row(self, resident_id: str, rotation_id: str, procedure_id: str) -> sqlite3.Row | None:
        """Read one stored row; the caller holds the lock."""
        return self._conn.execute(
            f"""
            SELECT {_ROW_COLUMNS}
            FROM procedure_log
            WHERE resident_id = ? AND rotation_id = ? AND procedure_id = ?
            """,
            (resident_id, rotation_id, procedure_id),
        ).fetchone()

    def get_row(self, resident_id: str, rotation_id: str, procedure_id: str) -> ProcedureLogRow:
        """Return one row, or the zero row when nothing was logged yet."""
        rotation = self._require_rotation(resident_id, rotation_id)
        if rotation.procedure(procedure_id) is None:
            raise NotFoundError("procedure", procedure_id)
        with self._lock:
            row = self._select_row(resident_id, rotation_id, procedure_id)
        if row is None:
            return ProcedureLogRow(resident_id=resident_id, rotation_id=rotation_id, procedure_id=procedure_id)
        return _row_from_db(row)

    def get_progress(self, resident_id: str, rotation_id: str) -> dict[str, ProcedureLogRow]:
        """Return one row per required procedure of the rotation, in rotation order."""
        rotation = self._require_rotation(resident_id, rotation_id)
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT {_ROW_COLUMNS}
                FROM procedure_log
                WHERE resident_id = ? AND rotation_id = ?
                """,
                (resident_id, rotation_id),
            ).fetchall()
        stored = {str(row["procedure_id"]): _row_from_db(row) for row in rows}
        return {
            procedure.id: stored.get(
                procedure.id,
                ProcedureLogRow(resident_id=resident_id, rotation_id=rotation_id, procedure_id=procedure.id),
            )
            for procedure in rotation.procedures
        }

    def list_rows(self, resident_id: str | None = None, rotation_id: str | None = None) -> list[ProcedureLogRow]:
        """Return stored rows, optionally filtered, ordered by key."""
        clauses: list[str] = []
        params: list[str] = []
        if resident_id is not None:
            clauses.append("resident_id = ?")
            params.append(resident_id)
        if rotation_id is not None:
            clauses.append("rotation_id = ?")
            params.append(rotation_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT {_ROW_COLUMNS}
                FROM procedure_log
                {where}
                ORDER BY resident_id, rotation_id, procedure_id
                """,
                params,
            ).fetchall()
        return [_row_from_db(row) for row in rows]

    def validate_all(
        self, resident_id: str, rotation_id: str, validated_by: str | None = None
    ) -> ValidationResult:
        """Confirm every pending count logged by a resident in a rotation.

        Each row gets `validated_count = logged_count` as committed when the
        update runs. Rows already validated are left untouched, so calling
        this twice in a row changes nothing the second time. A pair without
        rows validates zero rows.
        """
        now = _now()
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE procedure_log
                SET validated_count = logged_count, validated_at = ?
                WHERE resident_id = ? AND rotation_id = ? AND validated_count < logged_count
                """,
                (now, resident_id, rotation_id),
            )
            validated_rows = max(0, cursor.rowcount)
            if validated_rows:
                self._conn.execute(
                    """
                    INSERT INTO validation_events (resident_id, rotation_id, validated_by, validated_rows, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (resident_id, rotation_id, validated_by, validated_rows, now),
                )
        logger.info(
            "Validated %d row(s) for %s in %s (by %s)",
            validated_rows,
            resident_id,
            rotation_id,
            validated_by or "unknown",
        )
        return ValidationResult(resident_id=resident_id, rotation_id=rotation_id, validated_rows=validated_rows)

    def list_validation_events(self, resident_id: str, rotation_id: str) -> list[ValidationEvent]:
        """Return validation history for a pair, oldest first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, resident_id, rotation_id, validated_by, validated_rows, created_at
                FROM validation_events
                WHERE resident_id = ? AND rotation_id = ?
                ORDER BY id ASC
                """,
                (resident_id, rotation_id),
            ).fetchall()
        return [
            ValidationEvent(
                id=int(row["id"]),
                resident_id=str(row["resident_id"]),
                rotation_id=str(row["rotation_id"]),
                validated_by=str(row["validated_by"]) if row["validated_by"] is not None else None,
                validated_rows=int(row["validated_rows"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def _row_from_db(row: sqlite3.Row) -> ProcedureLogRow:
    return ProcedureLogRow(
        resident_id=str(row["resident_id"]),
        rotation_id=str(row["rotation_id"]),
        procedure_id=str(row["procedure_id"]),
        count=int(row["logged_count"]),
        validated_count=int(row["validated_count"]),
        first_logged_at=str(row["first_logged_at"]),
        last_logged_at=str(row["last_logged_at"]),
        validated_at=str(row["validated_at"]) if row["validated_at"] is not None else None,
    )


def _now() -> str:
    return datetime.now(UTC).isoformat()
