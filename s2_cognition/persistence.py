from __future__ import annotations

import logging
import sqlite3
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

from .errors import ResultFetchError, ResultSaveError
from .results import DiagnosticResult, ScoreComparison, Sport

SCHEMA_VERSION = 1

logger = logging.getLogger(__name__)


class ResultRepository(Protocol):
    """Read/write contract the diagnostic needs from its result store."""

    def fetch_latest_result(self, user_id: str, sport: Sport) -> DiagnosticResult | None: ...

    def insert_result(self, result: DiagnosticResult) -> DiagnosticResult: ...


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS s2_diagnostic_result (
                id INTEGER PRIMARY KEY,
                user_id TEXT NOT NULL,
                sport TEXT NOT NULL,
                test_date TEXT NOT NULL,
                processing_speed_score INTEGER,
                decision_efficiency_score INTEGER,
                visual_motor_score INTEGER,
                overall_score INTEGER,
                has_comparison INTEGER NOT NULL DEFAULT 0,
                processing_speed_change INTEGER,
                decision_efficiency_change INTEGER,
                visual_motor_change INTEGER,
                overall_change INTEGER,
                next_test_date TEXT,
                completed_at_utc TEXT,
                created_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_s2_result_user_sport_date "
            "ON s2_diagnostic_result(user_id, sport, test_date);"
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


def _iso_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _row_to_result(row: sqlite3.Row) -> DiagnosticResult:
    comparison = None
    if int(row["has_comparison"]):
        comparison = ScoreComparison(
            processing_speed_change=row["processing_speed_change"],
            decision_efficiency_change=row["decision_efficiency_change"],
            visual_motor_change=row["visual_motor_change"],
            overall_change=row["overall_change"],
        )
    next_test = row["next_test_date"]
    completed = row["completed_at_utc"]
    return DiagnosticResult(
        id=int(row["id"]),
        user_id=str(row["user_id"]),
        sport=Sport(row["sport"]),
        test_date=date.fromisoformat(row["test_date"]),
        processing_speed_score=row["processing_speed_score"],
        decision_efficiency_score=row["decision_efficiency_score"],
        visual_motor_score=row["visual_motor_score"],
        overall_score=row["overall_score"],
        comparison_vs_prior=comparison,
        next_test_date=None if next_test is None else date.fromisoformat(next_test),
        completed_at=None if completed is None else datetime.fromisoformat(completed),
    )


class SqliteResultRepository:
    """Append-only result store; each call opens and closes its own connection."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def fetch_latest_result(self, user_id: str, sport: Sport) -> DiagnosticResult | None:
        try:
            conn = open_db(self._path)
            try:
                row = conn.execute(
                    """
                    SELECT * FROM s2_diagnostic_result
                    WHERE user_id = ? AND sport = ? AND completed_at_utc IS NOT NULL
                    ORDER BY test_date DESC, id DESC
                    LIMIT 1
                    """,
                    (str(user_id), str(Sport(sport).value)),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Fetching latest S2 result failed for %s/%s: %s", user_id, sport, exc)
            raise ResultFetchError(f"could not read latest result: {exc}") from exc

        return None if row is None else _row_to_result(row)

    def insert_result(self, result: DiagnosticResult) -> DiagnosticResult:
        if result.id is not None:
            raise ValueError("result is already persisted")
        if not result.is_complete():
            raise ValueError("only completed results can be recorded")
        assert result.completed_at is not None

        try:
            conn = open_db(self._path)
            try:
                result_id = _insert_result(conn=conn, result=result)
                row = conn.execute("SELECT * FROM s2_diagnostic_result WHERE id = ?", (result_id,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Saving S2 result failed for %s/%s: %s", result.user_id, result.sport, exc)
            raise ResultSaveError(f"could not save result: {exc}") from exc

        logger.info("Recorded S2 result %s for %s/%s", result_id, result.user_id, result.sport)
        return _row_to_result(row)


def _insert_result(*, conn: sqlite3.Connection, result: DiagnosticResult) -> int:
    assert result.completed_at is not None
    comparison = result.comparison_vs_prior

    with conn:
        cur = conn.execute(
            """
            INSERT INTO s2_diagnostic_result(
                user_id, sport, test_date,
                processing_speed_score, decision_efficiency_score, visual_motor_score, overall_score,
                has_comparison,
                processing_speed_change, decision_efficiency_change, visual_motor_change, overall_change,
                next_test_date, completed_at_utc, created_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(result.user_id),
                str(Sport(result.sport).value),
                result.test_date.isoformat(),
                result.processing_speed_score,
                result.decision_efficiency_score,
                result.visual_motor_score,
                result.overall_score,
                0 if comparison is None else 1,
                None if comparison is None else comparison.processing_speed_change,
                None if comparison is None else comparison.decision_efficiency_change,
                None if comparison is None else comparison.visual_motor_change,
                None if comparison is None else comparison.overall_change,
                None if result.next_test_date is None else result.next_test_date.isoformat(),
                _iso_utc(result.completed_at),
                _utc_now_iso(),
            ),
        )
        return int(cur.lastrowid)
