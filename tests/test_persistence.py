from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

from s2_cognition.errors import ResultFetchError, ResultSaveError
from s2_cognition.persistence import SCHEMA_VERSION, SqliteResultRepository, open_db
from s2_cognition.results import ScoreComparison, Sport, SubtestScores, build_result


def _build(user: str, sport: Sport, on: date, scores: SubtestScores, prior=None):
    return build_result(
        user_id=user,
        sport=sport,
        scores=scores,
        prior=prior,
        today=on,
        completed_at=datetime(on.year, on.month, on.day, 18, 30, tzinfo=timezone.utc),
    )


def test_migration_sets_user_version(tmp_path) -> None:
    conn = open_db(tmp_path / "s2.sqlite3")
    try:
        assert conn.execute("PRAGMA user_version;").fetchone()[0] == SCHEMA_VERSION
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert "s2_diagnostic_result" in tables
    finally:
        conn.close()


def test_empty_store_has_no_latest(tmp_path) -> None:
    repo = SqliteResultRepository(tmp_path / "s2.sqlite3")
    assert repo.fetch_latest_result("u1", Sport.BASEBALL) is None


def test_insert_round_trips_and_assigns_id(tmp_path) -> None:
    repo = SqliteResultRepository(tmp_path / "s2.sqlite3")
    result = _build("u1", Sport.BASEBALL, date(2024, 1, 1), SubtestScores(80, 70, 90))

    saved = repo.insert_result(result)
    assert saved.id is not None
    assert replace(saved, id=None) == result
    assert saved.comparison_vs_prior == ScoreComparison()

    assert repo.fetch_latest_result("u1", Sport.BASEBALL) == saved


def test_latest_is_per_user_and_sport_and_newest_first(tmp_path) -> None:
    repo = SqliteResultRepository(tmp_path / "s2.sqlite3")
    first = repo.insert_result(_build("u1", Sport.BASEBALL, date(2024, 1, 1), SubtestScores(60, 70, 50)))
    second = repo.insert_result(
        _build("u1", Sport.BASEBALL, date(2024, 5, 1), SubtestScores(75, 65, 50), prior=first)
    )
    repo.insert_result(_build("u1", Sport.SOFTBALL, date(2024, 6, 1), SubtestScores(10, 10, 10)))
    repo.insert_result(_build("u2", Sport.BASEBALL, date(2024, 7, 1), SubtestScores(20, 20, 20)))

    latest = repo.fetch_latest_result("u1", Sport.BASEBALL)
    assert latest == second
    assert latest.comparison_vs_prior.processing_speed_change == 15
    assert latest.comparison_vs_prior.visual_motor_change == 0


def test_insert_rejects_persisted_or_incomplete_results(tmp_path) -> None:
    repo = SqliteResultRepository(tmp_path / "s2.sqlite3")
    result = _build("u1", Sport.BASEBALL, date(2024, 1, 1), SubtestScores(80, 70, 90))
    with pytest.raises(ValueError):
        repo.insert_result(replace(result, id=7))
    with pytest.raises(ValueError):
        repo.insert_result(replace(result, completed_at=None))


def test_unreadable_store_raises_fetch_error(tmp_path) -> None:
    # A directory cannot be opened as a database file.
    repo = SqliteResultRepository(tmp_path)
    with pytest.raises(ResultFetchError) as excinfo:
        repo.fetch_latest_result("u1", Sport.BASEBALL)
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_unwritable_store_raises_save_error(tmp_path) -> None:
    repo = SqliteResultRepository(tmp_path)
    result = _build("u1", Sport.BASEBALL, date(2024, 1, 1), SubtestScores(80, 70, 90))
    with pytest.raises(ResultSaveError):
        repo.insert_result(result)
