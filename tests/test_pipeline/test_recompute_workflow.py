"""
Tests for pipeline/recompute.py and pipeline/batch.py.

Covers:
  - Interactive and batch recompute store identical results for identical data
  - Both match compute_score() over the same inputs
  - Per-user failure isolation: partial / failed / empty sweeps
  - RunMetadata persisted with error counts
  - ensure_fresh(): missing → compute, fresh → reuse, stale → recompute
  - Workflow state transitions (stale → computing → fresh), including
    overlapping recomputes of the same user
  - Governance from stored score or neutral default
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from habit_integrity.config import AppConfig, DatabaseConfig, LoggingConfig, ScoringConfig
from habit_integrity.db.connection import get_connection
from habit_integrity.db.repositories.integrity_repo import IntegrityRepository
from habit_integrity.db.repositories.log_repo import HabitLogRepository
from habit_integrity.db.repositories.run_repo import RunMetadataRepository
from habit_integrity.governance.freshness import RecomputeState
from habit_integrity.governance.policy import governance_for
from habit_integrity.models.inputs import InputValidationError
from habit_integrity.pipeline import recompute as recompute_module
from habit_integrity.pipeline.batch import BatchRecompute
from habit_integrity.pipeline.recompute import InteractiveRecompute
from habit_integrity.scenarios import SCENARIO_WINDOW_DAYS, build_scenarios, load_scenarios
from habit_integrity.scoring.engine import compute_score

SCENARIO_END = date(2024, 6, 30)
AS_OF = datetime(2024, 6, 30, 18, 0, tzinfo=timezone.utc)
COMPUTED_AT = datetime(2024, 6, 30, 19, 0, tzinfo=timezone.utc)


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def scenario_config(file_db) -> AppConfig:
    """AppConfig whose scoring window matches the synthetic scenarios."""
    return AppConfig(
        database=DatabaseConfig(db_path=file_db),
        logging=LoggingConfig(log_file=""),
        scoring=ScoringConfig(window_days=SCENARIO_WINDOW_DAYS),
    )


@pytest.fixture
def scenario_users(file_db) -> list[str]:
    with get_connection(DatabaseConfig(db_path=file_db)) as conn:
        return load_scenarios(conn, build_scenarios(seed=42, end=SCENARIO_END))


def _stored(db_path: str, user_id: str):
    with get_connection(DatabaseConfig(db_path=db_path)) as conn:
        return IntegrityRepository(conn).get(user_id)


def _insert_bad_user(db_path: str, user_id: str = "bad-user") -> None:
    with get_connection(DatabaseConfig(db_path=db_path)) as conn:
        repo = HabitLogRepository(conn)
        for day in range(20, 27):
            repo.insert_raw_log(user_id, f"2024-06-{day}", 10.0)
        repo.insert_raw_log(user_id, "2024-06-27", -3.0)


# ── Interactive vs batch ──────────────────────────────────────────────────────


def test_interactive_and_batch_store_identical_results(scenario_config, scenario_users) -> None:
    db_path = scenario_config.database.db_path
    interactive = InteractiveRecompute(scenario_config)
    interactive_results = {
        uid: interactive.recompute(uid, as_of=AS_OF, computed_at=COMPUTED_AT)
        for uid in scenario_users
    }

    with get_connection(DatabaseConfig(db_path=db_path)) as conn:
        conn.execute("DELETE FROM habit_integrity;")

    stage = BatchRecompute(scenario_config)
    batch_results = stage.recompute_all(as_of=AS_OF, computed_at=COMPUTED_AT)

    assert [r.user_id for r in batch_results] == sorted(scenario_users)
    assert all(r.ok for r in batch_results)
    for uid in scenario_users:
        stored = _stored(db_path, uid)
        assert stored == interactive_results[uid]
        assert stored.content_hash() == interactive_results[uid].content_hash()


def test_stored_scores_match_direct_computation(scenario_config, scenario_users) -> None:
    BatchRecompute(scenario_config).recompute_all(as_of=AS_OF, computed_at=COMPUTED_AT)

    for scenario in build_scenarios(seed=42, end=SCENARIO_END):
        direct = compute_score(scenario.inputs, scenario_config.scoring, computed_at=COMPUTED_AT)
        stored = _stored(scenario_config.database.db_path, f"scenario-{scenario.name}")
        assert stored.content_hash() == direct.content_hash(), scenario.name


def test_batch_repeat_is_idempotent(scenario_config, scenario_users) -> None:
    stage = BatchRecompute(scenario_config)
    first = stage.recompute_all(as_of=AS_OF, computed_at=COMPUTED_AT)
    second = stage.recompute_all(as_of=AS_OF, computed_at=COMPUTED_AT)
    assert first == second


# ── Batch failure isolation ───────────────────────────────────────────────────


def test_one_bad_user_gives_partial_run(scenario_config, scenario_users) -> None:
    db_path = scenario_config.database.db_path
    _insert_bad_user(db_path)

    stage = BatchRecompute(scenario_config)
    results = stage.recompute_all(as_of=AS_OF, computed_at=COMPUTED_AT)

    by_user = {r.user_id: r for r in results}
    assert by_user["bad-user"].status == "error"
    assert "amount" in by_user["bad-user"].error
    assert all(by_user[uid].ok for uid in scenario_users)
    assert _stored(db_path, "bad-user") is None

    run = stage.last_run
    assert run.status == "partial"
    assert run.error_count == 1
    assert run.rows_processed == len(scenario_users)
    with get_connection(DatabaseConfig(db_path=db_path)) as conn:
        persisted = RunMetadataRepository(conn).get_run_by_slug(run.run_slug)
    assert persisted.status == "partial"
    assert persisted.error_count == 1
    assert "bad-user" in persisted.error_message


def test_all_users_failing_gives_failed_run(scenario_config) -> None:
    _insert_bad_user(scenario_config.database.db_path, "bad-1")
    _insert_bad_user(scenario_config.database.db_path, "bad-2")

    stage = BatchRecompute(scenario_config)
    results = stage.recompute_all(as_of=AS_OF, computed_at=COMPUTED_AT)

    assert [r.status for r in results] == ["error", "error"]
    assert stage.last_run.status == "failed"
    assert stage.last_run.error_count == 2


def test_no_users_is_success(app_config) -> None:
    stage = BatchRecompute(app_config)
    assert stage.recompute_all(as_of=AS_OF) == []
    assert stage.last_run.status == "success"
    assert stage.last_run.rows_processed == 0


def test_explicit_user_ids_deduplicated_in_order(scenario_config, scenario_users) -> None:
    wanted = ["scenario-flatline", "scenario-honest", "scenario-flatline"]
    results = BatchRecompute(scenario_config).recompute_all(
        user_ids=wanted, as_of=AS_OF, computed_at=COMPUTED_AT
    )
    assert [r.user_id for r in results] == ["scenario-flatline", "scenario-honest"]


def test_user_with_few_logs_gets_neutral_score(app_config) -> None:
    with get_connection(app_config.database) as conn:
        HabitLogRepository(conn).insert_raw_log("newbie", "2024-06-29", 12.0)

    results = BatchRecompute(app_config).recompute_all(as_of=AS_OF, computed_at=COMPUTED_AT)
    assert [(r.user_id, r.score) for r in results] == [("newbie", 50)]


# ── Interactive path ──────────────────────────────────────────────────────────


def test_interactive_invalid_data_writes_nothing(scenario_config) -> None:
    _insert_bad_user(scenario_config.database.db_path)
    workflow = InteractiveRecompute(scenario_config)

    with pytest.raises(InputValidationError):
        workflow.recompute("bad-user", as_of=AS_OF)
    assert workflow.stored("bad-user") is None


def test_ensure_fresh_lifecycle(scenario_config, scenario_users) -> None:
    workflow = InteractiveRecompute(scenario_config)
    uid = "scenario-honest"

    first = workflow.ensure_fresh(uid, now=AS_OF)
    assert first.computed_at == AS_OF

    reused = workflow.ensure_fresh(uid, now=AS_OF + timedelta(hours=1))
    assert reused.computed_at == AS_OF

    still_fresh = workflow.ensure_fresh(uid, now=AS_OF + timedelta(hours=24))
    assert still_fresh.computed_at == AS_OF

    later = AS_OF + timedelta(hours=25)
    refreshed = workflow.ensure_fresh(uid, now=later)
    assert refreshed.computed_at == later


def test_state_transitions(scenario_config, scenario_users, monkeypatch) -> None:
    workflow = InteractiveRecompute(scenario_config)
    uid = "scenario-flatline"
    seen = []

    original = recompute_module.recompute_user

    def _spy(conn, user_id, config, as_of=None, computed_at=None):
        seen.append(workflow.state(user_id, now=AS_OF))
        return original(conn, user_id, config, as_of, computed_at)

    monkeypatch.setattr(recompute_module, "recompute_user", _spy)

    assert workflow.state(uid, now=AS_OF) == RecomputeState.STALE
    workflow.recompute(uid, as_of=AS_OF, computed_at=AS_OF)
    assert seen == [RecomputeState.COMPUTING]
    assert workflow.state(uid, now=AS_OF) == RecomputeState.FRESH
    assert workflow.state(uid, now=AS_OF + timedelta(hours=30)) == RecomputeState.STALE


def test_overlapping_recomputes_stay_computing(scenario_config, scenario_users, monkeypatch) -> None:
    """A user stays COMPUTING until the last of two overlapping recomputes ends."""
    workflow = InteractiveRecompute(scenario_config)
    uid = "scenario-flatline"
    after_inner = []

    original = recompute_module.recompute_user

    def _spy(conn, user_id, config, as_of=None, computed_at=None):
        if not after_inner:
            after_inner.append(None)
            workflow.recompute(user_id, as_of=as_of, computed_at=computed_at)
            after_inner[0] = workflow.state(user_id, now=AS_OF)
        return original(conn, user_id, config, as_of, computed_at)

    monkeypatch.setattr(recompute_module, "recompute_user", _spy)

    workflow.recompute(uid, as_of=AS_OF, computed_at=AS_OF)
    assert after_inner == [RecomputeState.COMPUTING]
    assert workflow.state(uid, now=AS_OF) == RecomputeState.FRESH


def test_current_governance(scenario_config, scenario_users) -> None:
    workflow = InteractiveRecompute(scenario_config)
    uid = "scenario-flatline"

    neutral = workflow.current_governance(uid)
    assert neutral.multiplier == 1.0
    assert neutral.nudge_message is None

    result = workflow.recompute(uid, as_of=AS_OF, computed_at=AS_OF)
    assert workflow.current_governance(uid) == governance_for(
        result, scenario_config.governance, scenario_config.scoring
    )
