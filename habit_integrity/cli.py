"""
Habit Integrity — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, import, recompute, etc.).
  5. Report result to stdout.

Install and run::

    pip install -e .
    habit-integrity --help
    habit-integrity init-db
    habit-integrity validate-config
    habit-integrity import-logs --file data/raw/logs.json
    habit-integrity score-file --file payload.json
    habit-integrity recompute user-123
    habit-integrity recompute-all
    habit-integrity show user-123
    habit-integrity scenarios --load
    habit-integrity start-scheduler --daily-time 03:00
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="habit-integrity",
    help="Habit Stability Score engine: scoring, recompute and reward governance.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from habit_integrity.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from habit_integrity.utils.logging import configure_logging
    configure_logging(config.logging)


def _read_json_or_exit(path: str):
    file_path = Path(path)
    if not file_path.exists():
        typer.echo(f"[ERROR] File not found: {file_path}", err=True)
        raise typer.Exit(code=1)
    try:
        with open(file_path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        typer.echo(f"[ERROR] JSON parse error: {exc}", err=True)
        raise typer.Exit(code=1)


def _connect(config, db_path: Optional[str] = None):
    from habit_integrity.db.connection import database_settings, get_connection

    return get_connection(database_settings(config, db_path))


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from habit_integrity.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with _connect(config, target_path) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)
    scoring = config.scoring

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Scoring version:   {scoring.version}")
    typer.echo(f"  Aggregator:        {scoring.aggregator}")
    typer.echo(f"  Window:            {scoring.window_days} days (min {scoring.min_logs_for_analysis} logs)")
    typer.echo(f"  Level thresholds:  high>={scoring.levels.high}  medium>={scoring.levels.medium}")
    typer.echo(f"  Staleness:         {config.recompute.staleness_hours}h")
    typer.echo(f"  Batch workers:     {config.recompute.max_workers}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config is valid.")


@app.command("import-logs")
def import_logs(
    logs_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="JSON file: one user object or an array of them.",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    replace: bool = typer.Option(
        False,
        "--replace",
        help="Delete each user's existing logs, scans and profile first.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate the file but do not write to the database.",
    ),
) -> None:
    """Import users' daily logs, scans and household size from JSON.

    \b
    Each user object:
      {"user_id": "u1", "household_size": 3,
       "daily_logs": [{"date": "2024-06-01", "amount": 42.5}, ...],
       "scans": [{"date": "2024-06-01T12:00:00Z", "amount": 90, "label": "Chips"}]}
    """
    from pydantic import ValidationError

    from habit_integrity.db.repositories.log_repo import HabitLogRepository
    from habit_integrity.models.inputs import DailyLogEntry, ExternalScan, HouseholdContext

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    raw = _read_json_or_exit(logs_file)
    users = raw if isinstance(raw, list) else [raw]

    parsed: list[tuple[str, Optional[int], list[DailyLogEntry], list[ExternalScan]]] = []
    errors: list[tuple[int, str]] = []
    for i, user in enumerate(users):
        if not isinstance(user, dict):
            errors.append((i, f"expected an object, got {type(user).__name__}"))
            continue
        try:
            size = user.get("household_size")
            if size is not None:
                HouseholdContext(size=size)
            logs = [
                DailyLogEntry(log_date=row["date"], amount_ml=row["amount"])
                for row in user.get("daily_logs") or []
            ]
            scans = [
                ExternalScan(
                    scanned_at=row["date"],
                    declared_amount_ml=row["amount"],
                    label=row.get("label") or "",
                )
                for row in user.get("scans") or []
            ]
            parsed.append((str(user["user_id"]), size, logs, scans))
        except (KeyError, TypeError, ValidationError) as exc:
            errors.append((i, str(exc)))

    if errors:
        typer.echo(f"[ERROR] {len(errors)} user record(s) failed validation:", err=True)
        for idx, msg in errors[:5]:
            typer.echo(f"  User #{idx}: {msg}", err=True)
        if len(errors) > 5:
            typer.echo(f"  ... and {len(errors) - 5} more.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Validated {len(parsed)} user record(s).")
    if dry_run:
        typer.echo("[DRY RUN] Nothing written to database.")
        for user_id, size, logs, scans in parsed:
            typer.echo(f"  {user_id} | household={size} | logs={len(logs)} | scans={len(scans)}")
        return

    with _connect(config, db_path) as conn:
        repo = HabitLogRepository(conn)
        for user_id, size, logs, scans in parsed:
            if replace:
                repo.delete_user_data(user_id)
            repo.upsert_profile(user_id, size)
            repo.insert_logs(user_id, sorted(logs, key=lambda e: e.log_date))
            repo.insert_scans(user_id, scans)

    typer.echo("[OK] Logs imported.")


@app.command("score-file")
def score_file(
    payload_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="JSON payload: {daily_logs, scans, household_size}.",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    as_json: bool = typer.Option(False, "--json", help="Print the ScoreResult as JSON."),
) -> None:
    """Score a raw payload without touching the database."""
    from habit_integrity.governance.policy import governance_for
    from habit_integrity.models.inputs import InputValidationError
    from habit_integrity.reporting.formatters import format_score_result
    from habit_integrity.scoring.engine import score_payload

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    payload = _read_json_or_exit(payload_file)
    try:
        result = score_payload(payload, config.scoring)
    except InputValidationError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return
    governance = governance_for(result, config.governance, config.scoring)
    typer.echo(format_score_result(Path(payload_file).stem, result, governance))


@app.command("recompute")
def recompute(
    user_id: str = typer.Argument(..., help="User to recompute."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    if_stale: bool = typer.Option(
        False,
        "--if-stale",
        help="Only recompute when the stored score is stale or missing.",
    ),
) -> None:
    """Recompute one user's score now (the interactive path)."""
    from habit_integrity.governance.policy import governance_for
    from habit_integrity.models.inputs import InputValidationError
    from habit_integrity.pipeline.recompute import InteractiveRecompute
    from habit_integrity.reporting.formatters import format_score_result

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    workflow = InteractiveRecompute(config, db_path=db_path)
    try:
        result = workflow.ensure_fresh(user_id) if if_stale else workflow.recompute(user_id)
    except InputValidationError as exc:
        typer.echo(f"[ERROR] Invalid data for {user_id}: {exc}", err=True)
        raise typer.Exit(code=1)

    governance = governance_for(result, config.governance, config.scoring)
    typer.echo(format_score_result(user_id, result, governance, workflow.freshness(user_id)))


@app.command("recompute-all")
def recompute_all(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    user_ids: Optional[list[str]] = typer.Option(
        None,
        "--user",
        "-u",
        help="Restrict the sweep to these users (repeatable).",
    ),
) -> None:
    """Recompute every user with logs in the trailing window (the batch path).

    Exits with code 1 only when every user failed.
    """
    from habit_integrity.pipeline.batch import BatchRecompute
    from habit_integrity.reporting.formatters import format_batch_summary

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = BatchRecompute(config, db_path=db_path)
    results = stage.recompute_all(user_ids=user_ids or None)
    typer.echo(format_batch_summary(results, stage.last_run))

    if stage.last_run is not None and stage.last_run.status == "failed":
        raise typer.Exit(code=1)


@app.command("show")
def show(
    user_id: Optional[str] = typer.Argument(None, help="User to show; omit to list all."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    limit: int = typer.Option(50, "--limit", help="Rows to list when no user is given."),
) -> None:
    """Show a stored score with its freshness and reward rules."""
    from habit_integrity.db.repositories.integrity_repo import IntegrityRepository
    from habit_integrity.pipeline.recompute import InteractiveRecompute
    from habit_integrity.reporting.formatters import (
        format_freshness_banner,
        format_governance,
        format_score_result,
        format_score_table,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if user_id is None:
        with _connect(config, db_path) as conn:
            rows = IntegrityRepository(conn).get_all(limit=limit)
        typer.echo(format_score_table(rows))
        return

    workflow = InteractiveRecompute(config, db_path=db_path)
    stored = workflow.stored(user_id)
    freshness = workflow.freshness(user_id)
    governance = workflow.current_governance(user_id)
    if stored is None:
        typer.echo(f"=== {user_id} ===")
        typer.echo(format_freshness_banner(freshness))
        typer.echo(format_governance(governance))
        return
    typer.echo(format_score_result(user_id, stored, governance, freshness))


@app.command("scenarios")
def scenarios(
    seed: int = typer.Option(42, "--seed", help="Random seed for the synthetic users."),
    load: bool = typer.Option(
        False,
        "--load",
        help="Also write the scenarios to the database as scenario-<name> users.",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Score the built-in synthetic users (honest, flatline, sudden drop, ...)."""
    from habit_integrity.reporting.formatters import format_score_table
    from habit_integrity.scenarios import build_scenarios
    from habit_integrity.scoring.engine import compute_score

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    built = build_scenarios(seed=seed)
    rows = [(s.name, compute_score(s.inputs, config.scoring)) for s in built]
    typer.echo(format_score_table(rows, title=f"Synthetic Scenarios (seed={seed})"))
    typer.echo("")
    for s in built:
        typer.echo(f"  {s.name:<22} expected: {s.expected}")

    if load:
        from habit_integrity.db.schema import apply_schema
        from habit_integrity.scenarios import load_scenarios

        with _connect(config, db_path) as conn:
            apply_schema(conn)
            load_scenarios(conn, built)
        typer.echo("")
        typer.echo(f"[OK] Loaded {len(built)} scenario users.")


@app.command("start-scheduler")
def start_scheduler(
    daily_time: Optional[str] = typer.Option(
        None,
        "--daily-time",
        help="Local HH:MM time for the daily sweep (default from config).",
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    run_now: bool = typer.Option(False, "--run-now", help="Run one sweep immediately."),
) -> None:
    """Run the daily batch recompute on a schedule.  Blocks until Ctrl-C."""
    from habit_integrity.scheduler import SchedulerDaemon

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        daemon = SchedulerDaemon(
            db_path=db_path or config.database.db_path,
            daily_time=daily_time or config.scheduler.daily_time,
            run_on_start=run_now,
        )
    except RuntimeError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    daemon.start()


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
