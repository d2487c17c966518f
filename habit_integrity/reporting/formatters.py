"""
ASCII terminal formatters for CLI commands.

All formatters accept models or plain result lists and return multi-line
strings suitable for ``typer.echo()``.  No third-party dependencies.

Freshness banners
-----------------
Stored scores start with a banner so readers can tell at a glance whether
the score still gates rewards or is due for a recompute::

  [FRESH] Computed 1.2h ago
  [STALE] Computed 26.4h ago -- will be recomputed on next access
  [MISSING] No score computed yet
"""

from __future__ import annotations

from typing import Optional, Sequence

from habit_integrity.governance.freshness import FreshnessResult, FreshnessStatus
from habit_integrity.governance.models import RewardGovernance
from habit_integrity.governance.rewards import multiplier_description
from habit_integrity.models.meta import RunMetadata
from habit_integrity.models.score import ScoreResult
from habit_integrity.utils.time_utils import format_utc


# ── Freshness banner ─────────────────────────────────────────────────────────


def format_freshness_banner(check: FreshnessResult) -> str:
    """Return a one-line freshness indicator for a stored score."""
    if check.status == FreshnessStatus.MISSING or check.age_hours is None:
        return "  [MISSING] No score computed yet"
    if check.status == FreshnessStatus.FRESH:
        return f"  [FRESH] Computed {check.age_hours:.1f}h ago"
    return (
        f"  [STALE] Computed {check.age_hours:.1f}h ago "
        "-- will be recomputed on next access"
    )


# ── Single score ──────────────────────────────────────────────────────────────


def format_score_result(
    user_id: str,
    result: ScoreResult,
    governance: Optional[RewardGovernance] = None,
    freshness: Optional[FreshnessResult] = None,
) -> str:
    """Format one score with its signals and, optionally, its reward rules.

    Example::

        === Habit Stability Score: user-1 ===
          Score:       82 (high)  x1.2  +20% Honesty Boost
          Flags:       none
          Signal                          Value  Weight  Flag
          ----------------------------------------------------
          volatility                      100.0    0.15
    """
    fv = result.feature_vector
    badge = multiplier_description(result.reward_multiplier)

    lines: list[str] = []
    lines.append("")
    lines.append(f"=== Habit Stability Score: {user_id} ===")
    if freshness is not None:
        lines.append(format_freshness_banner(freshness))
    lines.append(
        f"  Score:       {result.score} ({result.honesty_level.value})  "
        f"x{result.reward_multiplier:g}" + (f"  {badge}" if badge else "")
    )
    lines.append(f"  Flags:       {', '.join(result.flags) if result.flags else 'none'}")
    lines.append(f"  Computed at: {format_utc(result.computed_at)}  ({result.scoring_version})")
    lines.append(
        f"  Features:    avg={fv.avg_amount_ml:.2f}ml  cv={fv.coefficient_of_variation:.2f}%  "
        f"logs/week={fv.logs_per_week:.2f}  household={fv.household_size}"
    )

    lines.append("")
    header = f"  {'Signal':<30}  {'Value':>6}  {'Weight':>6}  Flag"
    lines.append(header)
    lines.append("  " + "-" * (len(header) + 16))
    for s in result.signals:
        lines.append(
            f"  {s.name:<30}  {s.value:>6.1f}  {s.weight:>6.2f}  {s.flag.value if s.flag else ''}"
        )
        lines.append(f"    {s.description}")

    if governance is not None:
        lines.append("")
        lines.append(format_governance(governance))

    return "\n".join(lines)


def format_governance(governance: RewardGovernance) -> str:
    lines = [
        "  Reward rules:",
        f"    Multiplier:   x{governance.multiplier:g}",
        f"    Daily cap:    {governance.max_daily_points} pts",
        f"    Weekly cap:   {governance.max_weekly_points} pts",
    ]
    if governance.boost_message:
        lines.append(f"    Boost:        {governance.boost_message}")
    if governance.nudge_message:
        lines.append(f"    Nudge:        {governance.nudge_message}")
    return "\n".join(lines)


# ── Tables ────────────────────────────────────────────────────────────────────


def format_score_table(rows: Sequence[tuple[str, ScoreResult]], title: str = "Stored Scores") -> str:
    """Format (name, result) pairs as a compact table."""
    lines: list[str] = []
    lines.append("")
    lines.append(f"=== {title} ===")
    if not rows:
        lines.append("  (no scores stored -- run 'recompute-all' first)")
        return "\n".join(lines)

    header = f"  {'User':<28}  {'Score':>5}  {'Level':<6}  {'Mult':>4}  {'Computed':<20}  Flags"
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for name, result in rows:
        lines.append(
            f"  {name[:28]:<28}  {result.score:>5}  {result.honesty_level.value:<6}  "
            f"{result.reward_multiplier:>4g}  {format_utc(result.computed_at):<20}  "
            f"{', '.join(result.flags) or '-'}"
        )
    return "\n".join(lines)


def format_batch_summary(results: Sequence, run: Optional[RunMetadata] = None) -> str:
    """Format ``BatchRecompute.recompute_all()`` output.

    Args:
        results: ``UserRecomputeResult`` list.
        run:     The sweep's ``RunMetadata`` (status line), if available.
    """
    ok = [r for r in results if r.status == "success"]
    failed = [r for r in results if r.status != "success"]

    lines: list[str] = []
    lines.append("")
    lines.append("=== Batch Recompute ===")
    if run is not None:
        lines.append(f"  Run:      {run.run_slug}  status={run.status}")
    lines.append(f"  Users:    {len(results)}  succeeded={len(ok)}  failed={len(failed)}")

    if ok:
        lines.append("")
        header = f"  {'User':<28}  {'Score':>5}  Level"
        lines.append(header)
        lines.append("  " + "-" * (len(header) + 4))
        for r in ok:
            lines.append(f"  {r.user_id[:28]:<28}  {r.score:>5}  {r.honesty_level.value}")

    if failed:
        lines.append("")
        lines.append("  Failures:")
        for r in failed:
            lines.append(f"    {r.user_id}: {r.error}")

    return "\n".join(lines)
