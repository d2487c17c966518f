"""Scheduler daemon for the daily batch recompute.

No external scheduler library is required; uses stdlib ``time``,
``signal``, and ``subprocess`` only.

Typical usage via the CLI::

    habit-integrity start-scheduler --daily-time 03:00

Or import directly::

    from habit_integrity.scheduler import SchedulerDaemon
    daemon = SchedulerDaemon(db_path="data/db/habit_integrity.db")
    daemon.start()  # blocks until Ctrl-C

Each sweep runs ``recompute-all`` as a subprocess (the installed CLI), so
every run has its own process, logging, and exit code.  A failed sweep is
logged but does not stop the daemon.
"""

from __future__ import annotations

import logging
import platform
import signal
import subprocess
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

SWEEP_TIMEOUT_SECONDS = 3600


# ── Helpers ───────────────────────────────────────────────────────────────────


def _find_cli_exe() -> str:
    """Locate the habit-integrity CLI executable inside the active virtual env.

    Raises:
        RuntimeError: If the executable is not found.
    """
    scripts_dir = Path(sys.executable).parent
    candidates = (
        ["habit-integrity.exe", "habit-integrity"]
        if platform.system() == "Windows"
        else ["habit-integrity"]
    )
    for name in candidates:
        candidate = scripts_dir / name
        if candidate.exists():
            return str(candidate)
    raise RuntimeError(
        f"Could not find habit-integrity executable in {scripts_dir}. "
        "Run: pip install -e ."
    )


def _next_daily_run(daily_time: str, now: Optional[datetime] = None) -> datetime:
    """Return the next local datetime matching *daily_time* (``HH:MM``)."""
    hour, minute = (int(p) for p in daily_time.split(":"))
    now = now or datetime.now()
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


# ── Daemon ────────────────────────────────────────────────────────────────────


class SchedulerDaemon:
    """Runs ``recompute-all`` once per day.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    daily_time:
        Local 24-hour ``HH:MM`` time to fire the sweep.  Defaults to ``"03:00"``.
    run_on_start:
        When *True*, run one sweep immediately before waiting for the first slot.
    cli_exe:
        Full path to the CLI executable.  Auto-detected from the active
        virtual environment when *None*.
    """

    def __init__(
        self,
        db_path: str,
        daily_time: str = "03:00",
        run_on_start: bool = False,
        cli_exe: Optional[str] = None,
    ) -> None:
        self.db_path = db_path
        self.daily_time = daily_time
        self.run_on_start = run_on_start
        self.cli_exe = cli_exe or _find_cli_exe()
        self._running = False

    def _run_cmd(self, args: list[str], label: str) -> bool:
        """Run a CLI sub-command.  Returns ``True`` on exit code 0."""
        cmd = [self.cli_exe] + args
        log.info("[%s] Running: %s", label, " ".join(cmd))
        try:
            result = subprocess.run(cmd, timeout=SWEEP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            log.error("[%s] Timed out after %d s.", label, SWEEP_TIMEOUT_SECONDS)
            return False
        except OSError as exc:
            log.error("[%s] Could not start: %s", label, exc)
            return False
        if result.returncode == 0:
            log.info("[%s] Completed successfully (exit 0).", label)
            return True
        log.error("[%s] Exited with code %d.", label, result.returncode)
        return False

    def run_daily(self) -> bool:
        """Execute one batch recompute sweep."""
        log.info(
            "=== Daily recompute starting at %s ===",
            datetime.now().isoformat(timespec="seconds"),
        )
        return self._run_cmd(["recompute-all", "--db-path", self.db_path], "recompute-all")

    def start(self) -> None:
        """Start the daemon.  Blocks until Ctrl-C (or SIGTERM on Linux/macOS)."""
        if self.run_on_start:
            self.run_daily()
        next_daily = _next_daily_run(self.daily_time)

        log.info(
            "Scheduler started.  daily_time=%s  db=%s  next=%s",
            self.daily_time, self.db_path, next_daily.isoformat(timespec="seconds"),
        )

        self._running = True

        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received, stopping scheduler.", signum)
            self._running = False

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

        while self._running:
            if datetime.now() >= next_daily:
                self.run_daily()
                next_daily = _next_daily_run(self.daily_time)
                log.info("Next daily scheduled: %s", next_daily.isoformat(timespec="seconds"))
            time.sleep(30)

        log.info("Scheduler stopped.")
