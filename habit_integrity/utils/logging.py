"""
Logging setup for Habit Integrity.

``configure_logging(config)`` runs once at CLI entry.  Library modules only
ever call ``logging.getLogger(__name__)``; the scoring package logs at DEBUG
so embedding callers see nothing unless they opt in.

Recompute code logs through ``recompute_logger(logger, path, user_id)``,
which stamps every record with ``recompute_path`` (``interactive`` or
``batch``) and ``user_id``.  The text format appends them as
``[batch user=u1]``; the JSON format (``json_format = true``) emits them as
top-level keys::

    {"ts": "2026-02-24T15:00:00Z", "level": "WARNING", "logger": "...",
     "msg": "...", "recompute_path": "batch", "user_id": "u1"}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, MutableMapping

if TYPE_CHECKING:
    from habit_integrity.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s%(context)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

CONTEXT_KEYS = ("recompute_path", "user_id", "run_slug")


class RecomputeLogAdapter(logging.LoggerAdapter):
    """Merges the bound recompute context into each record's ``extra``."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def recompute_logger(
    logger: logging.Logger,
    path: str,
    user_id: str | None = None,
    **context: Any,
) -> RecomputeLogAdapter:
    """Bind ``path`` (``"interactive"`` / ``"batch"``) and ``user_id`` to ``logger``."""
    extra: dict[str, Any] = {"recompute_path": path, **context}
    if user_id is not None:
        extra["user_id"] = user_id
    return RecomputeLogAdapter(logger, extra)


def _context_suffix(record: logging.LogRecord) -> str:
    path = getattr(record, "recompute_path", None)
    user_id = getattr(record, "user_id", None)
    if path is None and user_id is None:
        return ""
    parts = [path] if path else []
    if user_id is not None:
        parts.append(f"user={user_id}")
    return f" [{' '.join(parts)}]"


class _TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.context = _context_suffix(record)
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg, recompute context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                LOG_DATE_FORMAT
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return _TextFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def configure_logging(config: "LoggingConfig") -> None:
    """Configure the root logger: stdout, optional log file, text or JSON lines."""
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = build_formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
