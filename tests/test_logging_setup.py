"""
Tests for utils/logging.py — recompute context binding and both formats.
"""

from __future__ import annotations

import json
import logging

from habit_integrity.config import LoggingConfig
from habit_integrity.utils.logging import (
    build_formatter,
    configure_logging,
    recompute_logger,
)


def _record(logger_name: str = "habit_integrity.test", **extra) -> logging.LogRecord:
    record = logging.LogRecord(logger_name, logging.WARNING, __file__, 1, "failed: %s", ("x",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_adapter_binds_path_and_user(caplog) -> None:
    log = recompute_logger(logging.getLogger("habit_integrity.test"), "batch", "u1")
    with caplog.at_level(logging.INFO, logger="habit_integrity.test"):
        log.info("done", extra={"run_slug": "r1"})
    record = caplog.records[-1]
    assert record.recompute_path == "batch"
    assert record.user_id == "u1"
    assert record.run_slug == "r1"


def test_text_format_appends_context() -> None:
    text = build_formatter(json_format=False).format(
        _record(recompute_path="interactive", user_id="u7")
    )
    assert "habit_integrity.test [interactive user=u7]: failed: x" in text


def test_text_format_without_context() -> None:
    text = build_formatter(json_format=False).format(_record())
    assert "habit_integrity.test: failed: x" in text


def test_json_format_includes_context_keys() -> None:
    line = build_formatter(json_format=True).format(_record(recompute_path="batch", user_id="u2"))
    payload = json.loads(line)
    assert payload["level"] == "WARNING"
    assert payload["msg"] == "failed: x"
    assert payload["recompute_path"] == "batch"
    assert payload["user_id"] == "u2"
    assert "run_slug" not in payload


def test_configure_logging_writes_file(tmp_path) -> None:
    log_file = tmp_path / "logs" / "hi.log"
    configure_logging(LoggingConfig(level="INFO", log_file=str(log_file), json_format=True))
    try:
        recompute_logger(logging.getLogger("habit_integrity.test"), "interactive", "u3").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        assert json.loads(lines[-1])["user_id"] == "u3"
    finally:
        for handler in list(logging.getLogger().handlers):
            handler.close()
        logging.basicConfig(handlers=[logging.NullHandler()], force=True)
