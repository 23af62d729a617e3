from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from summons_tracker.bootstrap.logging import configure_logging, log_operational_error, write_crash_log
from summons_tracker.core.observability import OperationContext


@pytest.fixture
def log_dir(tmp_path: Path):
    root_logger = logging.getLogger()
    previous_handlers = list(root_logger.handlers)
    previous_level = root_logger.level
    configure_logging(tmp_path)
    yield tmp_path
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers[:] = previous_handlers
    root_logger.setLevel(previous_level)


def _events(path: Path) -> list[dict]:
    for handler in logging.getLogger().handlers:
        handler.flush()
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_records_are_json_lines_with_correlation_id(log_dir: Path) -> None:
    with OperationContext("test.op") as operation:
        logging.getLogger("summons_tracker.test").info("hello")

    events = _events(log_dir / "sync.log")
    hello = [event for event in events if event["message"] == "hello"][0]
    assert hello["correlation_id"] == operation.correlation_id
    assert hello["level"] == "INFO"


def test_operational_errors_get_their_own_file(log_dir: Path) -> None:
    log_operational_error(
        logging.getLogger("summons_tracker.test"),
        "push failed",
        exc=RuntimeError("boom"),
        extra={"record_id": "c1"},
    )

    events = _events(log_dir / "operational_error.log")
    assert events[-1]["message"] == "push failed"
    assert events[-1]["extra"] == {"record_id": "c1"}
    assert "RuntimeError: boom" in events[-1]["exc_info"]


def test_crash_log_only_holds_critical_records(log_dir: Path) -> None:
    logging.getLogger("summons_tracker.test").error("not a crash")
    try:
        raise ValueError("fatal")
    except ValueError as exc:
        path = write_crash_log(type(exc), exc, exc.__traceback__, log_dir)

    events = _events(path)
    assert [event["message"] for event in events] == ["Unhandled exception"]
