"""Tests for structured logging functionality."""

from __future__ import annotations

import json
import logging
import logging.handlers

import pytest

from habitflow.config import BaseConfig
from habitflow.logging_config import JSONFormatter, get_logger, setup_logging


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv("HABITFLOW_DATA_DIR", str(tmp_path))
    return BaseConfig()


def test_json_formatter():
    """JSONFormatter renders the core record fields."""
    formatter = JSONFormatter()
    record = logging.LogRecord(
        name="habitflow.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Completion recorded",
        args=(),
        exc_info=None,
    )
    record.module = "test_module"
    record.funcName = "test_function"

    log_data = json.loads(formatter.format(record))

    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "habitflow.test"
    assert log_data["message"] == "Completion recorded"
    assert log_data["function"] == "test_function"
    assert log_data["line"] == 42
    assert "timestamp" in log_data
    assert "extra" not in log_data


def test_json_formatter_with_extra_fields():
    formatter = JSONFormatter()
    record = logging.LogRecord("habitflow.test", logging.INFO, "test.py", 1, "Sent", (), None)
    record.user_id = 7
    record.type = "weekly_summary"

    log_data = json.loads(formatter.format(record))

    assert log_data["extra"] == {"user_id": 7, "type": "weekly_summary"}


def test_json_formatter_with_exception():
    formatter = JSONFormatter()
    try:
        raise ValueError("Test error")
    except ValueError:
        import sys

        exc_info = sys.exc_info()

    record = logging.LogRecord(
        "habitflow.test", logging.ERROR, "test.py", 42, "Error occurred", (), exc_info
    )
    log_data = json.loads(formatter.format(record))

    assert log_data["exception"]["type"] == "ValueError"
    assert "Test error" in log_data["exception"]["message"]
    assert log_data["exception"]["traceback"]


def test_setup_logging(config, tmp_path):
    """Logging setup creates a rotating JSON log file."""
    logger = setup_logging(config)

    assert logger.name == "habitflow"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 2  # Console + File

    log_file = tmp_path / "logs" / "habitflow.log"
    assert log_file.exists()

    get_logger("services.notifications").warning("Notification delivery failed", extra={"user_id": 3})
    for handler in logger.handlers:
        handler.flush()

    lines = [line for line in log_file.read_text().splitlines() if line.strip()]
    entries = [json.loads(line) for line in lines]
    assert entries[0]["message"] == "Logging initialized"
    assert entries[-1]["logger"] == "habitflow.services.notifications"
    assert entries[-1]["extra"] == {"user_id": 3}


def test_setup_logging_is_repeatable(config):
    setup_logging(config)
    logger = setup_logging(config)
    assert len(logger.handlers) == 2


def test_get_logger():
    assert get_logger("module1").name == "habitflow.module1"
    assert get_logger("habitflow.scheduler").name == "habitflow.scheduler"
    assert get_logger("module1") is not get_logger("module2")


@pytest.mark.parametrize("dev_mode", [True, False])
def test_logging_levels_by_mode(config, dev_mode):
    """Console logging level adjusts based on dev mode."""
    config.DEV_MODE = dev_mode
    logger = setup_logging(config)

    console_handler = next(
        handler
        for handler in logger.handlers
        if isinstance(handler, logging.StreamHandler)
        and not isinstance(handler, logging.handlers.RotatingFileHandler)
    )

    expected_level = logging.INFO if dev_mode else logging.WARNING
    assert console_handler.level == expected_level


def test_requests_are_logged(client, caplog):
    caplog.set_level(logging.INFO, logger="habitflow.api.requests")

    client.get("/api/habits")

    record = next(r for r in caplog.records if r.name == "habitflow.api.requests")
    assert record.levelno == logging.WARNING
    assert record.status == 401
    assert record.path == "/api/habits"
    assert record.duration_ms >= 0
