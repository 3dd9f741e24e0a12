"""Tests for setup_logging — alert log file and library log levels."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from fleetwatch.core.config import reset_settings
from fleetwatch.core.logging import ALERT_LOGGER_NAME, setup_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    reset_settings()
    yield
    alert_logger = logging.getLogger(ALERT_LOGGER_NAME)
    for handler in list(alert_logger.handlers):
        alert_logger.removeHandler(handler)
        handler.close()
    structlog.reset_defaults()
    reset_settings()


class TestSetupLogging:
    def test_alert_records_written_to_file(self, tmp_path: Path) -> None:
        path = tmp_path / "logs" / "alerts.jsonl"
        setup_logging(level="INFO", fmt="json", alert_log_file=path)

        structlog.get_logger(ALERT_LOGGER_NAME).info("alert_fired", alert_id="a1")
        for handler in logging.getLogger(ALERT_LOGGER_NAME).handlers:
            handler.flush()

        record = json.loads(path.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert record["event"] == "alert_fired"
        assert record["alert_id"] == "a1"
        assert record["logger"] == ALERT_LOGGER_NAME

    def test_no_alert_file_by_default(self) -> None:
        setup_logging(level="INFO", fmt="console")
        handlers = logging.getLogger(ALERT_LOGGER_NAME).handlers
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)

    def test_request_loggers_quietened(self) -> None:
        setup_logging(level="DEBUG", fmt="json")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG

    def test_repeated_setup_keeps_one_file_handler(self, tmp_path: Path) -> None:
        setup_logging(alert_log_file=tmp_path / "a.jsonl")
        setup_logging(alert_log_file=tmp_path / "b.jsonl")
        handlers = logging.getLogger(ALERT_LOGGER_NAME).handlers
        assert len([h for h in handlers if isinstance(h, logging.FileHandler)]) == 1
