"""Tests for src/core/logging.py."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
import structlog

from src.core.config import reset_settings
from src.core.logging import setup_logging


@pytest.fixture(autouse=True)
def _restore_root() -> Iterator[None]:
    reset_settings()
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    def test_level_and_single_handler(self) -> None:
        setup_logging(level="debug", fmt="json")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_sdk_loggers_quietened(self) -> None:
        setup_logging(level="DEBUG")
        assert logging.getLogger("botocore").level == logging.WARNING
        setup_logging(level="ERROR")
        assert logging.getLogger("botocore").level == logging.ERROR

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(level="INFO", fmt="json")
        structlog.stdlib.get_logger("autoalarm.test").info("alarm_upserted", alarm="a")
        err = capsys.readouterr().err
        assert '"event": "alarm_upserted"' in err
        assert '"alarm": "a"' in err
