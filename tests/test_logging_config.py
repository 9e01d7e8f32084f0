"""Tests for logging configuration module."""

import logging
import os
import time
from unittest.mock import patch

import pytest

from item_collections.utils import logging_config
from item_collections.utils.logging_config import (
    PerformanceMonitor,
    _loggers_configured,
    cleanup_old_logs,
    get_log_level,
    get_logger,
    log_operation,
    setup_logging,
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture(autouse=True)
def reset_logging_state(tmp_path):
    """Reset logging state and keep log files out of the home directory."""
    _loggers_configured.clear()
    with patch.object(logging_config, "LOG_DIR", tmp_path / "logs"):
        yield tmp_path / "logs"
    _loggers_configured.clear()


def test_get_log_level():
    """Test log level detection from environment."""
    with patch.dict(os.environ, {}, clear=True):
        assert get_log_level() == logging.INFO

    with patch.dict(os.environ, {"DEBUG": "true"}, clear=True):
        assert get_log_level() == logging.DEBUG

    with patch.dict(os.environ, {"LOG_LEVEL": "ERROR", "DEBUG": "true"}, clear=True):
        assert get_log_level() == logging.ERROR

    with patch.dict(os.environ, {"LOG_LEVEL": "bogus"}, clear=True):
        assert get_log_level() == logging.INFO


def test_setup_logging_writes_to_file(reset_logging_state):
    """Test basic logger setup with a file handler."""
    logger = setup_logging("test_collection_logger", level=logging.DEBUG)
    logger.debug("hello")

    assert logger.level == logging.DEBUG
    assert "test_collection_logger" in _loggers_configured
    log_files = list(reset_logging_state.glob("item-collections-*.log"))
    assert len(log_files) == 1


def test_setup_logging_no_duplicates():
    """Test that duplicate setup calls don't add duplicate handlers."""
    logger1 = setup_logging("test_unique_logger", file=False)
    logger2 = get_logger("test_unique_logger")

    assert logger1 is logger2
    assert len(logger2.handlers) == 1


def test_log_operation_levels():
    logger = setup_logging("test_operations", level=logging.DEBUG, console=False, file=False)
    handler = ListHandler()
    logger.addHandler(handler)

    log_operation(logger, "add", "x1", "success", type="video")
    log_operation(logger, "remove", "x2", "rollback", reason="error")
    log_operation(logger, "move", "x3", "error")

    messages = [(r.levelno, r.getMessage()) for r in handler.records]
    assert messages == [
        (logging.INFO, "[ADD] x1 - success (type=video)"),
        (logging.WARNING, "[REMOVE] x2 - rollback (reason=error)"),
        (logging.ERROR, "[MOVE] x3 - error"),
    ]


def test_performance_monitor_reports_outcome():
    logger = setup_logging("test_perf", level=logging.DEBUG, console=False, file=False)
    handler = ListHandler()
    logger.addHandler(handler)

    with PerformanceMonitor(logger, "Page fetch", page=1):
        pass
    with pytest.raises(RuntimeError):
        with PerformanceMonitor(logger, "Page fetch", page=2):
            raise RuntimeError("boom")

    messages = [r.getMessage() for r in handler.records]
    assert messages[0].startswith("Page fetch completed in")
    assert messages[0].endswith("(page=1)")
    assert messages[1].startswith("Page fetch failed in")


def test_cleanup_old_logs(reset_logging_state):
    reset_logging_state.mkdir(parents=True)
    old_log = reset_logging_state / "item-collections-2000-01-01.log"
    new_log = reset_logging_state / "item-collections-2099-01-01.log"
    old_log.write_text("old")
    new_log.write_text("new")
    stale = time.time() - 30 * 24 * 60 * 60
    os.utime(old_log, (stale, stale))

    cleanup_old_logs()

    assert not old_log.exists()
    assert new_log.exists()
