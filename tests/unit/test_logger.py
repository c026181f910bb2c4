#!/usr/bin/env python3
"""
Unit tests for logger.py module.
"""

import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler

import pytest

import s3archiver.logger
from s3archiver.config import Settings
from s3archiver.logger import STATUS_LEVEL, get_logger, setup_logger


@pytest.fixture
def fresh_logger():
    """Let setup_logger initialize again and restore the previous state afterwards."""
    old_logger = s3archiver.logger._LOGGER
    s3archiver.logger._LOGGER = None
    yield
    log = logging.getLogger("s3archiver")
    for h in log.handlers[:]:
        log.removeHandler(h)
        h.close()
    s3archiver.logger._LOGGER = old_logger


def _settings(tmp_path, **kwargs):
    return Settings(bucket="b", local_dir=tmp_path, **kwargs)


class TestSetupLogger:
    """Tests for setup_logger function."""

    def test_console_only_by_default(self, tmp_path, fresh_logger):
        logger = setup_logger(_settings(tmp_path))

        assert logger.name == "s3archiver"
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_size_rotated_file(self, tmp_path, fresh_logger):
        log_path = tmp_path / "logs" / "run.log"

        logger = setup_logger(_settings(tmp_path, log_path=log_path, max_log_size=1024, max_log_files=3))

        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 1024
        assert file_handlers[0].backupCount == 3
        assert log_path.parent.is_dir()

    def test_time_rotated_file(self, tmp_path, fresh_logger):
        logger = setup_logger(_settings(tmp_path, log_path=tmp_path / "run.log", rotate_by_time=True))

        assert any(isinstance(h, TimedRotatingFileHandler) for h in logger.handlers)

    def test_initialized_once(self, tmp_path, fresh_logger):
        first = setup_logger(_settings(tmp_path))
        second = setup_logger(_settings(tmp_path, log_level="DEBUG"))

        assert first is second
        assert len(second.handlers) == 1

    def test_status_messages_reach_file(self, tmp_path, fresh_logger):
        log_path = tmp_path / "run.log"
        setup_logger(_settings(tmp_path, log_path=log_path))

        get_logger("s3archiver.orchestrator").status("halfway there")
        for h in logging.getLogger("s3archiver").handlers:
            h.flush()

        assert "[STATUS] halfway there" in log_path.read_text()


class TestGetLogger:
    """Tests for get_logger function."""

    def test_child_of_configured_logger(self, tmp_path, fresh_logger):
        setup_logger(_settings(tmp_path))

        assert get_logger("s3archiver.uploader").name == "s3archiver.uploader"
        assert get_logger().name == "s3archiver"

    def test_fallback_before_setup(self, fresh_logger):
        logger = get_logger("s3archiver.walker")

        assert logger.name == "s3archiver.temp.walker"

    def test_status_level_registered(self):
        assert logging.getLevelName(STATUS_LEVEL) == "STATUS"
        assert hasattr(get_logger("x"), "status")
