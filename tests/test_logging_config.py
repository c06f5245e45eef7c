"""
Tests for logging_config module.
"""

import logging
from datetime import datetime
from unittest.mock import patch

import pytest

from src.infra import logging_config
from src.infra.logging_config import DailyRotatingFileHandler, setup_logging


def make_record(message: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=message,
        args=(),
        exc_info=None
    )


class TestDailyRotatingFileHandler:
    """Tests for DailyRotatingFileHandler class."""

    def test_handler_creates_log_directory(self, tmp_path):
        """Test that handler creates log directory if it doesn't exist."""
        log_dir = tmp_path / "nested" / "logs"
        assert not log_dir.exists()

        handler = DailyRotatingFileHandler(log_dir=str(log_dir))
        assert log_dir.exists()
        handler.close()

    def test_handler_creates_log_file(self, tmp_path):
        """Test that handler creates a log file with correct naming."""
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path))

        log_files = list(tmp_path.glob("story_generator_*.log"))
        assert len(log_files) == 1
        assert datetime.now().strftime("%Y%m%d") in log_files[0].name
        handler.close()

    def test_handler_emits_record(self, tmp_path):
        """Test that handler writes log records to file."""
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path))
        handler.setFormatter(logging.Formatter('%(message)s'))
        handler.emit(make_record("Test message"))
        handler.close()

        content = next(tmp_path.glob("story_generator_*.log")).read_text()
        assert "Test message" in content

    def test_rotates_on_date_change(self, tmp_path):
        """Test that a new file is opened when the date changes."""
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path))
        handler.setFormatter(logging.Formatter('%(message)s'))
        first_file = handler.baseFilename

        with patch.object(logging_config, "datetime") as mock_datetime:
            mock_datetime.now.return_value = datetime(2031, 1, 2, 0, 0, 1)
            handler.emit(make_record("Next day"))

        handler.close()
        assert handler.baseFilename != first_file
        assert "story_generator_20310102_" in handler.baseFilename


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_returns_story_logger(self, tmp_path):
        logger = setup_logging("INFO", log_dir=str(tmp_path))

        assert isinstance(logger, logging.Logger)
        assert logger.name == "story_generator"

    def test_sets_correct_log_level(self, tmp_path):
        assert setup_logging("DEBUG", log_dir=str(tmp_path)).level == logging.DEBUG
        assert setup_logging("WARNING", log_dir=str(tmp_path)).level == logging.WARNING

    def test_level_and_dir_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "env_logs"))

        logger = setup_logging()

        assert logger.level == logging.ERROR
        assert (tmp_path / "env_logs").exists()

    def test_handlers_not_duplicated(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))
        logger = setup_logging("INFO", log_dir=str(tmp_path))

        assert len(logger.handlers) == 2
        has_stream_handler = any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in logger.handlers
        )
        assert has_stream_handler

    def test_prevents_propagation(self, tmp_path):
        assert setup_logging("INFO", log_dir=str(tmp_path)).propagate is False
