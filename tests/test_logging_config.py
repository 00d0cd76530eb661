"""
Unit tests for logging configuration.

Tests structured JSON logging, the text format for local runs, and handler
setup for local and CI environments.
"""

import json
import logging
import sys
from unittest.mock import MagicMock

import pytest

from flakeproof.core.config import Config
from flakeproof.core.logging_config import (
    ContextAdapter,
    StructuredFormatter,
    TextFormatter,
    get_logger,
    log_performance,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, **attrs):
    record = logging.LogRecord(
        name="flakeproof.test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Test cases for StructuredFormatter."""

    def test_format_basic_log_record(self):
        """Test formatting basic log record."""
        log_data = json.loads(StructuredFormatter("run-123").format(make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["component"] == "flakeproof.test"
        assert log_data["run_id"] == "run-123"
        assert log_data["message"] == "Test message"
        assert log_data["timestamp"].endswith("Z")

    def test_format_with_metadata_and_context_fields(self):
        """Test metadata and known context fields are carried through."""
        record = make_record(metadata={"attempts": 2}, test_id="API > get", attempt=2)

        log_data = json.loads(StructuredFormatter("run-123").format(record))

        assert log_data["metadata"] == {"attempts": 2}
        assert log_data["test_id"] == "API > get"
        assert log_data["attempt"] == 2
        assert "outcome" not in log_data

    def test_format_with_exception(self):
        """Test formatting log record with exception information."""
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        log_data = json.loads(StructuredFormatter("run-123").format(record))

        assert "ValueError: Test exception" in log_data["exception"]


class TestTextFormatter:
    """Test cases for TextFormatter."""

    def test_format_includes_short_run_id_and_metadata(self):
        record = make_record(metadata={"outcome": "pass", "attempts": 1})

        line = TextFormatter("abcdef123456").format(record)

        assert "INFO" in line
        assert "Test message" in line
        assert "(run: abcdef12)" in line
        assert "outcome=pass | attempts=1" in line


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_local_run_logs_to_stderr_and_file(self, tmp_path, restore_root_logger):
        config = Config(logs_dir=tmp_path / "logs", log_level="DEBUG")

        root = setup_logging(config, "run-1")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        stream_handler, file_handler = root.handlers
        assert stream_handler.stream is sys.stderr
        assert isinstance(stream_handler.formatter, TextFormatter)
        assert file_handler.baseFilename == str(config.get_log_file_path())

    def test_ci_run_uses_json_without_file(self, tmp_path, restore_root_logger):
        config = Config(ci_mode=True, logs_dir=tmp_path / "logs")

        root = setup_logging(config, "run-1")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert not (tmp_path / "logs").exists()

    def test_replaces_existing_handlers(self, tmp_path, restore_root_logger):
        config = Config(ci_mode=True, logs_dir=tmp_path)

        setup_logging(config, "run-1")
        root = setup_logging(config, "run-2")

        assert len(root.handlers) == 1


class TestGetLogger:
    """Test cases for get_logger."""

    def test_plain_logger(self):
        logger = get_logger("flakeproof.plain")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "flakeproof.plain"

    def test_context_adapter_merges_extra(self):
        logger = get_logger("flakeproof.ctx", test_id="API > get")
        assert isinstance(logger, ContextAdapter)

        msg, kwargs = logger.process("hello", {"extra": {"attempt": 3}})

        assert msg == "hello"
        assert kwargs["extra"] == {"test_id": "API > get", "attempt": 3}


class TestLogPerformance:
    """Test cases for log_performance."""

    def test_logs_duration_and_metadata(self):
        logger = MagicMock()

        log_performance(logger, "test API > get", 1.234, level=logging.INFO, attempts=2)

        level, message = logger.log.call_args.args
        assert level == logging.INFO
        assert message == "Performance: test API > get completed in 1.23s"
        assert logger.log.call_args.kwargs["extra"]["metadata"] == {
            "operation": "test API > get",
            "duration": 1.234,
            "attempts": 2,
        }

    def test_default_level_is_debug(self):
        logger = MagicMock()

        log_performance(logger, "op", 0.5)

        assert logger.log.call_args.args[0] == logging.DEBUG
