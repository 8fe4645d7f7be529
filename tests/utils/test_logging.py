"""Tests for the logging utility module."""

from unittest.mock import MagicMock

import pytest
import structlog


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_default(self):
        """Test configure_logging falls back to settings."""
        from pageprobe.utils.logging import configure_logging

        # Should not raise
        configure_logging()

    def test_configure_logging_debug_level(self):
        from pageprobe.utils.logging import configure_logging

        configure_logging(level="DEBUG")

    def test_configure_logging_json_format(self):
        """Test configure_logging with JSON output."""
        from pageprobe.utils.logging import configure_logging

        configure_logging(level="INFO", json_format=True, include_timestamp=False)

    def test_configure_logging_invalid_level(self):
        from pageprobe.utils.logging import configure_logging

        with pytest.raises(AttributeError):
            configure_logging(level="LOUD", json_format=False)


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_with_context(self):
        """Test get_logger binds context."""
        from pageprobe.utils.logging import get_logger

        logger = get_logger("pageprobe.test", selector="#nav", component="inspector")

        assert logger is not None


class TestLogContext:
    """Tests for LogContext class."""

    def test_log_context_binds_and_unbinds(self):
        """Test LogContext binds contextvars only inside the block."""
        from pageprobe.utils.logging import LogContext

        with LogContext(selector="#hero", page_url="http://localhost:3000"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["selector"] == "#hero"
            assert bound["page_url"] == "http://localhost:3000"

        assert "selector" not in structlog.contextvars.get_contextvars()

    def test_log_context_nested(self):
        from pageprobe.utils.logging import LogContext

        with LogContext(outer="a"):
            with LogContext(inner="b"):
                assert structlog.contextvars.get_contextvars()["outer"] == "a"
            assert "inner" not in structlog.contextvars.get_contextvars()


class TestLogOperation:
    """Tests for log_operation context manager."""

    def test_log_operation_success(self):
        """Test the yielded dict is marked successful."""
        from pageprobe.utils.logging import log_operation

        logger = MagicMock()
        with log_operation("capture_element", logger, selector="#hero") as op:
            op["image_size"] = {"width": 660, "height": 98}

        assert op["success"] is True
        assert op["error"] is None
        logger.bind.assert_called_once_with(operation="capture_element", selector="#hero")

    def test_log_operation_failure(self):
        """Test failures are recorded and re-raised."""
        from pageprobe.utils.logging import log_operation

        logger = MagicMock()
        with pytest.raises(RuntimeError):
            with log_operation("inspect", logger) as op:
                raise RuntimeError("page crashed")

        assert op["success"] is False
        assert op["error"] == "page crashed"
        logger.bind.return_value.error.assert_called_once()


class TestSequenceLogger:
    """Tests for SequenceLogger."""

    def test_counts(self):
        from pageprobe.utils.logging import SequenceLogger

        seq_log = SequenceLogger("#signup", step_total=3)
        seq_log.sequence_started(capture_intermediate=True)
        seq_log.step_started(1, "click", "#signup")
        seq_log.step_completed(1, "click", 12)
        seq_log.screenshot_taken(1, "/tmp/shot.png")
        seq_log.scrolled(2, "#footer", visible_after=False)
        seq_log.step_failed(2, "hover", "detached")
        seq_log.sequence_completed("failed", 40)

        assert seq_log.step_count == 1
        assert seq_log.screenshot_count == 1
