"""Tests for logging configuration."""

import logging
import sys
from pathlib import Path

import pytest
from loguru import logger

from monsync.config.models import LoggingConfig
from monsync.utils.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_loguru():
    """Reset loguru sinks after each test."""
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestConfigureLogging:
    """Test configure_logging sinks."""

    def test_console_goes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LoggingConfig(level="INFO"))
        logger.info("hello console")

        captured = capsys.readouterr()
        assert "hello console" in captured.err
        assert captured.out == ""

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LoggingConfig(level="WARNING"))
        logger.info("quiet")
        logger.warning("loud")

        err = capsys.readouterr().err
        assert "quiet" not in err
        assert "loud" in err

    def test_json_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LoggingConfig(format="json"))
        logger.info("structured")

        assert '"message": "structured"' in capsys.readouterr().err

    def test_file_sink(self, tmp_path: Path) -> None:
        log_file = tmp_path / "monsync.log"
        configure_logging(LoggingConfig(file=log_file))
        logger.info("to file")
        logger.complete()

        assert "to file" in log_file.read_text()

    def test_stdlib_logging_intercepted(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LoggingConfig(level="INFO"))
        logging.getLogger("aiosqlite").warning("from stdlib")

        assert "from stdlib" in capsys.readouterr().err


class TestGetLogger:
    """Test bound loggers."""

    def test_bound_name(self, log_capture) -> None:
        get_logger("settler").info("bound")
        assert "bound" in log_capture.getvalue()
