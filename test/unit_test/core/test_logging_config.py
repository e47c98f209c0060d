"""Unit tests for the logging configuration module."""

import logging
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from operone_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


def _console_handler() -> logging.Handler:
    root_logger = logging.getLogger()
    handler = next(
        (h for h in root_logger.handlers if type(h) is logging.StreamHandler),
        None,
    )
    assert handler is not None
    return handler


class TestSetupLogging:
    """Test setup_logging levels, formats and handlers."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("WARNING", logging.WARNING),
            ("error", logging.ERROR),
        ],
    )
    def test_console_level(self, log_level, expected_level):
        setup_logging(log_level=log_level, enable_file=False)
        assert _console_handler().level == expected_level

    @pytest.mark.parametrize(
        "log_format,expected_format",
        [
            ("simple", SIMPLE_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("json", JSON_FORMAT),
            ("unknown", DETAILED_FORMAT),
        ],
    )
    def test_console_format(self, log_format, expected_format):
        setup_logging(log_format=log_format, enable_file=False)
        formatter = _console_handler().formatter
        assert formatter._fmt == expected_format
        assert formatter.datefmt == "%Y-%m-%d %H:%M:%S"

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging(enable_file=False)
        setup_logging(enable_file=False)
        assert len(logging.getLogger().handlers) == 1

    def test_file_handler_when_enabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir) / "logs"
            with patch("operone_ai.core.logging_config.LOG_FILE_DIR", str(log_dir)), patch(
                "operone_ai.core.logging_config.ENABLE_FILE_LOGGING", True
            ):
                setup_logging(log_level="ERROR", enable_file=True)

                file_handler = next(
                    (h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)),
                    None,
                )
                assert file_handler is not None
                # File handler always logs DEBUG
                assert file_handler.level == logging.DEBUG
                assert (log_dir / "operone_ai.log").exists()
                file_handler.close()

            setup_logging(enable_file=False)

    def test_no_file_handler_when_disabled(self):
        setup_logging(enable_file=False)
        assert not any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)

    def test_module_levels_applied(self):
        setup_logging(enable_file=False)
        for module_name, module_level in MODULE_LOG_LEVELS.items():
            assert logging.getLogger(module_name).level == logging.getLevelName(module_level)


class TestModuleLogLevels:
    def test_only_package_and_used_libraries_are_tuned(self):
        third_party = {name for name in MODULE_LOG_LEVELS if not name.startswith("operone_ai")}
        assert third_party == {"asyncio", "langgraph"}


class TestGetLogger:
    def test_returns_named_logger(self):
        logger = get_logger("operone_ai.agent_core.tools.executor")
        assert logger is logging.getLogger("operone_ai.agent_core.tools.executor")
