"""Tests for logging utilities."""

import logging
from io import StringIO

import numpy as np

from tsforecast.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)
from tsforecast.timeseries.preprocessing import difference


def test_get_logger_returns_logger():
    """Test that get_logger returns a logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name.startswith("tsforecast.")


def test_get_logger_keeps_package_names():
    """Module loggers inside the package are not prefixed twice."""
    assert get_logger("tsforecast.timeseries.selection").name == "tsforecast.timeseries.selection"
    assert get_logger().name == "tsforecast"


def test_get_logger_caching():
    """Test that get_logger caches loggers."""
    logger1 = get_logger("test_module")
    logger2 = get_logger("test_module")
    assert logger1 is logger2


def test_get_logger_different_modules():
    """Test that different modules get different loggers."""
    logger1 = get_logger("module1")
    logger2 = get_logger("module2")
    assert logger1 is not logger2
    assert logger1.name != logger2.name


def test_configure_logging():
    """Test configure_logging function."""
    stream = StringIO()
    logger = get_logger("test_module")
    try:
        configure_logging(level=logging.DEBUG, stream=stream)
        logger.debug("Debug message")
        assert "Debug message" in stream.getvalue()
        assert "tsforecast.test_module" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_library_warnings_reach_configured_stream():
    """Differencing a short series warns through the package logger."""
    stream = StringIO()
    try:
        configure_logging(level=logging.WARNING, stream=stream)
        difference(np.arange(60.0), order=2)
        assert "Stopped differencing" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_set_log_level():
    """Test that set_log_level updates logger levels."""
    logger = get_logger("test_module")

    set_log_level(logging.INFO)
    assert logger.level <= logging.INFO

    set_log_level(logging.WARNING)
    assert logger.level <= logging.WARNING


def test_set_log_level_string():
    """Test that set_log_level accepts string levels."""
    logger = get_logger("test_module")

    set_log_level("DEBUG")
    assert logger.level == logging.DEBUG

    set_log_level("ERROR")
    assert logger.level == logging.ERROR

    set_log_level("WARNING")


def test_logger_does_not_propagate():
    """Test that loggers don't propagate to root logger."""
    logger = get_logger("test_module")
    assert logger.propagate is False


def test_new_loggers_follow_configuration():
    """Loggers created after configure_logging use its stream and level."""
    stream = StringIO()
    try:
        configure_logging(level=logging.INFO, stream=stream)
        get_logger("created_after_configure").info("Late logger")
        assert "Late logger" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)
