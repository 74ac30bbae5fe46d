"""Tests for Logfire initialization."""

import logging
from unittest.mock import patch

from mongorepo import __version__
from mongorepo.config import Settings
from mongorepo.observability import initialize_logfire


def test_disabled_without_token() -> None:
    with patch("mongorepo.observability.logfire") as mock_logfire:
        assert initialize_logfire(Settings(logfire_token="")) is False
        mock_logfire.configure.assert_not_called()


def test_configures_and_instruments_pymongo() -> None:
    handler = logging.NullHandler()
    root_logger = logging.getLogger()

    with patch("mongorepo.observability.logfire") as mock_logfire:
        mock_logfire.LogfireLoggingHandler.return_value = handler
        try:
            assert initialize_logfire(Settings(logfire_token="test-token")) is True
            assert handler in root_logger.handlers
        finally:
            root_logger.removeHandler(handler)

    mock_logfire.configure.assert_called_once_with(
        token="test-token",
        service_name="mongorepo",
        service_version=__version__,
    )
    mock_logfire.instrument_pymongo.assert_called_once_with()


def test_configuration_failure_is_not_fatal() -> None:
    with patch("mongorepo.observability.logfire") as mock_logfire:
        mock_logfire.configure.side_effect = RuntimeError("bad token")

        assert initialize_logfire(Settings(logfire_token="broken")) is False
        mock_logfire.instrument_pymongo.assert_not_called()
