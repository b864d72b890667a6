import logging
from typing import List
from unittest.mock import Mock

import httpx
import pytest

from edge_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)


class BrokenStrException(Exception):
    """An exception that breaks when __str__ is called."""

    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        return "BrokenStrException(cannot convert to string)"


class MockExceptionGroup(Exception):
    """Stand-in for the groups anyio raises out of task groups."""

    def __init__(self, message: str, exceptions: List[Exception]):
        super().__init__(message)
        self.exceptions = exceptions


class TestLogExceptionWithDetails:
    """Test cases for log_exception_with_details function."""

    def setup_method(self):
        self.logger = Mock(spec=logging.Logger)

    def test_normal_exception_logging(self):
        exception = httpx.ConnectError("Connection refused")

        log_exception_with_details(self.logger, "[Proxy]", exception)

        self.logger.log.assert_called_once_with(
            logging.ERROR,
            "[Proxy] Exception: Connection refused",
            exc_info=exception,
        )

    def test_custom_level(self):
        exception = ValueError("Warning level error")

        log_exception_with_details(self.logger, "[Proxy]", exception, logging.WARNING)

        assert self.logger.log.call_args[0][0] == logging.WARNING

    def test_exception_group_logs_each_sub_exception(self):
        group = MockExceptionGroup(
            "unhandled errors in a TaskGroup",
            [httpx.ReadError("reset by peer"), RuntimeError("second")],
        )

        log_exception_with_details(self.logger, "[Proxy]", group)

        assert self.logger.log.call_count == 3
        messages = [call[0][1] for call in self.logger.log.call_args_list]
        assert "2 sub-exceptions" in messages[0]
        assert messages[1] == "[Proxy] Sub-exception 1: ReadError: reset by peer"
        assert messages[2] == "[Proxy] Sub-exception 2: RuntimeError: second"

    def test_broken_str_exception(self):
        log_exception_with_details(self.logger, "[Proxy]", BrokenStrException())

        message = self.logger.log.call_args[0][1]
        assert "BrokenStrException(cannot convert to string)" in message

    def test_logger_failure_resilience(self):
        """A broken logger must not turn into a second failure."""
        broken_logger = Mock(spec=logging.Logger)
        broken_logger.log.side_effect = RuntimeError("Logger is broken!")

        try:
            log_exception_with_details(broken_logger, "[Proxy]", ValueError("x"))
        except RuntimeError:
            pytest.fail("Should not propagate logger exceptions")


class TestFormatExceptionMessage:
    def test_plain_message(self):
        assert format_exception_message(ValueError("boom")) == "boom"

    def test_empty_message_uses_default(self):
        assert (
            format_exception_message(httpx.ConnectError(""), "Failed to proxy request")
            == "Failed to proxy request"
        )

    def test_empty_message_without_default(self):
        assert format_exception_message(ValueError()) == ""

    def test_none(self):
        assert format_exception_message(None, "fallback") == "fallback"
        assert format_exception_message(None) == "None"

    def test_exception_group(self):
        group = MockExceptionGroup("outer", [ValueError("a"), KeyError("b")])

        result = format_exception_message(group)

        assert result.startswith("outer (Sub-exceptions: ")
        assert "ValueError: a" in result
        assert "KeyError: 'b'" in result

    def test_broken_str(self):
        assert (
            format_exception_message(BrokenStrException())
            == "BrokenStrException(cannot convert to string)"
        )
