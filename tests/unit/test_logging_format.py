"""Tests for the shared logging format.

Target format: 2026-01-06T14:05:52Z [source] LEVEL message
"""

from __future__ import annotations

import io
import logging
import re
from datetime import datetime
from unittest.mock import patch

from grouping.logging_config import (
    TRACE,
    HealthCheckFilter,
    ISO8601Formatter,
    configure_logging,
    get_logger,
)


def make_record(msg: str, level: int = logging.INFO, args: tuple = (), name: str = "test") -> logging.LogRecord:
    return logging.LogRecord(name=name, level=level, pathname="", lineno=0, msg=msg, args=args, exc_info=None)


class TestISO8601Formatter:
    """Test the ISO8601 formatter produces correct output."""

    def test_format_matches_pattern(self):
        """Verify output matches: 2026-01-06T14:05:52Z [source] LEVEL message"""
        output = ISO8601Formatter(source="grouping").format(make_record("Placed 42 campers"))

        pattern = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z \[grouping\] INFO Placed 42 campers$"
        assert re.match(pattern, output), f"Output '{output}' doesn't match expected format"

    def test_timestamp_is_utc(self):
        output = ISO8601Formatter(source="api").format(make_record("Test"))
        timestamp_str = output.split(" ")[0]

        assert timestamp_str.endswith("Z"), f"Timestamp '{timestamp_str}' should end with Z"
        assert datetime.fromisoformat(timestamp_str.replace("Z", "+00:00")) is not None

    def test_level_names(self):
        formatter = ISO8601Formatter(source="test")
        for level, level_name in [
            (TRACE, "TRACE"),
            (logging.DEBUG, "DEBUG"),
            (logging.WARNING, "WARNING"),
            (logging.ERROR, "ERROR"),
        ]:
            assert f" {level_name} " in formatter.format(make_record("msg", level=level))

    def test_message_formatting_with_args(self):
        output = ISO8601Formatter(source="api").format(make_record("Camp %s has %d groups", args=("c1", 3)))
        assert "Camp c1 has 3 groups" in output


class TestHealthCheckFilter:
    """Test health check log filtering."""

    def test_suppresses_health_endpoints_at_info_level(self):
        health_filter = HealthCheckFilter()
        for path in ("/health", "/api/health"):
            record = make_record(f'127.0.0.1:56948 - "GET {path} HTTP/1.1" 200 OK', name="uvicorn.access")
            assert health_filter.filter(record) is False

    def test_allows_other_endpoints(self):
        record = make_record('127.0.0.1:56948 - "GET /api/grouping/camp-1 HTTP/1.1" 200 OK', name="uvicorn.access")
        assert HealthCheckFilter().filter(record) is True

    def test_suppresses_head_and_query_string(self):
        record = make_record('127.0.0.1:56948 - "HEAD /health?full=1 HTTP/1.1" 200 OK', name="uvicorn.access")
        assert HealthCheckFilter().filter(record) is False

    def test_allows_paths_that_only_start_with_health(self):
        record = make_record('127.0.0.1:56948 - "GET /healthcheck-report HTTP/1.1" 200 OK', name="uvicorn.access")
        assert HealthCheckFilter().filter(record) is True

    def test_allows_health_at_debug_level(self):
        record = make_record('127.0.0.1:56948 - "GET /health HTTP/1.1" 200 OK', level=logging.DEBUG)
        assert HealthCheckFilter().filter(record) is True


class TestConfigureLogging:
    """Test the configure_logging function."""

    def test_debug_flag_sets_debug(self):
        assert configure_logging(source="test", debug=True).level == logging.DEBUG

    def test_default_level_is_info(self):
        with patch.dict("os.environ", {}, clear=True):
            assert configure_logging(source="test", debug=False).level == logging.INFO

    def test_trace_from_environment(self):
        with patch.dict("os.environ", {"LOG_LEVEL": "trace"}):
            assert configure_logging(source="test").level == TRACE

    def test_explicit_level_wins(self):
        with patch.dict("os.environ", {"LOG_LEVEL": "DEBUG"}):
            assert configure_logging(source="test", level=logging.WARNING).level == logging.WARNING

    def test_unknown_level_name_falls_back(self):
        with patch.dict("os.environ", {"LOG_LEVEL": "chatty"}):
            assert configure_logging(source="test", debug=True).level == logging.DEBUG

    def test_solver_level_from_environment(self):
        """SOLVER_LOG_LEVEL traces the solver without lowering the root level."""
        try:
            with patch.dict("os.environ", {"SOLVER_LOG_LEVEL": "TRACE"}, clear=True):
                root = configure_logging(source="test")

            assert root.level == logging.INFO
            assert logging.getLogger("grouping.solver").level == TRACE
            assert logging.getLogger("grouping.solver.auto_grouper").isEnabledFor(TRACE)
            assert not logging.getLogger("grouping.service").isEnabledFor(logging.DEBUG)
        finally:
            with patch.dict("os.environ", {}, clear=True):
                configure_logging(source="test")

        assert logging.getLogger("grouping.solver").level == logging.NOTSET

    def test_get_logger_returns_named_logger(self):
        assert get_logger("grouping.solver").name == "grouping.solver"


class TestIntegration:
    """Integration tests for the logging system."""

    def test_end_to_end_log_output(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)

        configure_logging(source="integration_test", debug=False)
        logger = get_logger("test")

        root = logging.getLogger()
        root.handlers.clear()
        handler.setFormatter(ISO8601Formatter(source="integration_test"))
        root.addHandler(handler)

        logger.info("Test integration message")

        output = stream.getvalue()
        pattern = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z \[integration_test\] INFO Test integration message\n$"
        assert re.match(pattern, output), f"Output '{output}' doesn't match expected format"

    def test_trace_method(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(ISO8601Formatter(source="trace_test"))

        configure_logging(source="trace_test", level=TRACE)
        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(handler)

        get_logger("test.trace").trace("candidate score %d", 7)  # type: ignore[attr-defined]

        assert "TRACE candidate score 7" in stream.getvalue()
