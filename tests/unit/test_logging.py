"""Unit tests for the logging abstraction and scan timing."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from dsc_bridge.correlation import trace_scope
from dsc_bridge.instrumentation import report_duration, timed_async
from dsc_bridge.logging_abstraction import (
    DscLogger,
    HumanReadableFormatter,
    JSONFormatter,
    get_logger,
    set_package_level,
)


def _record(trace: str | None = "t000042", msg: str = "Published %s", **context: object) -> logging.LogRecord:
    record = logging.LogRecord("dsc_bridge.test", logging.INFO, __file__, 10, msg, ("zone9",), None)
    record.trace = trace
    record.context = context
    return record


class _Capture(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class TestFormatters:
    def test_json_formatter(self):
        output = json.loads(JSONFormatter().format(_record(topic="alarmsys/get/zone9")))

        assert output["message"] == "Published zone9"
        assert output["level"] == "INFO"
        assert output["trace"] == "t000042"
        assert output["context"] == {"topic": "alarmsys/get/zone9"}

    def test_json_formatter_omits_empty_context(self):
        output = json.loads(JSONFormatter().format(_record()))

        assert "context" not in output

    def test_human_formatter_includes_trace_and_context(self):
        output = HumanReadableFormatter().format(_record(partition=2))

        assert "[t000042]" in output
        assert output.endswith("Published zone9 | partition=2")

    def test_human_formatter_without_trace(self):
        assert "[-------]" in HumanReadableFormatter().format(_record(trace=None))


class TestLogger:
    def test_extra_becomes_context_with_current_trace(self):
        capture = _Capture()
        logger = get_logger("dsc_bridge.tests.context")
        logger.logger.addHandler(capture)
        try:
            with trace_scope("t000003.c1"):
                logger.warning("Command %s dropped", "9A", extra={"partition": 9})
        finally:
            logger.logger.removeHandler(capture)

        [record] = capture.records
        assert record.getMessage() == "Command 9A dropped"
        assert record.trace == "t000003.c1"
        assert record.context == {"partition": 9}

    def test_get_logger_installs_handlers_once_on_package(self):
        first = get_logger("dsc_bridge.tests.reuse")
        package = logging.getLogger("dsc_bridge")
        handler_count = len(package.handlers)

        second = get_logger("dsc_bridge.tests.reuse")

        assert isinstance(second, DscLogger)
        assert len(package.handlers) == handler_count
        assert first.logger.handlers == []

    def test_set_package_level_reaches_all_bridge_loggers(self):
        logger = get_logger("dsc_bridge.tests.levels")
        outsider = logging.getLogger("not_dsc_bridge.tests")
        outsider.setLevel(logging.WARNING)

        set_package_level(logging.DEBUG)
        try:
            assert logger.logger.getEffectiveLevel() == logging.DEBUG
            assert outsider.level == logging.WARNING
        finally:
            set_package_level(logging.INFO)


class TestTiming:
    @pytest.mark.asyncio
    async def test_returns_wrapped_result(self):
        @timed_async("unit_op")
        async def operation(value: int) -> int:
            return value * 2

        assert await operation(21) == 42

    def test_slow_operation_warns(self):
        with patch("dsc_bridge.instrumentation.logger") as mock_logger:
            assert report_duration("status_scan", 250.0, 100) is True

        assert mock_logger.log.call_args.args[0] == logging.WARNING
        assert mock_logger.log.call_args.kwargs["extra"]["duration_ms"] == 250.0

    def test_fast_operation_logs_debug(self):
        with patch("dsc_bridge.instrumentation.logger") as mock_logger:
            assert report_duration("status_scan", 5.0, 100) is False

        assert mock_logger.log.call_args.args[0] == logging.DEBUG

    @pytest.mark.asyncio
    async def test_disabled_tracking_skips_timing(self):
        @timed_async("unit_op")
        async def operation() -> str:
            return "done"

        with (
            patch("dsc_bridge.const.DSC_PERF_TRACKING", False),
            patch("dsc_bridge.instrumentation.report_duration") as mock_report,
        ):
            assert await operation() == "done"

        mock_report.assert_not_called()

    @pytest.mark.asyncio
    async def test_duration_reported_on_error(self):
        @timed_async("unit_op")
        async def operation() -> None:
            msg = "broker gone"
            raise ConnectionError(msg)

        with (
            patch("dsc_bridge.const.DSC_PERF_TRACKING", True),
            patch("dsc_bridge.instrumentation.report_duration") as mock_report,
            pytest.raises(ConnectionError),
        ):
            await operation()

        assert mock_report.call_args.args[0] == "unit_op"
