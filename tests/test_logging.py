"""
Tests for structured JSON logging.

Covers:
- JSON output with timestamp, level, logger and message
- LogContext fields and bind() restore semantics
- Extras never override context fields
- Exception fields from typed kernel errors
"""

import json
import logging

import pytest

from consolidation_kernel.exceptions import TrialBalanceMissingError
from consolidation_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _record(message="hello", exc_info=None, **extra):
    logger = logging.getLogger("consolidation.test")
    record = logger.makeRecord(
        "consolidation.test", logging.INFO, __file__, 1, message, (), exc_info, extra=extra,
    )
    return json.loads(StructuredFormatter().format(record))


class TestStructuredFormatter:
    def test_base_fields(self):
        payload = _record()
        assert payload["level"] == "INFO"
        assert payload["logger"] == "consolidation.test"
        assert payload["message"] == "hello"
        assert "ts" in payload

    def test_extra_fields_included(self):
        payload = _record(step_count=5, amount="10.00")
        assert payload["step_count"] == 5
        assert payload["amount"] == "10.00"

    def test_context_fields_included(self):
        with LogContext.bind(run_id="run-1", step="collecting"):
            payload = _record()
        assert payload["run_id"] == "run-1"
        assert payload["step"] == "collecting"

    def test_extra_does_not_override_context(self):
        with LogContext.bind(run_id="run-1"):
            payload = _record(run_id="other")
        assert payload["run_id"] == "run-1"

    def test_kernel_exception_fields(self):
        from datetime import date

        try:
            raise TrialBalanceMissingError("c-1", date(2024, 3, 31))
        except TrialBalanceMissingError:
            import sys

            payload = _record(exc_info=sys.exc_info())
        assert payload["exc_type"] == "TrialBalanceMissingError"
        assert payload["exc_code"] == "TRIAL_BALANCE_MISSING"
        assert payload["exc_company_id"] == "c-1"
        assert "traceback" in payload


class TestLogContext:
    def test_bind_restores_previous_values(self):
        LogContext.set(run_id="outer")
        with LogContext.bind(run_id="inner", step="translating"):
            assert LogContext.get_all()["run_id"] == "inner"
        assert LogContext.get_all() == {"run_id": "outer"}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            LogContext.set(unknown="x")

    def test_clear(self):
        LogContext.set(group_id="g")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestLoggerNamespace:
    def test_get_logger_prefixes_namespace(self):
        assert get_logger("services.consolidation").name == "consolidation.services.consolidation"

    def test_captured_logs_fixture(self, captured_logs):
        get_logger("test").info("captured_event", extra={"value": 1})
        records = captured_logs()
        assert any(r["message"] == "captured_event" and r["value"] == 1 for r in records)
