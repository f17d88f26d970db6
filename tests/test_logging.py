"""Tests for the structured logging system (procurement_kernel/logging_config.py)."""

import json
import logging
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO

import pytest

from procurement_kernel.exceptions import InvalidStateError, LockTimeoutError
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from procurement_modules.purchasing.models import RequisitionStatus


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "procurement_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("serial_allocated", extra={"key": "PR:A:202404", "value": 3})

        record = _parse_log(stream)
        assert record["key"] == "PR:A:202404"
        assert record["value"] == 3

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", actor_id="a@example.com")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["actor_id"] == "a@example.com"

    def test_decimal_and_datetime_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "values",
            extra={"total": Decimal("236.00"), "at": datetime(2024, 4, 15, tzinfo=UTC)},
        )

        record = _parse_log(stream)
        assert record["total"] == "236.00"
        assert record["at"].startswith("2024-04-15T00:00:00")

    def test_status_enum_serialized_as_code(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("status", extra={"to_state": RequisitionStatus.APPROVED})

        assert _parse_log(stream)["to_state"] == "PR_APPROVED"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InvalidStateError("PR", "PR-A-202404-0001", "PR_REJECTED", "approve")
        except InvalidStateError:
            get_logger("test").warning("transition_refused", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVALID_STATE"
        assert record["exc_entity_id"] == "PR-A-202404-0001"
        assert record["exc_current_state"] == "PR_REJECTED"

    def test_lock_timeout_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise LockTimeoutError("PAY:202404", 0.5)
        except LockTimeoutError:
            get_logger("test").error("lock", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "LOCK_TIMEOUT"
        assert record["exc_key"] == "PAY:202404"
        assert record["exc_timeout_seconds"] == 0.5

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", entity_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "entity_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(operation="outer")
        with LogContext.bind(operation="inner"):
            assert LogContext.get_all()["operation"] == "inner"
        assert LogContext.get_all()["operation"] == "outer"

    def test_bind_restores_none(self):
        assert "actor_id" not in LogContext.get_all()
        with LogContext.bind(actor_id="temp@example.com"):
            assert LogContext.get_all()["actor_id"] == "temp@example.com"
        assert "actor_id" not in LogContext.get_all()

    def test_site_field(self):
        with LogContext.bind(site="SiteA", operation="create_requisition"):
            assert LogContext.get_all() == {"operation": "create_requisition", "site": "SiteA"}
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="po_number"):
            LogContext.bind(po_number="T-1")
        with pytest.raises(TypeError):
            LogContext.set(po_number="T-1")


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        assert len(logging.getLogger("procurement_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.counter_ledger").name == (
            "procurement_kernel.services.counter_ledger"
        )

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "procurement_kernel.deep.nested.module"

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="warning")
        get_logger("test").info("dropped")
        get_logger("test").warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]

    def test_unknown_level_name(self):
        with pytest.raises(ValueError):
            configure_logging(level="LOUD")
