"""Tests for the structured logging system (approval_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from approval_kernel.domain.approval import ContractStatus
from approval_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
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
    """Parse all JSON log lines from a stream."""
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
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "approval_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("approval_decided", extra={"step": 2, "outcome": "APPROVED"})

        record = _parse_log(stream)
        assert record["step"] == 2
        assert record["outcome"] == "APPROVED"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", contract_id="ctr-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["contract_id"] == "ctr-456"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Approval kernel exceptions carry .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from approval_kernel.exceptions import OutOfSequenceError

        try:
            raise OutOfSequenceError("ctr-1", 3, 1)
        except OutOfSequenceError:
            logger.error("decision_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "OUT_OF_SEQUENCE"
        assert record["exc_type"] == "OutOfSequenceError"
        assert record["exc_step_number"] == 3
        assert record["exc_blocking_step"] == 1

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "contract_id" not in record

    def test_uuid_decimal_and_enum_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info(
            "with_values",
            extra={"approval_id": uid, "amount": Decimal("10.50"), "status": ContractStatus.APPROVED},
        )

        record = _parse_log(stream)
        assert record["approval_id"] == str(uid)
        assert record["amount"] == "10.50"
        assert record["status"] == "APPROVED"

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
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="y")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "correlation_id" not in LogContext.get_all()
        with LogContext.bind(correlation_id="temp"):
            assert LogContext.get_all()["correlation_id"] == "temp"
        assert "correlation_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(correlation_id="c", actor_id=None):
            assert LogContext.get_all() == {"correlation_id": "c", "actor_id": "outer"}

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(approval_id="b")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["approval_id"] == "b"

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            contract_id="k",
            actor_id="a",
            approval_id="p",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["correlation_id"] == "c"
        assert ctx["trace_id"] == "t"


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
        # the test runner may attach its own capture handlers here
        root = logging.getLogger("approval_kernel")
        assert h1 in root.handlers
        assert h2 not in root.handlers
        assert sum(isinstance(h.formatter, StructuredFormatter) for h in root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.workflow_engine")
        assert logger.name == "approval_kernel.services.workflow_engine"

    def test_logger_hierarchy(self):
        """Child loggers inherit the approval_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "approval_kernel.deep.nested.module"
