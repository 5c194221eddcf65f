"""Tests for the structured logging system (billing_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.domain.invoice import InvoiceStatus
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
        assert record["logger"] == "billing_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("payment_applied", extra={"payment_count": 2, "invoice_status": "SENT"})

        record = _parse_log(stream)
        assert record["payment_count"] == 2
        assert record["invoice_status"] == "SENT"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", invoice_id="inv-456")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["invoice_id"] == "inv-456"

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(invoice_id="from-context")
        logger.info("test_msg", extra={"invoice_id": "from-extra"})

        assert _parse_log(stream)["invoice_id"] == "from-context"

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

    def test_billing_exception_code_extracted(self):
        """Billing kernel exceptions carry .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from billing_kernel.exceptions import OverpaymentError

        try:
            raise OverpaymentError("inv-1", Decimal("200"), Decimal("137.50"))
        except OverpaymentError:
            logger.error("payment_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "OVERPAYMENT"
        assert record["exc_type"] == "OverpaymentError"
        assert record["exc_invoice_id"] == "inv-1"
        assert record["exc_amount"] == "200"
        assert record["exc_amount_due"] == "137.50"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "invoice_id" not in record

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info(
            "with_values",
            extra={
                "entry_id": uid,
                "amount_due": Decimal("87.50"),
                "paid_date": date(2024, 3, 15),
                "to_status": InvoiceStatus.PAID,
            },
        )

        record = _parse_log(stream)
        assert record["entry_id"] == str(uid)
        assert record["amount_due"] == "87.50"
        assert record["paid_date"] == "2024-03-15"
        assert record["to_status"] == "PAID"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # configured at the default INFO level, so debug is dropped
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
        LogContext.set(correlation_id="x", invoice_id="y")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "invoice_id": "y"}

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
        assert "payment_id" not in LogContext.get_all()
        with LogContext.bind(payment_id="temp"):
            assert LogContext.get_all()["payment_id"] == "temp"
        assert "payment_id" not in LogContext.get_all()

    def test_bind_stringifies_uuids(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid):
            assert LogContext.get_all()["actor_id"] == str(uid)

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(tenant="t1", project_id="p1"):
            assert LogContext.get_all() == {"project_id": "p1"}

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["actor_id"] == "b"

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            invoice_id="i",
            project_id="p",
            payment_id="y",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["correlation_id"] == "c"
        assert ctx["payment_id"] == "y"


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
        root = logging.getLogger("billing_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("engines.ledger")
        assert logger.name == "billing_kernel.engines.ledger"

    def test_logger_hierarchy(self):
        """Child loggers inherit the billing_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "billing_kernel.deep.nested.module"
