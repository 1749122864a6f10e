"""Tests for the structured logging system (groupbuy_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from groupbuy_kernel.exceptions import TransitionError
from groupbuy_kernel.logging_config import (
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
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "groupbuy_kernel.test"
        assert "ts" in record

    def test_decimal_and_uuid_extras_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        order_id = uuid4()
        get_logger("test").info(
            "settled", extra={"amount": Decimal("527.00"), "order": order_id},
        )

        (record,) = _parse_all_logs(stream)
        assert record["amount"] == "527.00"
        assert record["order"] == str(order_id)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(order_id="o-1", operation="ship"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["order_id"] == "o-1"
        assert inside["operation"] == "ship"
        assert "order_id" not in outside

    def test_exception_fields_flattened(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise TransitionError("order", "o-1", "unpaid", "ship", ("paid_no_deposit",))
        except TransitionError:
            get_logger("test").warning("rejected", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_code"] == "INVALID_TRANSITION"
        assert record["exc_current_status"] == "unpaid"
        assert "traceback" in record


class TestLogContext:

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(colour="blue")

    def test_none_values_ignored(self):
        LogContext.set(order_id="o-1", project_id=None)
        assert LogContext.get_all() == {"order_id": "o-1"}


class TestConfigureLogging:

    def test_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")
        assert len(_parse_all_logs(stream)) == 1
