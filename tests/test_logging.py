"""Tests for the structured logging system (training_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from training_kernel.domain.training import ApprovalStep
from training_kernel.logging_config import (
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
        assert record["logger"] == "training_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("decided", extra={"attempt": 2, "to_step": "thr"})

        record = _parse_log(stream)
        assert record["attempt"] == 2
        assert record["to_step"] == "thr"

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info(
            "values",
            extra={
                "cost": Decimal("2000.50"),
                "step": ApprovalStep.CEO,
                "at": datetime(2024, 1, 1, tzinfo=timezone.utc),
                "modes": frozenset({"overseas"}),
            },
        )

        record = _parse_log(stream)
        assert record["cost"] == "2000.50"
        assert record["step"] == "ceo"
        assert record["at"] == "2024-01-01T00:00:00+00:00"
        assert record["modes"] == ["overseas"]

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", request_id="TR-1")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["request_id"] == "TR-1"

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

    def test_workflow_exception_code_extracted(self):
        """Workflow exceptions carry a .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from training_kernel.exceptions import InvalidTransitionError

        try:
            raise InvalidTransitionError("TR-1", "process", "pending", "thr")
        except InvalidTransitionError:
            logger.error("transition_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVALID_TRANSITION"
        assert record["exc_type"] == "InvalidTransitionError"
        assert record["exc_request_id"] == "TR-1"
        assert record["exc_step"] == "thr"

    def test_request_snapshot_not_logged(self, staff, make_draft):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from training_engines.approval import submit
        from training_kernel.exceptions import StateConflictError

        request = submit(
            make_draft(), staff["emp-1"], request_id="TR-9",
            now=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        try:
            raise StateConflictError("TR-9", 3, request=request)
        except StateConflictError:
            logger.warning("conflict", exc_info=True)

        # submit() emits its own engine trace first
        record = next(r for r in _parse_all_logs(stream) if r["message"] == "conflict")
        assert record["exc_attempts"] == 3
        assert "exc_request" not in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "request_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_uuid", extra={"correlation": uid})

        record = _parse_log(stream)
        assert record["correlation"] == str(uid)

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # debug is below the default INFO level
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
        LogContext.set(correlation_id="x", actor_id="sup-1")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "sup-1"}

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
        assert "request_id" not in LogContext.get_all()
        with LogContext.bind(request_id="TR-1"):
            assert LogContext.get_all()["request_id"] == "TR-1"
        assert "request_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(request_id="TR-1", tenant="acme"):
            assert LogContext.get_all() == {"request_id": "TR-1"}

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(operation="decide")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["operation"] == "decide"

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            request_id="r",
            actor_id="a",
            operation="o",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["operation"] == "o"


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
        root = logging.getLogger("training_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.lifecycle")
        assert logger.name == "training_kernel.services.lifecycle"

    def test_logger_hierarchy(self):
        """Child loggers inherit the training_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "training_kernel.deep.nested.module"

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="WARNING")
        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]
