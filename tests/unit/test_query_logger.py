"""
IBOV Quant Tests: Structured Logging & Query Lifecycle Tracing

Node ID: tests.unit.test_query_logger
Graph Link: tested_by → utils.logging

Tests cover:
- Query context creation and propagation via contextvars
- JSON log formatter output structure
- Correlation ID generation format
- Context isolation between async tasks
"""

from __future__ import annotations

import asyncio
import io
import json
import logging
import sys

import pytest

from ibov_quant.extraction.recovery import recover_payload
from ibov_quant.utils.query_logger import (
    NAMESPACE,
    QueryContext,
    generate_query_id,
    set_query_context,
    set_query_phase,
    get_query_context,
    clear_query_context,
    JsonFormatter,
    get_query_logger,
    set_log_level,
)


class TestQueryIdGeneration:
    """Query ID format: UUID4-prefix + operation."""

    def test_generates_with_operation(self):
        qid = generate_query_id("scan")
        assert qid.endswith("-SCAN")
        prefix = qid.split("-SCAN")[0]
        assert len(prefix) == 8

    def test_unique_ids(self):
        ids = {generate_query_id("analyze") for _ in range(100)}
        assert len(ids) == 100

    def test_sanitizes_operation(self):
        qid = generate_query_id("pair analysis")
        assert "PAIR_ANALYSIS" in qid


class TestQueryContext:
    """Context propagation via contextvars."""

    def test_set_and_get_context(self):
        ctx = QueryContext(query_id="abc123-SCAN", operation="scan", phase="COMPOSE")
        set_query_context(ctx)
        retrieved = get_query_context()
        assert retrieved is not None
        assert retrieved.query_id == "abc123-SCAN"
        clear_query_context()

    def test_phase_advances(self):
        set_query_context(QueryContext(query_id="q-SCAN", operation="scan", phase="COMPOSE"))
        set_query_phase("RECOVERY")
        ctx = get_query_context()
        assert ctx.phase == "RECOVERY"
        assert ctx.query_id == "q-SCAN"
        clear_query_context()

    def test_phase_without_context_is_noop(self):
        clear_query_context()
        set_query_phase("ENGINE")
        assert get_query_context() is None

    def test_default_context_is_none(self):
        clear_query_context()
        assert get_query_context() is None

    @pytest.mark.asyncio
    async def test_context_isolated_between_tasks(self):
        """A scan and a drill-down running together keep separate contexts."""
        results = {}

        async def task(operation: str, key: str):
            ctx = QueryContext(query_id=f"id-{operation}", operation=operation, phase="ENGINE")
            set_query_context(ctx)
            await asyncio.sleep(0.01)
            retrieved = get_query_context()
            results[key] = retrieved.operation if retrieved else None

        await asyncio.gather(
            task("scan", "a"),
            task("analyze", "b"),
        )
        assert results["a"] == "scan"
        assert results["b"] == "analyze"
        clear_query_context()


class TestJsonFormatter:

    @pytest.fixture
    def formatter(self) -> JsonFormatter:
        return JsonFormatter()

    def test_output_is_valid_json(self, formatter):
        record = logging.LogRecord(
            name="test", level=logging.INFO, pathname="", lineno=0,
            msg="Hello world", args=(), exc_info=None,
        )
        parsed = json.loads(formatter.format(record))
        assert parsed["msg"] == "Hello world"
        assert parsed["level"] == "INFO"
        assert "ts" in parsed

    def test_includes_query_context_when_set(self, formatter):
        set_query_context(QueryContext(query_id="xyz-ANALYZE", operation="analyze", phase="VALIDATION"))
        record = logging.LogRecord(
            name="validation", level=logging.WARNING, pathname="", lineno=0,
            msg="residuals missing", args=(), exc_info=None,
        )
        parsed = json.loads(formatter.format(record))
        assert parsed["query_id"] == "xyz-ANALYZE"
        assert parsed["operation"] == "analyze"
        assert parsed["phase"] == "VALIDATION"
        clear_query_context()

    def test_no_query_context_omits_fields(self, formatter):
        clear_query_context()
        record = logging.LogRecord(
            name="system", level=logging.WARNING, pathname="", lineno=0,
            msg="idle", args=(), exc_info=None,
        )
        parsed = json.loads(formatter.format(record))
        assert "query_id" not in parsed

    def test_pipeline_fields_are_top_level_keys(self, formatter):
        record = logging.LogRecord(
            name="ibov_quant.core.orchestrator", level=logging.WARNING, pathname="", lineno=0,
            msg="scan failed", args=(), exc_info=None,
        )
        record.error_kind = "recovery"
        record.strategy = "json_fence"
        record.latency_ms = 1250.4567
        parsed = json.loads(formatter.format(record))
        assert parsed["error_kind"] == "recovery"
        assert parsed["strategy"] == "json_fence"
        assert parsed["latency_ms"] == 1250.5

    def test_unlisted_extras_ignored(self, formatter):
        record = logging.LogRecord(
            name="test", level=logging.INFO, pathname="", lineno=0,
            msg="noise", args=(), exc_info=None,
        )
        record.unserializable = object()
        record.custom = "value"
        parsed = json.loads(formatter.format(record))
        assert "unserializable" not in parsed
        assert "custom" not in parsed
        assert "error_kind" not in parsed

    def test_exception_text_included(self, formatter):
        try:
            raise ValueError("bad payload")
        except ValueError:
            record = logging.LogRecord(
                name="test", level=logging.ERROR, pathname="", lineno=0,
                msg="boom", args=(), exc_info=sys.exc_info(),
            )
        parsed = json.loads(formatter.format(record))
        assert parsed["exception"] == "ValueError: bad payload"


class TestGetQueryLogger:

    def test_prefixes_bare_names(self):
        lg = get_query_logger("test.module")
        assert lg.name == "ibov_quant.test.module"

    def test_keeps_package_module_names(self):
        lg = get_query_logger("ibov_quant.core.orchestrator")
        assert lg.name == "ibov_quant.core.orchestrator"

    def test_single_json_handler_on_namespace(self):
        get_query_logger("test.handlers")
        lg = get_query_logger("test.handlers")
        namespace = logging.getLogger(NAMESPACE)
        json_handlers = [h for h in namespace.handlers if isinstance(h.formatter, JsonFormatter)]
        assert len(json_handlers) == 1
        assert namespace.propagate is False
        assert lg.handlers == []
        assert lg.level == logging.NOTSET

    def test_namespace_level_governs_module_loggers(self):
        lg = get_query_logger("ibov_quant.extraction.recovery")
        try:
            set_log_level("debug")
            assert lg.isEnabledFor(logging.DEBUG)
            set_log_level(logging.WARNING)
            assert not lg.isEnabledFor(logging.INFO)
        finally:
            set_log_level(logging.INFO)


class TestDiagnosticsReachHandler:

    def test_parse_error_logged_with_strategy(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter())
        namespace = logging.getLogger(NAMESPACE)
        namespace.addHandler(handler)
        set_log_level(logging.DEBUG)
        try:
            assert recover_payload("```json\n{broken\n```") is None
        finally:
            namespace.removeHandler(handler)
            set_log_level(logging.INFO)

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        parse_errors = [line for line in lines if line["msg"].startswith("Strategy json_fence")]
        assert len(parse_errors) == 1
        assert parse_errors[0]["level"] == "DEBUG"
        assert parse_errors[0]["strategy"] == "json_fence"
        assert parse_errors[0]["detail"]
        assert lines[-1]["level"] == "WARNING"
        assert lines[-1]["text_length"] == len("```json\n{broken\n```")
