"""
IBOV Quant Structured Logging: Query Lifecycle Tracing

### ARCHITECTURAL CONTEXT
Node ID: utils.logging
Every engine query (market scan or pair analysis) gets a correlation ID that
follows it through compose → engine → recovery → validation → assembly.

### RESEARCH BASIS
12-Factor App Logging: treat logs as event streams.
Python contextvars for async-safe query context propagation.

### CRITICAL INVARIANTS
1. Every log line inside a query includes query_id for correlation.
2. JSON output for machine parsing.
3. Context isolated between concurrent async queries.
4. Zero external dependencies (stdlib only).

### LOG LEVELS
- DEBUG: Raw engine text snippets, per-strategy recovery attempts
- INFO: Query start/finish, result counts, latency
- WARNING: Recovery failures, validation failures
- ERROR: Transport and configuration failures
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


# ── Query Context ──────────────────────────────────────────────


@dataclass
class QueryContext:
    """
    Context for a single engine query.
    Propagated through all pipeline stages via contextvars.

    Attributes:
        query_id: Unique correlation ID (UUID4-prefix + operation).
        operation: "scan" or "analyze".
        phase: Current pipeline phase (COMPOSE, ENGINE, RECOVERY,
               VALIDATION, ASSEMBLY, DONE, FAILED).
    """

    query_id: str
    operation: str
    phase: str


_query_context: ContextVar[QueryContext | None] = ContextVar(
    "query_context", default=None
)


def generate_query_id(operation: str) -> str:
    """
    Generate a unique query correlation ID.

    Format: {8-char-hex}-{OPERATION}
    Example: "a1b2c3d4-SCAN"
    """
    prefix = uuid.uuid4().hex[:8]
    safe_operation = operation.replace(".", "_").replace(" ", "_").upper()
    return f"{prefix}-{safe_operation}"


def set_query_context(ctx: QueryContext) -> None:
    """Set the current query context for this async task."""
    _query_context.set(ctx)


def get_query_context() -> QueryContext | None:
    """Get the current query context (None outside a query)."""
    return _query_context.get()


def set_query_phase(phase: str) -> None:
    """Advance the phase of the active query, if any."""
    ctx = _query_context.get()
    if ctx is not None:
        _query_context.set(QueryContext(ctx.query_id, ctx.operation, phase))


def clear_query_context() -> None:
    _query_context.set(None)


# ── JSON Formatter ─────────────────────────────────────────────

# Pipeline fields lifted from `extra=` into top-level keys, in output order
QUERY_FIELDS: tuple[str, ...] = (
    "strategy",
    "error_kind",
    "error_type",
    "detail",
    "latency_ms",
    "model_id",
    "text_length",
    "snippet",
)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: timestamp, level, component, message, the
    active QueryContext and whichever QUERY_FIELDS the call site passed.

    Output format:
    ```json
    {
        "ts": "2026-03-09T17:30:01.123000+00:00",
        "level": "WARNING",
        "component": "ibov_quant.core.orchestrator",
        "msg": "scan failed (recovery)",
        "query_id": "a1b2c3d4-SCAN",
        "operation": "scan",
        "phase": "FAILED",
        "error_kind": "recovery",
        "detail": "Sorry, I could not access..."
    }
    ```
    Other `extra=` keys are ignored so a log line never changes shape with
    the call site.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "msg": record.getMessage(),
        }

        ctx = get_query_context()
        if ctx is not None:
            entry.update(query_id=ctx.query_id, operation=ctx.operation, phase=ctx.phase)

        for key in QUERY_FIELDS:
            value = getattr(record, key, None)
            if value is None:
                continue
            if key == "latency_ms":
                value = round(float(value), 1)
            entry[key] = value

        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            entry["exception"] = f"{type(exc).__name__}: {exc}"

        return json.dumps(entry, default=str, ensure_ascii=False)


# ── Logger Factory ─────────────────────────────────────────────

NAMESPACE = "ibov_quant"


def _namespace_logger() -> logging.Logger:
    """
    The "ibov_quant" logger owns the single JSON handler. Module loggers
    stay at NOTSET and propagate to it, so one level setting governs the
    whole package.
    """
    root = logging.getLogger(NAMESPACE)
    if not any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.propagate = False
        if root.level == logging.NOTSET:
            root.setLevel(logging.INFO)
    return root


def get_query_logger(name: str) -> logging.Logger:
    """
    Get a query-context-aware logger under the package namespace.

    Module paths already under the package keep their name; anything else
    is prefixed with "ibov_quant.".
    """
    _namespace_logger()
    full_name = name if name == NAMESPACE or name.startswith(f"{NAMESPACE}.") else f"{NAMESPACE}.{name}"
    return logging.getLogger(full_name)


def set_log_level(level: int | str) -> None:
    """Apply `level` ("DEBUG", "INFO", ... or a logging constant) to every package logger."""
    if isinstance(level, str):
        level = level.strip().upper()
    _namespace_logger().setLevel(level)
