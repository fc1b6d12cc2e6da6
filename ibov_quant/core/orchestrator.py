"""
IBOV Quant Query Orchestrator

### ARCHITECTURAL CONTEXT
Node ID: core.orchestrator
Sequences one UI operation end to end:
  compose → engine (one call) → recovery → validation → provenance → assembly.
The only component with network side effects.

### CRITICAL INVARIANTS
1. Missing credential → ConfigurationError at construction, never mid-call.
2. Every failure leaves as a QueryError subclass with a fixed,
   operation-specific message; diagnostic detail goes to the log only.
3. Nothing invalid is ever returned: entities are built by pydantic after the
   shape check, and construction errors become ValidationFailure.
4. No shared mutable state between calls, no retry, no cancellation.
5. One source list is shared by every pair of one scan.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from config.settings import Settings
from ibov_quant.agents.base import StructuredQueryProvider
from ibov_quant.agents.composer import EngineRequest, compose_request
from ibov_quant.agents.engine import ReasoningEngine
from ibov_quant.core.errors import (
    ConfigurationError,
    QueryError,
    RecoveryFailure,
    TransportError,
    ValidationFailure,
)
from ibov_quant.core.models import (
    AnalyzePair,
    DetailedAnalysis,
    Operation,
    RawEngineResponse,
    ScanMarket,
    ScannedPair,
    Source,
)
from ibov_quant.extraction.provenance import extract_sources
from ibov_quant.extraction.recovery import SNIPPET_CHARS, PayloadRecovery
from ibov_quant.extraction.validation import validate_payload
from ibov_quant.monitoring.metrics import MetricsRegistry, get_metrics
from ibov_quant.utils.query_logger import (
    QueryContext,
    clear_query_context,
    generate_query_id,
    get_query_logger,
    set_query_context,
    set_query_phase,
)

logger = get_query_logger(__name__)

CONFIGURATION_MESSAGE = "API key missing or invalid. Check the GEMINI_API_KEY setting."

# User-facing messages per (operation, kind). Configuration is shared.
FALLBACK_MESSAGES: dict[tuple[str, str], str] = {
    ("scan", "transport"): "Could not reach the analysis engine. Check your connection and try again.",
    ("scan", "recovery"): "The model did not return structured data. Try again.",
    ("scan", "validation"): "The model did not return structured data. Try again.",
    ("analyze", "transport"): "Failed to generate the analysis. Check your connection and try again.",
    ("analyze", "recovery"): "Could not generate the charts for this pair. Try again.",
    ("analyze", "validation"): "Could not generate the charts for this pair. Try again.",
}


def user_message(operation: str, kind: str) -> str:
    if kind == "configuration":
        return CONFIGURATION_MESSAGE
    return FALLBACK_MESSAGES[(operation, kind)]


class QueryOrchestrator(StructuredQueryProvider):
    """
    LLM-backed StructuredQueryProvider.

    Node ID: core.orchestrator

    Usage:
        orchestrator = QueryOrchestrator(load_settings())
        pairs = await orchestrator.scan("6 Meses")
        analysis = await orchestrator.analyze("PETR4", "VALE3", "6 Meses")
    """

    def __init__(
        self,
        settings: Settings,
        engine: Any | None = None,
        recovery: PayloadRecovery | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            settings: Explicit configuration; the credential is read from here once.
            engine: Object with `async generate(EngineRequest) -> RawEngineResponse`.
                    Defaults to a litellm ReasoningEngine built from settings.engine.
            recovery: Payload recovery chain (default strategy order if None).
            metrics: Registry to record into (global registry if None).
            clock: Returns "now"; defaults to the market timezone wall clock.
        """
        self._settings = settings
        try:
            self._engine = engine if engine is not None else ReasoningEngine(settings.engine)
        except ConfigurationError as e:
            logger.error("Orchestrator not configured: %s", e.detail)
            raise e.with_message(CONFIGURATION_MESSAGE, operation="init") from e

        self._recovery = recovery or PayloadRecovery()
        self._metrics = metrics or get_metrics()
        tz = ZoneInfo(settings.market_timezone)
        self._clock = clock or (lambda: datetime.now(tz))

    @property
    def provider_id(self) -> str:
        return "gemini"

    # ── Public operations ────────────────────────────────────────

    async def scan(self, period: str, watchlist: str | None = None) -> list[ScannedPair]:
        operation = ScanMarket(period=period, watchlist=watchlist)
        return await self._run(operation, self._assemble_scan)

    async def analyze(self, asset_y: str, asset_x: str, period: str) -> DetailedAnalysis:
        operation = AnalyzePair(asset_y=asset_y, asset_x=asset_x, period=period)
        return await self._run(operation, self._assemble_analysis)

    # ── Pipeline ─────────────────────────────────────────────────

    def compose(self, operation: Operation) -> EngineRequest:
        engine_cfg = self._settings.engine
        return compose_request(
            operation,
            self._clock().date(),
            search_grounding=engine_cfg.search_grounding,
            schema_mode=engine_cfg.schema_mode,
            scan_temperature=engine_cfg.scan_temperature,
            analysis_temperature=engine_cfg.analysis_temperature,
        )

    async def _run(self, operation: Operation, assemble: Callable[[Operation, Any, list[Source]], Any]) -> Any:
        op_name = operation.kind
        set_query_context(QueryContext(generate_query_id(op_name), op_name, "COMPOSE"))
        self._metrics.queries_started.inc(op_name)
        start_time = time.monotonic()
        try:
            request = self.compose(operation)

            set_query_phase("ENGINE")
            with self._metrics.timer(self._metrics.engine_latency):
                raw = await self._call_engine(request)

            set_query_phase("RECOVERY")
            value = self._recover(raw)

            set_query_phase("VALIDATION")
            sources = extract_sources(raw.grounding)
            result = assemble(operation, value, sources)
        except QueryError as e:
            set_query_phase("FAILED")
            self._metrics.query_failures.inc(e.kind)
            logger.warning(
                "%s failed (%s): %s %s", op_name, e.kind, e.message, e.detail,
                extra={"error_kind": e.kind, "detail": e.detail},
            )
            raise e.with_message(user_message(op_name, e.kind), op_name) from e
        finally:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.debug("%s finished in %.0fms", op_name, latency_ms, extra={"latency_ms": latency_ms})
            clear_query_context()

        self._metrics.queries_succeeded.inc(op_name)
        return result

    async def _call_engine(self, request: EngineRequest) -> RawEngineResponse:
        try:
            return await self._engine.generate(request)
        except QueryError:
            raise
        except Exception as e:
            # Injected engines may raise anything; nothing raw crosses the boundary
            raise TransportError("Engine call failed", detail=f"{type(e).__name__}: {e}") from e

    def _recover(self, raw: RawEngineResponse) -> Any:
        extraction = self._recovery.recover(raw.text)
        if extraction is None:
            raise RecoveryFailure(
                "No structured value in engine response",
                detail=raw.text[:SNIPPET_CHARS],
            )
        self._metrics.recovery_strategy_hits.inc(extraction.strategy)
        logger.debug("Payload recovered via %s", extraction.strategy, extra={"strategy": extraction.strategy})
        return extraction.value

    # ── Assembly ─────────────────────────────────────────────────

    def _assemble_scan(self, operation: ScanMarket, value: Any, sources: list[Source]) -> list[ScannedPair]:
        items = validate_payload(operation, value)
        stamp = int(self._clock().timestamp() * 1000)

        set_query_phase("ASSEMBLY")
        pairs: list[ScannedPair] = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationFailure(
                    "Scan element is not an object",
                    detail=f"element {index} is {type(item).__name__}",
                )
            try:
                pairs.append(
                    ScannedPair.model_validate(
                        {**item, "id": f"pair-{index}-{stamp}", "sources": sources}
                    )
                )
            except ValidationError as e:
                raise ValidationFailure(
                    "Scan element failed validation",
                    detail=f"element {index}: {e.error_count()} errors: {e.errors()[0]['msg']}",
                ) from e

        self._metrics.pairs_returned.inc(len(pairs))
        logger.info("Scan produced %d pairs with %d sources", len(pairs), len(sources))
        return pairs

    def _assemble_analysis(self, operation: AnalyzePair, value: Any, sources: list[Source]) -> DetailedAnalysis:
        payload = validate_payload(operation, value)

        set_query_phase("ASSEMBLY")
        try:
            analysis = DetailedAnalysis.model_validate(
                {
                    **payload,
                    "pair": operation.label,
                    "lastUpdated": self._clock().strftime("%H:%M:%S"),
                    "sources": sources,
                }
            )
        except ValidationError as e:
            raise ValidationFailure(
                "Analysis failed validation",
                detail=f"{e.error_count()} errors: {e.errors()[0]['msg']}",
            ) from e

        logger.info(
            "Analysis for %s: %d residual points, z=%.2f",
            analysis.pair, len(analysis.residuals), analysis.current_z_score,
        )
        return analysis
