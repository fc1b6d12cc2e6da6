"""
IBOV Quant Request Composer

### ARCHITECTURAL CONTEXT
Node ID: agents.composer
Builds the natural-language instruction plus invocation settings for one
operation. Pure function of its inputs: the current date is injected by the
caller so the same inputs always give the same prompt.

### DESIGN DECISIONS
- Preferred sources (Yahoo Finance, Investing.com) named in every prompt so
  search grounding cites them
- Thresholds stated numerically (|Z| > 2.0, ADF > 90) rather than in prose
- Scan asks for 5-8 pairs; analysis asks for 30-50 points per series
- Declared output schemas mirror the ScannedPair / DetailedAnalysis wire
  shapes minus the fields the orchestrator stamps locally
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ibov_quant.core.models import AnalyzePair, Operation, ScanMarket

SCAN_TEMPERATURE = 0.4
ANALYSIS_TEMPERATURE = 0.3

MIN_SCAN_PAIRS = 5
MAX_SCAN_PAIRS = 8
Z_SCORE_THRESHOLD = 2.0
ADF_HIGH_CONFIDENCE = 90


@dataclass(frozen=True)
class EngineRequest:
    """Everything the engine needs for one call."""

    prompt: str
    search_grounding: bool = True
    temperature: float = SCAN_TEMPERATURE
    response_schema: dict[str, Any] | None = field(default=None)


# ─── Declared output schemas ─────────────────────────────────────────

_CHART_SERIES_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "date": {"type": "string"},
            "value": {"type": "number"},
        },
        "required": ["date", "value"],
    },
}

SCAN_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "assetY": {"type": "string"},
            "assetX": {"type": "string"},
            "adfConfidence": {"type": "number"},
            "currentZScore": {"type": "number"},
            "halfLife": {"type": "integer"},
        },
        "required": ["assetY", "assetX", "adfConfidence", "currentZScore", "halfLife"],
    },
}

ANALYSIS_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "residuals": _CHART_SERIES_SCHEMA,
        "betaRotation": _CHART_SERIES_SCHEMA,
        "halfLife": {"type": "integer"},
        "hurstExponent": {"type": "number"},
        "adfConfidence": {"type": "number"},
        "currentZScore": {"type": "number"},
        "interpretation": {"type": "string"},
    },
    "required": [
        "residuals", "betaRotation", "halfLife", "hurstExponent",
        "adfConfidence", "currentZScore", "interpretation",
    ],
}


def format_today(today: date) -> str:
    """Brazilian date format, as B3 and the cited sources print it."""
    return today.strftime("%d/%m/%Y")


def build_scan_prompt(operation: ScanMarket, today: date) -> str:
    if operation.watchlist:
        universe = f"Consider this list of IBOVESPA stocks: {operation.watchlist}"
    else:
        universe = "Consider the main IBOVESPA stocks."

    return (
        f"Today is {format_today(today)}. You are an expert Long & Short pairs trading system "
        f"for the Brazilian stock market (B3).\n\n"
        f"{universe}\n"
        f"Analysis period: {operation.period}.\n\n"
        f"PHASE 1: DATA COLLECTION (Yahoo Finance & Investing.com)\n"
        f"Search now for TODAY's quotes and price changes of the stocks above.\n"
        f"Prefer **Yahoo Finance** and **Investing.com** as sources.\n"
        f"Look for assets that moved in divergent directions today (one rose while its "
        f"usual partner fell, or one rose much more than the other).\n\n"
        f"PHASE 2: SIMULATED QUANTITATIVE ANALYSIS\n"
        f"Based on the REAL moves found in those sources, select {MIN_SCAN_PAIRS} to "
        f"{MAX_SCAN_PAIRS} pairs that are probably decorrelated right now.\n"
        f"For each pair, produce statistics CONSISTENT with the intensity of the divergence found.\n\n"
        f"OUTPUT RULES:\n"
        f"- Return ONLY a plain JSON array, no commentary.\n"
        f"- currentZScore must be > {Z_SCORE_THRESHOLD} or < -{Z_SCORE_THRESHOLD} for pairs "
        f"with strong divergence today.\n"
        f"- adfConfidence (0-100) must be high (>{ADF_HIGH_CONFIDENCE}) for historically "
        f"correlated pairs (e.g. ITUB4/BBDC4, PETR4/PRIO3).\n"
        f"- assetY and assetX must be different tickers.\n\n"
        f"JSON format (example):\n"
        f"[\n"
        f'  {{"assetY": "PETR4", "assetX": "PRIO3", "adfConfidence": 96, '
        f'"currentZScore": 2.35, "halfLife": 8}}\n'
        f"]"
    )


def build_analysis_prompt(operation: AnalyzePair, today: date) -> str:
    y, x = operation.asset_y, operation.asset_x
    return (
        f"Today is {format_today(today)}. Analyze the pair Long {y} x Short {x} "
        f"over the period {operation.period}.\n\n"
        f"1. USE GOOGLE SEARCH to find the most recent closing price (today or yesterday) "
        f"of both assets on **Yahoo Finance** or **Investing.com**.\n"
        f"2. Check whether relevant news affected either of them today on those platforms.\n\n"
        f"3. DATA GENERATION:\n"
        f"Based on the REAL prices found, generate a simulated time series of residuals "
        f"(Z-Score) and Beta Rotation that leads to the current scenario.\n"
        f"If the sources say {y} rose and {x} fell, the residual chart must show a recent spike.\n\n"
        f"Return ONLY plain JSON (no markdown) in exactly this format:\n"
        f"{{\n"
        f'  "residuals": [{{"date": "DD/MM", "value": 1.2}}],\n'
        f'  "betaRotation": [{{"date": "DD/MM", "value": 0.8}}],\n'
        f'  "halfLife": 12,\n'
        f'  "hurstExponent": 0.45,\n'
        f'  "adfConfidence": 98,\n'
        f'  "currentZScore": 2.3,\n'
        f'  "interpretation": "..."\n'
        f"}}\n\n"
        f"Field rules:\n"
        f"- residuals: 30 to 50 points; the last point must equal currentZScore.\n"
        f"- betaRotation: 30 to 50 points.\n"
        f"- halfLife: integer number of days. hurstExponent: float. adfConfidence: integer 0-100.\n"
        f"- interpretation: explain the current mispricing citing the data found on "
        f"Yahoo Finance or Investing.com."
    )


def compose_request(
    operation: Operation,
    today: date,
    *,
    search_grounding: bool = True,
    schema_mode: bool = False,
    scan_temperature: float = SCAN_TEMPERATURE,
    analysis_temperature: float = ANALYSIS_TEMPERATURE,
) -> EngineRequest:
    """Build the EngineRequest for a scan or a pair analysis."""
    if isinstance(operation, ScanMarket):
        return EngineRequest(
            prompt=build_scan_prompt(operation, today),
            search_grounding=search_grounding,
            temperature=scan_temperature,
            response_schema=SCAN_RESPONSE_SCHEMA if schema_mode else None,
        )
    if isinstance(operation, AnalyzePair):
        return EngineRequest(
            prompt=build_analysis_prompt(operation, today),
            search_grounding=search_grounding,
            temperature=analysis_temperature,
            response_schema=ANALYSIS_RESPONSE_SCHEMA if schema_mode else None,
        )
    raise TypeError(f"Unknown operation: {operation!r}")
