"""
IBOV Quant Payload Recovery

### ARCHITECTURAL CONTEXT
Node ID: extraction.recovery
Turns the engine's raw text into one parsed JSON value. The engine's output
format has varied across deployments: plain JSON, markdown-fenced JSON,
JSON wrapped in prose, or schema-constrained JSON with no wrapping at all.

### ALGORITHM
Ordered strategies, strictest/cheapest first, first success wins:
  1. strict          : the whole text
  2. json_fence      : interior of a ```json fenced block
  3. any_fence       : interior of any fenced block
  4. array_literal   : greedy span from the first "[{" to the last "}]"
  5. object_literal  : greedy outermost {...} span
Every strategy is a named, pure `text -> StrategyResult` callable. A parse
error in one step falls through to the next; if all fail the result is None.
The array step only anchors on arrays of objects, so citation markers such
as "[1], [2]" after the payload do not widen its span.

### CRITICAL INVARIANTS
1. Never raises on any input string.
2. All-or-nothing: no partial values.
3. Only objects and arrays count as structured values.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Literal, Protocol, Sequence

from ibov_quant.utils.query_logger import get_query_logger

logger = get_query_logger(__name__)

Outcome = Literal["parsed", "no_match", "parse_error"]

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")
_ARRAY_LITERAL = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")
_OBJECT_LITERAL = re.compile(r"\{[\s\S]*\}")

# Raw text is truncated to this many characters in diagnostic logs
SNIPPET_CHARS = 300


@dataclass(frozen=True)
class StrategyResult:
    """Tagged outcome of one recovery strategy."""

    strategy: str
    outcome: Outcome
    value: Any = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome == "parsed"


@dataclass(frozen=True)
class Extraction:
    """A successfully recovered value and the strategy that produced it."""

    strategy: str
    value: Any


class Strategy(Protocol):
    name: str

    def __call__(self, text: str) -> StrategyResult: ...


def _parse(strategy: str, candidate: str) -> StrategyResult:
    try:
        value = json.loads(candidate)
    except (ValueError, RecursionError) as e:
        return StrategyResult(strategy, "parse_error", error=str(e))
    if not isinstance(value, (dict, list)):
        return StrategyResult(strategy, "no_match", error=f"scalar {type(value).__name__}")
    return StrategyResult(strategy, "parsed", value=value)


@dataclass(frozen=True)
class RecoveryStrategy:
    """
    One recovery step. The candidate is `pattern`'s capture `group`, or the
    whole text when no pattern is set.
    """

    name: str
    pattern: re.Pattern[str] | None = None
    group: int = 0

    def __call__(self, text: str) -> StrategyResult:
        if self.pattern is None:
            return _parse(self.name, text)
        match = self.pattern.search(text)
        if match is None:
            return StrategyResult(self.name, "no_match")
        return _parse(self.name, match.group(self.group))


strict = RecoveryStrategy("strict")
json_fence = RecoveryStrategy("json_fence", _JSON_FENCE, 1)
any_fence = RecoveryStrategy("any_fence", _ANY_FENCE, 1)
array_literal = RecoveryStrategy("array_literal", _ARRAY_LITERAL)
object_literal = RecoveryStrategy("object_literal", _OBJECT_LITERAL)

DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    strict,
    json_fence,
    any_fence,
    array_literal,
    object_literal,
)


class PayloadRecovery:
    """
    Short-circuiting evaluator over an ordered strategy list.

    Usage:
        recovery = PayloadRecovery()
        extraction = recovery.recover(response.text)
        if extraction is None:
            ...  # recovery failed
    """

    def __init__(self, strategies: Sequence[Strategy] = DEFAULT_STRATEGIES) -> None:
        self._strategies = tuple(strategies)

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self._strategies]

    def attempts(self, text: str) -> list[StrategyResult]:
        """Run strategies in order up to and including the first success."""
        results: list[StrategyResult] = []
        for strategy in self._strategies:
            result = strategy(text)
            results.append(result)
            if result.ok:
                break
        return results

    def recover(self, text: str | None) -> Extraction | None:
        if not text or not text.strip():
            logger.debug("Recovery skipped: empty engine text")
            return None

        for result in self.attempts(text):
            if result.ok:
                return Extraction(strategy=result.strategy, value=result.value)
            if result.outcome == "parse_error":
                logger.debug(
                    "Strategy %s matched but failed to parse: %s", result.strategy, result.error,
                    extra={"strategy": result.strategy, "detail": result.error},
                )

        logger.warning(
            "All recovery strategies failed",
            extra={"snippet": text[:SNIPPET_CHARS], "text_length": len(text)},
        )
        return None


_default_recovery = PayloadRecovery()


def recover_payload(text: str | None) -> Extraction | None:
    """Recover one JSON object/array from engine text, or None."""
    return _default_recovery.recover(text)
