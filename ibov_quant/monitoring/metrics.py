"""
IBOV Quant Observability Metrics

### ARCHITECTURAL CONTEXT
Node ID: monitoring.metrics
Counters and histograms for the query pipeline:
  - Queries: started/succeeded per operation, engine latency
  - Failures: per error kind (configuration, transport, recovery, validation)
  - Recovery: which fallback strategy produced the payload

The strategy histogram is the signal for how messy the engine's output
currently is: a healthy deployment resolves almost everything on `strict`.

### CRITICAL INVARIANTS
1. Metric updates are O(1); never block a query.
2. Exportable as JSON (for structured logging) or Prometheus text format.
3. Zero external dependencies (no prometheus_client required).
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generator


@dataclass
class CounterMetric:
    """Monotonically increasing counter."""
    name: str
    help: str
    value: float = 0.0

    def inc(self, amount: float = 1.0) -> None:
        self.value += amount


@dataclass
class LabeledCounter:
    """Counter family keyed by a single label."""
    name: str
    help: str
    label: str
    values: dict[str, float] = field(default_factory=dict)

    def inc(self, label_value: str, amount: float = 1.0) -> None:
        self.values[label_value] = self.values.get(label_value, 0.0) + amount

    def get(self, label_value: str) -> float:
        return self.values.get(label_value, 0.0)

    @property
    def total(self) -> float:
        return sum(self.values.values())


@dataclass
class HistogramMetric:
    """Distribution tracker with sum, count, and configurable buckets."""
    name: str
    help: str
    _sum: float = 0.0
    _count: int = 0
    _min: float = float("inf")
    _max: float = float("-inf")
    _buckets: dict[float, int] = field(default_factory=dict)
    bucket_boundaries: tuple[float, ...] = (0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0)

    def __post_init__(self) -> None:
        if not self._buckets:
            self._buckets = {b: 0 for b in self.bucket_boundaries}

    def observe(self, value: float) -> None:
        self._sum += value
        self._count += 1
        self._min = min(self._min, value)
        self._max = max(self._max, value)
        for boundary in self.bucket_boundaries:
            if value <= boundary:
                self._buckets[boundary] = self._buckets.get(boundary, 0) + 1
                break

    @property
    def mean(self) -> float:
        return self._sum / self._count if self._count > 0 else 0.0

    @property
    def count(self) -> int:
        return self._count

    @property
    def max(self) -> float:
        return self._max if self._count > 0 else 0.0


class MetricsRegistry:
    """
    Central metrics registry for the query pipeline.

    Usage:
        metrics = MetricsRegistry()
        metrics.queries_started.inc("scan")
        with metrics.timer(metrics.engine_latency):
            raw = await engine.generate(request)
        snapshot = metrics.snapshot()
    """

    def __init__(self) -> None:
        self.queries_started = LabeledCounter(
            name="ibovq_queries_started_total",
            help="Queries issued, by operation",
            label="operation",
        )
        self.queries_succeeded = LabeledCounter(
            name="ibovq_queries_succeeded_total",
            help="Queries that produced a validated result, by operation",
            label="operation",
        )
        self.query_failures = LabeledCounter(
            name="ibovq_query_failures_total",
            help="Failed queries, by error kind",
            label="kind",
        )
        self.recovery_strategy_hits = LabeledCounter(
            name="ibovq_recovery_strategy_hits_total",
            help="Payloads recovered, by the fallback strategy that succeeded",
            label="strategy",
        )
        self.pairs_returned = CounterMetric(
            name="ibovq_pairs_returned_total",
            help="ScannedPair results handed to callers",
        )
        self.engine_latency = HistogramMetric(
            name="ibovq_engine_latency_seconds",
            help="External engine call latency",
        )
        self._created_at = datetime.now(timezone.utc)

    @contextmanager
    def timer(self, histogram: HistogramMetric) -> Generator[None, None, None]:
        """Context manager for timing operations into a histogram."""
        start = time.monotonic()
        try:
            yield
        finally:
            histogram.observe(time.monotonic() - start)

    def snapshot(self) -> dict[str, Any]:
        """Export all metrics as a JSON-serializable dict."""
        recovered = self.recovery_strategy_hits.total
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": (datetime.now(timezone.utc) - self._created_at).total_seconds(),
            "queries": {
                "started": dict(self.queries_started.values),
                "succeeded": dict(self.queries_succeeded.values),
                "pairs_returned": self.pairs_returned.value,
            },
            "failures": dict(self.query_failures.values),
            "recovery": {
                "strategy_hits": dict(self.recovery_strategy_hits.values),
                "strict_rate": round(
                    self.recovery_strategy_hits.get("strict") / max(1.0, recovered), 3
                ),
            },
            "engine": {
                "calls": self.engine_latency.count,
                "latency_mean_s": round(self.engine_latency.mean, 3),
                "latency_max_s": round(self.engine_latency.max, 3),
            },
        }

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus text exposition format."""
        lines: list[str] = []

        def _counter(m: CounterMetric) -> None:
            lines.append(f"# HELP {m.name} {m.help}")
            lines.append(f"# TYPE {m.name} counter")
            lines.append(f"{m.name} {m.value}")

        def _labeled(m: LabeledCounter) -> None:
            lines.append(f"# HELP {m.name} {m.help}")
            lines.append(f"# TYPE {m.name} counter")
            for label_value, value in sorted(m.values.items()):
                lines.append(f'{m.name}{{{m.label}="{label_value}"}} {value}')

        def _histogram(m: HistogramMetric) -> None:
            lines.append(f"# HELP {m.name} {m.help}")
            lines.append(f"# TYPE {m.name} histogram")
            cumulative = 0
            for boundary in sorted(m._buckets.keys()):
                cumulative += m._buckets[boundary]
                lines.append(f'{m.name}_bucket{{le="{boundary}"}} {cumulative}')
            lines.append(f'{m.name}_bucket{{le="+Inf"}} {m._count}')
            lines.append(f"{m.name}_sum {m._sum}")
            lines.append(f"{m.name}_count {m._count}")

        _labeled(self.queries_started)
        _labeled(self.queries_succeeded)
        _labeled(self.query_failures)
        _labeled(self.recovery_strategy_hits)
        _counter(self.pairs_returned)
        _histogram(self.engine_latency)

        return "\n".join(lines) + "\n"


# ── Global singleton (optional, for convenience) ──
_global_metrics: MetricsRegistry | None = None


def get_metrics() -> MetricsRegistry:
    """Get or create the global MetricsRegistry singleton."""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsRegistry()
    return _global_metrics


def reset_metrics() -> None:
    """Reset global metrics (for testing)."""
    global _global_metrics
    _global_metrics = None
