"""
IBOV Quant Tests: Metrics Registry

Node ID: tests.unit.test_metrics
"""

import pytest

from ibov_quant.monitoring.metrics import (
    HistogramMetric,
    LabeledCounter,
    MetricsRegistry,
    get_metrics,
    reset_metrics,
)


class TestPrimitives:

    def test_labeled_counter(self):
        counter = LabeledCounter(name="c", help="h", label="kind")
        counter.inc("transport")
        counter.inc("transport")
        counter.inc("recovery", 3)
        assert counter.get("transport") == 2
        assert counter.get("validation") == 0
        assert counter.total == 5

    def test_histogram_single_bucket_per_observation(self):
        hist = HistogramMetric(name="h", help="h")
        hist.observe(0.3)
        hist.observe(7.0)
        assert hist.count == 2
        assert hist._buckets[0.5] == 1
        assert hist._buckets[10.0] == 1
        assert hist.mean == pytest.approx(3.65)
        assert hist.max == 7.0

    def test_empty_histogram(self):
        hist = HistogramMetric(name="h", help="h")
        assert hist.mean == 0.0
        assert hist.max == 0.0


class TestRegistry:

    def test_snapshot_strict_rate(self):
        metrics = MetricsRegistry()
        metrics.recovery_strategy_hits.inc("strict", 3)
        metrics.recovery_strategy_hits.inc("json_fence")
        snap = metrics.snapshot()
        assert snap["recovery"]["strict_rate"] == 0.75
        assert snap["recovery"]["strategy_hits"] == {"strict": 3, "json_fence": 1}

    def test_snapshot_without_queries(self):
        snap = MetricsRegistry().snapshot()
        assert snap["recovery"]["strict_rate"] == 0.0
        assert snap["failures"] == {}
        assert snap["engine"]["calls"] == 0

    def test_timer_records_latency(self):
        metrics = MetricsRegistry()
        with metrics.timer(metrics.engine_latency):
            pass
        assert metrics.engine_latency.count == 1

    def test_timer_records_on_exception(self):
        metrics = MetricsRegistry()
        with pytest.raises(RuntimeError):
            with metrics.timer(metrics.engine_latency):
                raise RuntimeError("boom")
        assert metrics.engine_latency.count == 1

    def test_prometheus_export(self):
        metrics = MetricsRegistry()
        metrics.query_failures.inc("validation")
        metrics.pairs_returned.inc(6)
        text = metrics.to_prometheus()
        assert '# TYPE ibovq_query_failures_total counter' in text
        assert 'ibovq_query_failures_total{kind="validation"} 1.0' in text
        assert "ibovq_pairs_returned_total 6.0" in text
        assert 'ibovq_engine_latency_seconds_bucket{le="+Inf"} 0' in text


def test_global_singleton_reset():
    first = get_metrics()
    assert get_metrics() is first
    reset_metrics()
    assert get_metrics() is not first
