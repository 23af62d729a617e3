from __future__ import annotations

from summons_tracker.core.metrics import MetricsRegistry, measure_time, metrics_registry


def test_counters_and_timings_snapshot() -> None:
    registry = MetricsRegistry()
    registry.increment("sync.pull.case.added", 3)
    registry.increment("sync.pull.case.added", 0)
    registry.record_timing("sync.all", 10.0)
    registry.record_timing("sync.all", 30.0)

    snapshot = registry.snapshot()

    assert snapshot["counters"] == {"sync.pull.case.added": 3}
    assert snapshot["timings_ms"]["sync.all"] == {"count": 2, "last": 30.0, "avg": 20.0, "max": 30.0}


def test_measure_time_records_even_on_error() -> None:
    @measure_time("test.op")
    def explode() -> None:
        raise RuntimeError("x")

    try:
        explode()
    except RuntimeError:
        pass

    assert metrics_registry.snapshot()["timings_ms"]["test.op"]["count"] == 1
