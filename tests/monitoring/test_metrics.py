"""
Tests for `monitoring/metrics.py` decorators on plain and coroutine functions.
"""

import asyncio

import pytest
from prometheus_client import CollectorRegistry, Counter, Histogram

from monitoring import metrics


def histogram_count(histogram) -> float:
    for metric in histogram.collect():
        for sample in metric.samples:
            if sample.name.endswith("_count"):
                return sample.value
    return 0.0


def test_track_latency_observes_coroutines():
    histogram = Histogram("test_async_latency_seconds", "test", registry=CollectorRegistry())

    @metrics.track_latency(histogram)
    async def work():
        await asyncio.sleep(0)
        return "done"

    assert asyncio.run(work()) == "done"
    assert histogram_count(histogram) == 1


def test_track_latency_observes_failures_too():
    histogram = Histogram("test_sync_latency_seconds", "test", registry=CollectorRegistry())

    @metrics.track_latency(histogram)
    def work():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        work()
    assert histogram_count(histogram) == 1


def test_track_errors_counts_and_reraises(monkeypatch):
    counter = Counter("test_errors", "test", ["type", "location"], registry=CollectorRegistry())
    monkeypatch.setattr(metrics, "ERROR_COUNT", counter)

    @metrics.track_errors("provider", "unit")
    async def fail():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        asyncio.run(fail())
    assert counter.labels(type="provider", location="unit")._value.get() == 1
