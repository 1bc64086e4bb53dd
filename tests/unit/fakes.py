"""
In-memory metric fakes implementing the exporter's capability interfaces.
"""
from typing import List, Sequence

from tsdb_exporter.opentsdb.types import (
    Counter,
    Gauge,
    GaugeFloat64,
    Histogram,
    HistogramSnapshot,
    Meter,
    MeterSnapshot,
    Timer,
    TimerSnapshot,
)


class FakeCounter(Counter):
    def __init__(self, count: int = 0):
        self._count = count

    def count(self) -> int:
        return self._count


class FakeGauge(Gauge):
    def __init__(self, value: int = 0):
        self._value = value

    def value(self) -> int:
        return self._value


class FakeGaugeFloat64(GaugeFloat64):
    def __init__(self, value: float = 0.0):
        self._value = value

    def value(self) -> float:
        return self._value


class FakeHistogramSnapshot(HistogramSnapshot):
    def __init__(self, count=0, min=0, max=0, mean=0.0, std_dev=0.0,
                 percentiles=(0.0, 0.0, 0.0, 0.0, 0.0)):
        self._count = count
        self._min = min
        self._max = max
        self._mean = mean
        self._std_dev = std_dev
        self._percentiles = list(percentiles)
        self.requested_quantiles: List[Sequence[float]] = []

    def count(self):
        return self._count

    def min(self):
        return self._min

    def max(self):
        return self._max

    def mean(self):
        return self._mean

    def std_dev(self):
        return self._std_dev

    def percentiles(self, quantiles):
        self.requested_quantiles.append(tuple(quantiles))
        return list(self._percentiles)


class FakeMeterSnapshot(MeterSnapshot):
    def __init__(self, count=0, rate1=0.0, rate5=0.0, rate15=0.0, rate_mean=0.0):
        self._count = count
        self._rate1 = rate1
        self._rate5 = rate5
        self._rate15 = rate15
        self._rate_mean = rate_mean

    def count(self):
        return self._count

    def rate1(self):
        return self._rate1

    def rate5(self):
        return self._rate5

    def rate15(self):
        return self._rate15

    def rate_mean(self):
        return self._rate_mean


class FakeTimerSnapshot(FakeHistogramSnapshot, FakeMeterSnapshot, TimerSnapshot):
    def __init__(self, count=0, min=0, max=0, mean=0.0, std_dev=0.0,
                 percentiles=(0.0, 0.0, 0.0, 0.0, 0.0),
                 rate1=0.0, rate5=0.0, rate15=0.0, rate_mean=0.0):
        FakeHistogramSnapshot.__init__(
            self, count=count, min=min, max=max, mean=mean,
            std_dev=std_dev, percentiles=percentiles
        )
        self._rate1 = rate1
        self._rate5 = rate5
        self._rate15 = rate15
        self._rate_mean = rate_mean


class FakeHistogram(Histogram):
    def __init__(self, snapshot: FakeHistogramSnapshot):
        self._snapshot = snapshot
        self.snapshot_calls = 0

    def snapshot(self):
        self.snapshot_calls += 1
        return self._snapshot


class FakeMeter(Meter):
    def __init__(self, snapshot: FakeMeterSnapshot):
        self._snapshot = snapshot

    def snapshot(self):
        return self._snapshot


class FakeTimer(Timer):
    def __init__(self, snapshot: FakeTimerSnapshot):
        self._snapshot = snapshot

    def snapshot(self):
        return self._snapshot


class ExplodingCounter(Counter):
    """Counter whose read fails, for error propagation tests."""

    def count(self):
        raise RuntimeError("counter read failed")
