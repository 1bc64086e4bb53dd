"""
Capability interfaces for the metrics the exporter reads.

The exporter never computes statistics itself. Metric libraries plug in by
subclassing these ABCs or by registering their classes as virtual
subclasses:

    Counter.register(mylib.Counter)
    Timer.register(mylib.Timer)

`classify()` turns any metric object into a closed `MetricKind`, with
`MetricKind.UNKNOWN` for everything the exporter does not know how to
report.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, List, Mapping, Sequence


class MetricKind(Enum):
    """Metric variants the exporter knows how to report"""
    COUNTER = "counter"
    GAUGE = "gauge"
    GAUGE_FLOAT64 = "gauge_float64"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"
    UNKNOWN = "unknown"


class Counter(ABC):
    @abstractmethod
    def count(self) -> int:
        ...


class Gauge(ABC):
    @abstractmethod
    def value(self) -> int:
        ...


class GaugeFloat64(ABC):
    @abstractmethod
    def value(self) -> float:
        ...


class HistogramSnapshot(ABC):
    """Immutable point-in-time view of a sample distribution."""

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def min(self) -> int:
        ...

    @abstractmethod
    def max(self) -> int:
        ...

    @abstractmethod
    def mean(self) -> float:
        ...

    @abstractmethod
    def std_dev(self) -> float:
        ...

    @abstractmethod
    def percentiles(self, quantiles: Sequence[float]) -> List[float]:
        """Return one value per requested quantile, in the same order."""


class MeterSnapshot(ABC):
    """Immutable point-in-time view of an event rate."""

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def rate1(self) -> float:
        ...

    @abstractmethod
    def rate5(self) -> float:
        ...

    @abstractmethod
    def rate15(self) -> float:
        ...

    @abstractmethod
    def rate_mean(self) -> float:
        ...


class TimerSnapshot(HistogramSnapshot, MeterSnapshot):
    """Durations (in nanoseconds) plus the rate at which they were recorded."""


class Histogram(ABC):
    @abstractmethod
    def snapshot(self) -> HistogramSnapshot:
        ...


class Meter(ABC):
    @abstractmethod
    def snapshot(self) -> MeterSnapshot:
        ...


class Timer(ABC):
    @abstractmethod
    def snapshot(self) -> TimerSnapshot:
        ...


class Registry(ABC):
    """Source of named metrics. Iteration order is up to the implementation."""

    @abstractmethod
    def each(self, callback: Callable[[str, Any], None]) -> None:
        """Invoke callback once per (name, metric) pair."""


class MappingRegistry(Registry):
    """
    Expose a plain mapping of name -> metric as a Registry.

    Iterates over a copy of the items so metrics registered while an export
    cycle runs do not break the iteration.
    """

    def __init__(self, metrics: Mapping[str, Any]):
        self._metrics = metrics

    def each(self, callback: Callable[[str, Any], None]) -> None:
        for name, metric in list(self._metrics.items()):
            callback(name, metric)

    def __len__(self) -> int:
        return len(self._metrics)


# Checked in this order; the first matching capability wins.
_KIND_ORDER = (
    (Counter, MetricKind.COUNTER),
    (Gauge, MetricKind.GAUGE),
    (GaugeFloat64, MetricKind.GAUGE_FLOAT64),
    (Histogram, MetricKind.HISTOGRAM),
    (Meter, MetricKind.METER),
    (Timer, MetricKind.TIMER),
)


def classify(metric: Any) -> MetricKind:
    """Return the MetricKind of *metric*, or MetricKind.UNKNOWN."""
    for capability, kind in _KIND_ORDER:
        if isinstance(metric, capability):
            return kind
    return MetricKind.UNKNOWN
