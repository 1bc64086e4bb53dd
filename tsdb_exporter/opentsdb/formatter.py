"""
Render metrics as OpenTSDB telnet-style put lines.

    put <prefix>.<name>.<suffix> <unix-seconds> <value> host=<hostname> <tags>

Counts, minimums and maximums are printed as integers; derived statistics
(means, standard deviations, percentiles, rates) with two decimals.
Timer minimums and maximums are divided by the duration unit rounding
toward zero. Non-finite values print as NaN, +Inf and -Inf.
"""
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping

from tsdb_exporter.opentsdb.types import MetricKind, classify

PERCENTILE_QUANTILES = (0.5, 0.75, 0.95, 0.99, 0.999)
PERCENTILE_SUFFIXES = (
    "50-percentile",
    "75-percentile",
    "95-percentile",
    "99-percentile",
    "999-percentile",
)


def render_tags(tags: Mapping[str, str]) -> str:
    """Join tags into ``key=value key=value``; empty string for no tags."""
    return " ".join(f"{key}={value}" for key, value in tags.items())


def _fixed(value: float, precision: int = 2) -> str:
    # NaN, +Inf and -Inf rather than Python's nan/inf
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:.{precision}f}"


def _truncate(value: Any, unit: int) -> int:
    """Integer division rounding toward zero."""
    value = int(value)
    quotient = abs(value) // unit
    return quotient if value >= 0 else -quotient


@dataclass(frozen=True)
class PutContext:
    """Values shared by every line of one export cycle."""
    prefix: str
    timestamp: int
    hostname: str
    tags: str
    duration_unit: int = 1

    def line(self, name: str, suffix: str, value: str) -> str:
        return (
            f"put {self.prefix}.{name}.{suffix} {self.timestamp} {value} "
            f"host={self.hostname} {self.tags}\n"
        )


def format_counter(ctx: PutContext, name: str, counter: Any) -> List[str]:
    return [ctx.line(name, "count", str(int(counter.count())))]


def format_gauge(ctx: PutContext, name: str, gauge: Any) -> List[str]:
    return [ctx.line(name, "value", str(int(gauge.value())))]


def format_gauge_float64(ctx: PutContext, name: str, gauge: Any) -> List[str]:
    return [ctx.line(name, "value", _fixed(float(gauge.value()), 6))]


def format_histogram(ctx: PutContext, name: str, histogram: Any) -> List[str]:
    h = histogram.snapshot()
    ps = h.percentiles(PERCENTILE_QUANTILES)
    lines = [
        ctx.line(name, "count", str(int(h.count()))),
        ctx.line(name, "min", str(int(h.min()))),
        ctx.line(name, "max", str(int(h.max()))),
        ctx.line(name, "mean", _fixed(h.mean())),
        ctx.line(name, "std-dev", _fixed(h.std_dev())),
    ]
    lines.extend(
        ctx.line(name, suffix, _fixed(p)) for suffix, p in zip(PERCENTILE_SUFFIXES, ps)
    )
    return lines


def format_meter(ctx: PutContext, name: str, meter: Any) -> List[str]:
    m = meter.snapshot()
    return [
        ctx.line(name, "count", str(int(m.count()))),
        ctx.line(name, "one-minute", _fixed(m.rate1())),
        ctx.line(name, "five-minute", _fixed(m.rate5())),
        ctx.line(name, "fifteen-minute", _fixed(m.rate15())),
        ctx.line(name, "mean", _fixed(m.rate_mean())),
    ]


def format_timer(ctx: PutContext, name: str, timer: Any) -> List[str]:
    t = timer.snapshot()
    ps = t.percentiles(PERCENTILE_QUANTILES)
    du = ctx.duration_unit
    lines = [
        ctx.line(name, "count", str(int(t.count()))),
        ctx.line(name, "min", str(_truncate(t.min(), du))),
        ctx.line(name, "max", str(_truncate(t.max(), du))),
        ctx.line(name, "mean", _fixed(t.mean() / du)),
        ctx.line(name, "std-dev", _fixed(t.std_dev() / du)),
    ]
    lines.extend(
        ctx.line(name, suffix, _fixed(p / du)) for suffix, p in zip(PERCENTILE_SUFFIXES, ps)
    )
    lines.extend([
        ctx.line(name, "one-minute", _fixed(t.rate1())),
        ctx.line(name, "five-minute", _fixed(t.rate5())),
        ctx.line(name, "fifteen-minute", _fixed(t.rate15())),
        ctx.line(name, "mean-rate", _fixed(t.rate_mean())),
    ])
    return lines


def format_unknown(ctx: PutContext, name: str, metric: Any) -> List[str]:
    return []


FORMATTERS: Dict[MetricKind, Callable[[PutContext, str, Any], List[str]]] = {
    MetricKind.COUNTER: format_counter,
    MetricKind.GAUGE: format_gauge,
    MetricKind.GAUGE_FLOAT64: format_gauge_float64,
    MetricKind.HISTOGRAM: format_histogram,
    MetricKind.METER: format_meter,
    MetricKind.TIMER: format_timer,
    MetricKind.UNKNOWN: format_unknown,
}


def format_metric(ctx: PutContext, name: str, metric: Any) -> List[str]:
    """
    Format one registry entry.

    Returns:
        The put lines for *metric*; an empty list when its kind is unknown.
    """
    return FORMATTERS[classify(metric)](ctx, name, metric)
