"""
Prometheus self-instrumentation for the OpenTSDB exporter.

Tracks how the exporter itself is doing (cycles, failures, lines pushed)
and can expose those series on a dedicated HTTP server for scraping.

Usage:
    from tsdb_exporter.monitoring.metrics import get_metrics_collector, start_metrics_server

    start_metrics_server(port=9090)

    metrics = get_metrics_collector()
    metrics.inc_cycles()
    metrics.inc_lines_written(14)
    metrics.observe_cycle_duration(0.042)
"""
import time
import threading
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    start_http_server,
)

from tsdb_exporter.common.logging_config import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Prometheus metric definitions (module-level singletons)
# ---------------------------------------------------------------------------

# -- Counters --
EXPORT_CYCLES_TOTAL = Counter(
    "opentsdb_exporter_cycles_total",
    "Total number of export cycles started",
)

EXPORT_FAILURES_TOTAL = Counter(
    "opentsdb_exporter_cycle_failures_total",
    "Total number of export cycles that ended with an error",
    ["reason"],
)

LINES_WRITTEN_TOTAL = Counter(
    "opentsdb_exporter_lines_written_total",
    "Total number of put lines written to the collector",
)

WRITE_ERRORS_TOTAL = Counter(
    "opentsdb_exporter_write_errors_total",
    "Total number of failed writes to the collector connection",
)

METRICS_SKIPPED_TOTAL = Counter(
    "opentsdb_exporter_metrics_skipped_total",
    "Total number of registry entries skipped because their kind is unknown",
)

# -- Histograms --
EXPORT_CYCLE_DURATION = Histogram(
    "opentsdb_exporter_cycle_duration_seconds",
    "Duration of a single export cycle in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# -- Gauges --
LAST_SUCCESS_TIMESTAMP = Gauge(
    "opentsdb_exporter_last_success_timestamp_seconds",
    "Unix time of the last export cycle that completed without error",
)

UPTIME_SECONDS = Gauge(
    "opentsdb_exporter_uptime_seconds",
    "Seconds since the exporter started",
)

# -- Info --
BUILD_INFO = Info(
    "opentsdb_exporter",
    "OpenTSDB exporter build / version info",
)

FAILURE_REASONS = ("connection", "write", "error")


class ExporterMetrics:
    """
    Convenience wrapper around the exporter's Prometheus metrics.

    Named helper methods keep callers from importing the raw metric objects.
    All methods are thread-safe (Prometheus client handles it).
    """

    def __init__(self) -> None:
        self._start_time = time.time()
        BUILD_INFO.info({
            "version": "1.0.0",
            "component": "opentsdb_exporter",
        })

    # -- Counters -----------------------------------------------------------

    def inc_cycles(self, count: int = 1) -> None:
        EXPORT_CYCLES_TOTAL.inc(count)

    def inc_failures(self, reason: str, count: int = 1) -> None:
        """
        Count a failed export cycle.

        Args:
            reason: one of "connection", "write", "error"; anything else
                    is recorded as "error"
        """
        if reason not in FAILURE_REASONS:
            reason = "error"
        EXPORT_FAILURES_TOTAL.labels(reason=reason).inc(count)

    def inc_lines_written(self, count: int = 1) -> None:
        LINES_WRITTEN_TOTAL.inc(count)

    def inc_write_errors(self, count: int = 1) -> None:
        WRITE_ERRORS_TOTAL.inc(count)

    def inc_skipped(self, count: int = 1) -> None:
        METRICS_SKIPPED_TOTAL.inc(count)

    # -- Histograms ---------------------------------------------------------

    def observe_cycle_duration(self, seconds: float) -> None:
        EXPORT_CYCLE_DURATION.observe(seconds)

    def cycle_duration_timer(self):
        """
        Return a context-manager / decorator that measures one export cycle.

        Usage:
            with metrics.cycle_duration_timer():
                reporter.export_once()
        """
        return EXPORT_CYCLE_DURATION.time()

    # -- Gauges -------------------------------------------------------------

    def mark_success(self, timestamp: Optional[float] = None) -> None:
        """Record the time of the latest successful export cycle."""
        LAST_SUCCESS_TIMESTAMP.set(timestamp if timestamp is not None else time.time())

    def update_uptime(self) -> None:
        UPTIME_SECONDS.set(time.time() - self._start_time)

    # -- Accessors for testing ----------------------------------------------

    @staticmethod
    def get_cycles_total() -> float:
        return EXPORT_CYCLES_TOTAL._value.get()

    @staticmethod
    def get_failures_total(reason: str) -> float:
        return EXPORT_FAILURES_TOTAL.labels(reason=reason)._value.get()

    @staticmethod
    def get_lines_written_total() -> float:
        return LINES_WRITTEN_TOTAL._value.get()

    @staticmethod
    def get_write_errors_total() -> float:
        return WRITE_ERRORS_TOTAL._value.get()

    @staticmethod
    def get_skipped_total() -> float:
        return METRICS_SKIPPED_TOTAL._value.get()

    @staticmethod
    def get_last_success_timestamp() -> float:
        return LAST_SUCCESS_TIMESTAMP._value.get()


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

_metrics_collector: Optional[ExporterMetrics] = None
_metrics_lock = threading.Lock()


def get_metrics_collector() -> ExporterMetrics:
    """
    Return the singleton ``ExporterMetrics`` instance.
    Creates one on first call (thread-safe).
    """
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = ExporterMetrics()
    return _metrics_collector


def start_metrics_server(port: int = 9090) -> bool:
    """
    Start the Prometheus metrics HTTP server on *port*.

    Catches ``OSError`` when the port is already in use; the exporter keeps
    pushing to OpenTSDB without its own metrics endpoint.

    Returns:
        True if the server is listening
    """
    try:
        start_http_server(port)
        logger.info(
            f"Prometheus metrics server started on port {port}  "
            f"→  http://localhost:{port}/metrics"
        )
        return True
    except OSError as exc:
        logger.error(f"Failed to start metrics server on port {port}: {exc}")
        return False


def reset_metrics() -> None:
    """
    Reset all counters / gauges to zero.
    Useful in test suites to get deterministic values.
    """
    global _metrics_collector
    for c in (
        EXPORT_CYCLES_TOTAL,
        LINES_WRITTEN_TOTAL,
        WRITE_ERRORS_TOTAL,
        METRICS_SKIPPED_TOTAL,
    ):
        c._value.set(0)

    for g in (LAST_SUCCESS_TIMESTAMP, UPTIME_SECONDS):
        g._value.set(0)

    # Reset per-label counters
    EXPORT_FAILURES_TOTAL._metrics.clear()

    _metrics_collector = None
