"""
OpenTSDB reporter - periodic push of registry metrics over TCP.

Every flush interval the reporter opens a fresh connection to the collector,
sends the put lines of every registry entry and closes the connection
again. Nothing is read back from the collector.

Usage:
    config = OpenTSDBConfig(
        host="tsdb.local", port=4242, registry=registry,
        flush_interval=10, duration_unit=MILLISECOND,
        prefix="myapp", tags={"env": "prod"},
    )
    reporter = OpenTSDBReporter(config)

    # Blocking, until the event is set
    reporter.run(stop_event=stop_event)

    # Or in a daemon thread
    reporter.start()
    ...
    reporter.stop()
"""
import socket
import threading
import time
from contextlib import closing
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from tsdb_exporter.common.correlation import CorrelationContext, get_correlation_id
from tsdb_exporter.common.exceptions import CollectorConnectionError, MetricWriteError
from tsdb_exporter.common.logging_config import get_logger
from tsdb_exporter.monitoring.metrics import ExporterMetrics, get_metrics_collector
from tsdb_exporter.opentsdb.config import NANOSECOND, OpenTSDBConfig, WriteErrorPolicy
from tsdb_exporter.opentsdb.formatter import PutContext, format_metric, render_tags
from tsdb_exporter.opentsdb.hostname import ShortHostname

logger = get_logger(__name__)

ConnectionFactory = Callable[[Tuple[str, int], Optional[float]], socket.socket]


def open_connection(address: Tuple[str, int], timeout: Optional[float] = None) -> socket.socket:
    """Open a TCP connection; *timeout* also applies to later writes."""
    return socket.create_connection(address, timeout=timeout)


class CycleWriter:
    """
    Writer for one export cycle.

    The lines of a metric go out in a single ``sendall`` before the next
    metric is formatted, so what was already sent survives a later failure.
    After a failed send the connection is dead for the rest of the cycle:
    the remaining metrics are dropped and the next cycle reconnects.
    """

    def __init__(
        self,
        conn,
        policy: WriteErrorPolicy = WriteErrorPolicy.BEST_EFFORT,
        metrics: Optional[ExporterMetrics] = None
    ):
        self._conn = conn
        self.policy = policy
        self._metrics = metrics
        self.lines_written = 0
        self.write_errors = 0
        self.metrics_dropped = 0
        self.broken = False

    def write_metric(self, name: str, lines: List[str]) -> int:
        """
        Send the lines of one metric.

        Returns:
            Number of lines written (0 if the send failed in best-effort mode
            or the connection already broke earlier in the cycle)

        Raises:
            MetricWriteError: send failed and the policy is ABORT
        """
        if not lines:
            return 0
        if self.broken:
            self.metrics_dropped += 1
            return 0
        try:
            self._conn.sendall("".join(lines).encode("utf-8"))
        except OSError as exc:
            self.broken = True
            self.write_errors += 1
            if self._metrics:
                self._metrics.inc_write_errors()
            if self.policy is WriteErrorPolicy.ABORT:
                raise MetricWriteError(name, str(exc)) from exc
            logger.warning(
                f"Write failed for metric '{name}', dropping the rest of the cycle: {exc}"
            )
            return 0

        self.lines_written += len(lines)
        return len(lines)


class OpenTSDBReporter:
    """
    Exports a metrics registry to OpenTSDB on a fixed interval.

    Args:
        config: ``OpenTSDBConfig``
        hostname: ``ShortHostname`` to report in ``host=`` (resolved on first use)
        connection_factory: ``(address, timeout) -> socket``; defaults to TCP
        clock: returns the current Unix time in seconds
        metrics: ``ExporterMetrics`` for self-instrumentation
    """

    def __init__(
        self,
        config: OpenTSDBConfig,
        hostname: Optional[ShortHostname] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        clock: Optional[Callable[[], float]] = None,
        metrics: Optional[ExporterMetrics] = None
    ):
        self.config = config
        self.hostname = hostname or ShortHostname()
        self._connect = connection_factory or open_connection
        self._clock = clock or time.time
        self._monotonic = time.monotonic
        self._metrics = metrics or get_metrics_collector()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Statistics
        self.cycles_completed = 0
        self.cycles_failed = 0
        self.last_error: Optional[str] = None

        logger.info(
            f"OpenTSDBReporter initialized: collector={config.host}:{config.port}, "
            f"interval={config.flush_interval}s, prefix='{config.prefix}', "
            f"policy={config.write_error_policy.value}"
        )

    @property
    def collector(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    # -- Export cycle -------------------------------------------------------

    def export_once(self) -> int:
        """
        Run one export cycle: connect, write every metric, disconnect.

        Returns:
            Number of put lines written

        Raises:
            CollectorConnectionError: connection could not be opened; nothing was sent
            MetricWriteError: a write failed under ``WriteErrorPolicy.ABORT``
        """
        with CorrelationContext(get_correlation_id()):
            self._metrics.inc_cycles()
            try:
                with self._metrics.cycle_duration_timer():
                    written = self._export()
            except CollectorConnectionError:
                self._metrics.inc_failures("connection")
                raise
            except MetricWriteError:
                self._metrics.inc_failures("write")
                raise
            except Exception:
                self._metrics.inc_failures("error")
                raise

            self._metrics.mark_success()
            return written

    def _export(self) -> int:
        config = self.config
        ctx = PutContext(
            prefix=config.prefix,
            timestamp=int(self._clock()),
            hostname=self.hostname.get(),
            tags=render_tags(config.tags),
            duration_unit=config.duration_unit,
        )

        try:
            conn = self._connect(config.address, config.connect_timeout)
        except OSError as exc:
            raise CollectorConnectionError(config.host, config.port, str(exc)) from exc

        logger.debug(f"Connected to collector {self.collector}")

        with closing(conn):
            writer = CycleWriter(
                conn,
                policy=config.write_error_policy,
                metrics=self._metrics,
            )
            try:
                config.registry.each(
                    lambda name, metric: self._write_entry(writer, ctx, name, metric)
                )
            finally:
                self._metrics.inc_lines_written(writer.lines_written)

        logger.debug(
            f"Export cycle wrote {writer.lines_written} lines to {self.collector} "
            f"({writer.write_errors} write errors, {writer.metrics_dropped} metrics dropped)"
        )
        return writer.lines_written

    def _write_entry(self, writer: CycleWriter, ctx: PutContext, name: str, metric: Any) -> None:
        lines = format_metric(ctx, name, metric)
        if not lines:
            self._metrics.inc_skipped()
            logger.debug(f"Skipping metric '{name}' of unsupported type {type(metric).__name__}")
            return
        writer.write_metric(name, lines)

    # -- Scheduler ----------------------------------------------------------

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Export on a fixed interval until *stop_event* is set.

        Ticks sit on a fixed grid starting one interval from now. A cycle
        that overruns the interval is followed immediately by one more
        cycle; any further missed ticks are dropped. Cycle errors are logged
        and never end the loop. Without a stop event (and without
        ``stop()``) this never returns.

        Args:
            stop_event: Event that ends the loop; defaults to the reporter's
                        own event, set by ``stop()``
        """
        stop = stop_event or self._stop_event
        interval = self.config.flush_interval

        logger.info(f"OpenTSDB export loop started (interval={interval}s)")

        deadline = self._monotonic() + interval
        while not stop.wait(max(0.0, deadline - self._monotonic())):
            self._tick()

            deadline += interval
            now = self._monotonic()
            if deadline < now:
                dropped = int((now - deadline) // interval)
                if dropped:
                    logger.warning(
                        f"Export cycle overran the flush interval, "
                        f"dropping {dropped} tick(s)"
                    )
                    deadline += dropped * interval

        logger.info("OpenTSDB export loop stopped")

    def _tick(self) -> None:
        """Run one cycle, logging instead of raising."""
        with CorrelationContext():
            try:
                written = self.export_once()
                self.cycles_completed += 1
                self.last_error = None
                logger.debug(f"Export cycle complete: {written} lines")
            except CollectorConnectionError as exc:
                self._record_failure(exc)
                logger.error(
                    f"OpenTSDB export cycle failed: {exc}",
                    extra={"collector": self.collector},
                )
            except Exception as exc:
                self._record_failure(exc)
                logger.exception(
                    f"OpenTSDB export cycle failed: {exc}",
                    extra={"collector": self.collector},
                )
            self._metrics.update_uptime()

    def _record_failure(self, exc: Exception) -> None:
        self.cycles_failed += 1
        self.last_error = str(exc)

    # -- Background thread --------------------------------------------------

    def start(self) -> None:
        """Run the export loop in a daemon thread."""
        if self.is_running:
            logger.warning("OpenTSDBReporter already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run, name="opentsdb-reporter", daemon=True
        )
        self._thread.start()
        logger.info(f"OpenTSDBReporter started (collector={self.collector})")

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to stop and wait for the in-flight cycle."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        logger.info("OpenTSDBReporter stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "collector": self.collector,
            "hostname": self.hostname.get() if self.hostname.is_resolved else None,
            "cycles_completed": self.cycles_completed,
            "cycles_failed": self.cycles_failed,
            "last_error": self.last_error,
            "is_running": self.is_running,
        }


def opentsdb_with_config(
    config: OpenTSDBConfig,
    stop_event: Optional[threading.Event] = None
) -> None:
    """Blocking exporter loop for *config*; see ``OpenTSDBReporter.run``."""
    OpenTSDBReporter(config).run(stop_event=stop_event)


def opentsdb(
    registry: Any,
    flush_interval: float,
    prefix: str,
    host: str,
    port: int,
    tags: Optional[Mapping[str, str]] = None,
    stop_event: Optional[threading.Event] = None
) -> None:
    """
    Blocking exporter loop reporting *registry* to the collector at
    host:port every *flush_interval* seconds, timer durations in nanoseconds.
    """
    opentsdb_with_config(
        OpenTSDBConfig(
            host=host,
            port=port,
            registry=registry,
            flush_interval=flush_interval,
            duration_unit=NANOSECOND,
            prefix=prefix,
            tags=tags or {},
        ),
        stop_event=stop_event,
    )
