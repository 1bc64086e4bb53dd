"""
Integration tests for the OpenTSDB exporter.
Tests the complete flow: Registry -> Reporter -> TCP -> Collector,
against a line-collecting TCP server on the loopback interface.
"""
import pytest
import socket
import threading
import time

from tsdb_exporter.common.exceptions import CollectorConnectionError
from tsdb_exporter.monitoring.metrics import ExporterMetrics, reset_metrics
from tsdb_exporter.opentsdb.config import MILLISECOND, OpenTSDBConfig
from tsdb_exporter.opentsdb.hostname import ShortHostname
from tsdb_exporter.opentsdb.reporter import OpenTSDBReporter
from tsdb_exporter.opentsdb.types import (
    Counter,
    MappingRegistry,
    Timer,
    TimerSnapshot,
)


class StaticCounter(Counter):
    def __init__(self, value):
        self._value = value

    def count(self):
        return self._value


class StaticTimerSnapshot(TimerSnapshot):
    """Timer snapshot with fixed nanosecond statistics."""

    def count(self):
        return 4

    def min(self):
        return 5_000_000

    def max(self):
        return 20_000_000

    def mean(self):
        return 2_500_000.0

    def std_dev(self):
        return 500_000.0

    def percentiles(self, quantiles):
        return [1_000_000.0 * (i + 1) for i in range(len(quantiles))]

    def rate1(self):
        return 0.5

    def rate5(self):
        return 0.25

    def rate15(self):
        return 0.125

    def rate_mean(self):
        return 1.0


class StaticTimer(Timer):
    def snapshot(self):
        return StaticTimerSnapshot()


class LineCollector:
    """Minimal collector: accepts connections and records what each one sent."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(8)
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]
        self.sessions = []
        self.session_done = threading.Condition()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._stop.is_set():
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with conn:
                conn.settimeout(2)
                chunks = []
                while True:
                    data = conn.recv(65536)
                    if not data:
                        break
                    chunks.append(data)
            with self.session_done:
                self.sessions.append(b"".join(chunks).decode("utf-8"))
                self.session_done.notify_all()

    def wait_for_sessions(self, count, timeout=5.0):
        with self.session_done:
            return self.session_done.wait_for(lambda: len(self.sessions) >= count, timeout)

    def close(self):
        self._stop.set()
        self._thread.join(timeout=2)
        self.sock.close()


@pytest.fixture(autouse=True)
def _reset():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def collector():
    c = LineCollector()
    yield c
    c.close()


def make_config(port, interval=0.05):
    return OpenTSDBConfig(
        host="127.0.0.1",
        port=port,
        registry=MappingRegistry({
            "jobs": StaticCounter(9),
            "latency": StaticTimer(),
            "ignored": "not a metric",
        }),
        flush_interval=interval,
        duration_unit=MILLISECOND,
        prefix="svc",
        tags={"env": "it"},
        connect_timeout=2.0,
    )


class TestExporterIntegration:

    def test_single_cycle_over_tcp(self, collector):
        reporter = OpenTSDBReporter(
            make_config(collector.port),
            hostname=ShortHostname(lambda: "node1.example.com"),
            clock=lambda: 1700000000,
        )

        written = reporter.export_once()

        assert collector.wait_for_sessions(1)
        lines = collector.sessions[0].splitlines()
        assert written == 15
        assert len(lines) == 15
        assert "put svc.jobs.count 1700000000 9 host=node1 env=it" in lines
        assert "put svc.latency.min 1700000000 5 host=node1 env=it" in lines
        assert "put svc.latency.max 1700000000 20 host=node1 env=it" in lines
        assert "put svc.latency.mean 1700000000 2.50 host=node1 env=it" in lines
        assert "put svc.latency.50-percentile 1700000000 1.00 host=node1 env=it" in lines
        assert "put svc.latency.mean-rate 1700000000 1.00 host=node1 env=it" in lines
        assert not any("ignored" in line for line in lines)

    def test_background_reporter_pushes_every_interval(self, collector):
        reporter = OpenTSDBReporter(
            make_config(collector.port),
            hostname=ShortHostname(lambda: "node1"),
        )

        reporter.start()
        try:
            assert collector.wait_for_sessions(3)
        finally:
            reporter.stop(timeout=2)

        assert not reporter.is_running
        assert reporter.cycles_completed >= 3
        for session in collector.sessions[:3]:
            assert len(session.splitlines()) == 15
        assert ExporterMetrics.get_cycles_total() >= 3

    def test_connection_refused(self):
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
        probe.close()

        reporter = OpenTSDBReporter(
            make_config(port),
            hostname=ShortHostname(lambda: "node1"),
        )

        with pytest.raises(CollectorConnectionError):
            reporter.export_once()
        assert ExporterMetrics.get_failures_total("connection") == 1.0

    def test_loop_survives_collector_outage(self, collector):
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.bind(("127.0.0.1", 0))
        dead_port = probe.getsockname()[1]
        probe.close()

        reporter = OpenTSDBReporter(
            make_config(dead_port, interval=0.02),
            hostname=ShortHostname(lambda: "node1"),
        )
        reporter.start()
        deadline = time.time() + 5
        while reporter.cycles_failed < 3 and time.time() < deadline:
            time.sleep(0.01)
        reporter.stop(timeout=2)

        assert reporter.cycles_failed >= 3
        assert reporter.cycles_completed == 0
