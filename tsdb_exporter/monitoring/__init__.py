"""
Monitoring module - Prometheus self-instrumentation of the exporter.
"""
from tsdb_exporter.monitoring.metrics import (
    ExporterMetrics,
    start_metrics_server,
    get_metrics_collector,
)

__all__ = [
    "ExporterMetrics",
    "start_metrics_server",
    "get_metrics_collector",
]
