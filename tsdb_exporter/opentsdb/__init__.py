"""
OpenTSDB exporter - pushes registry metrics as put lines over TCP.
"""
from tsdb_exporter.opentsdb.config import (
    NANOSECOND,
    MICROSECOND,
    MILLISECOND,
    SECOND,
    OpenTSDBConfig,
    WriteErrorPolicy,
    parse_duration_unit,
)
from tsdb_exporter.opentsdb.hostname import ShortHostname
from tsdb_exporter.opentsdb.reporter import (
    OpenTSDBReporter,
    opentsdb,
    opentsdb_with_config,
)
from tsdb_exporter.opentsdb.types import MappingRegistry, MetricKind, classify

__all__ = [
    "NANOSECOND",
    "MICROSECOND",
    "MILLISECOND",
    "SECOND",
    "OpenTSDBConfig",
    "WriteErrorPolicy",
    "parse_duration_unit",
    "ShortHostname",
    "OpenTSDBReporter",
    "opentsdb",
    "opentsdb_with_config",
    "MappingRegistry",
    "MetricKind",
    "classify",
]
