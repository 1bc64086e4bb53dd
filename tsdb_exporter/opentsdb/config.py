"""
Immutable configuration of one OpenTSDB exporter.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union

from tsdb_exporter.common.exceptions import ConfigurationError

# Nanoseconds per reporting unit for timer durations
NANOSECOND = 1
MICROSECOND = 1000 * NANOSECOND
MILLISECOND = 1000 * MICROSECOND
SECOND = 1000 * MILLISECOND

_DURATION_UNITS = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "ms": MILLISECOND,
    "s": SECOND,
}


class WriteErrorPolicy(Enum):
    """What an export cycle does when writing to the collector fails"""
    BEST_EFFORT = "best_effort"  # log, count and move on to the next metric
    ABORT = "abort"  # stop the cycle and report it as failed


def parse_duration_unit(unit: Union[str, int]) -> int:
    """
    Convert "ns", "us", "ms", "s" or a positive integer (nanoseconds)
    into the number of nanoseconds per reporting unit.
    """
    if isinstance(unit, bool):
        raise ConfigurationError(f"Invalid duration unit: {unit!r}")
    if isinstance(unit, int):
        value = unit
    else:
        text = str(unit).strip().lower()
        if text in _DURATION_UNITS:
            return _DURATION_UNITS[text]
        try:
            value = int(text)
        except ValueError:
            raise ConfigurationError(
                f"Invalid duration unit: {unit!r} "
                f"(expected one of {', '.join(_DURATION_UNITS)} or nanoseconds)"
            )
    if value <= 0:
        raise ConfigurationError(f"Duration unit must be positive, got {value}")
    return value


def parse_write_error_policy(policy: Union[str, WriteErrorPolicy]) -> WriteErrorPolicy:
    if isinstance(policy, WriteErrorPolicy):
        return policy
    try:
        return WriteErrorPolicy(str(policy).strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in WriteErrorPolicy)
        raise ConfigurationError(
            f"Invalid write error policy: {policy!r} (expected one of {choices})"
        )


@dataclass(frozen=True)
class OpenTSDBConfig:
    """
    Everything one exporter needs. Read-only after construction.

    Attributes:
        host: Collector host name or address
        port: Collector TCP port
        registry: Object with an ``each(callback)`` method
        flush_interval: Seconds between export cycles
        duration_unit: Nanoseconds per reporting unit for timer durations
        prefix: Prepended to every metric name
        tags: Extra ``key=value`` tags appended to every line
        connect_timeout: Deadline in seconds for connect and writes (None = no deadline)
        write_error_policy: How write failures inside a cycle are handled
    """
    host: str
    port: int
    registry: Any
    flush_interval: float
    duration_unit: int = NANOSECOND
    prefix: str = ""
    tags: Mapping[str, str] = field(default_factory=dict)
    connect_timeout: Optional[float] = None
    write_error_policy: WriteErrorPolicy = WriteErrorPolicy.BEST_EFFORT

    def __post_init__(self):
        if not self.host:
            raise ConfigurationError("Collector host must not be empty")
        try:
            port = int(self.port)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid collector port: {self.port!r}")
        if not 0 < port < 65536:
            raise ConfigurationError(f"Invalid collector port: {self.port}")
        if self.registry is None or not callable(getattr(self.registry, "each", None)):
            raise ConfigurationError("Registry must provide an each(callback) method")
        if self.flush_interval <= 0:
            raise ConfigurationError(
                f"Flush interval must be positive, got {self.flush_interval}"
            )
        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ConfigurationError(
                f"Connect timeout must be positive, got {self.connect_timeout}"
            )

        # Frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "duration_unit", parse_duration_unit(self.duration_unit))
        object.__setattr__(
            self, "write_error_policy", parse_write_error_policy(self.write_error_policy)
        )
        object.__setattr__(
            self, "tags", MappingProxyType({str(k): str(v) for k, v in self.tags.items()})
        )

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    @classmethod
    def from_settings(cls, opentsdb_settings, registry: Any) -> "OpenTSDBConfig":
        """Build a config from ``config.settings.OpenTSDBSettings``."""
        return cls(
            host=opentsdb_settings.host,
            port=opentsdb_settings.port,
            registry=registry,
            flush_interval=opentsdb_settings.flush_interval_seconds,
            duration_unit=opentsdb_settings.duration_unit,
            prefix=opentsdb_settings.prefix,
            tags=opentsdb_settings.tags,
            connect_timeout=opentsdb_settings.connect_timeout_seconds,
            write_error_policy=opentsdb_settings.write_error_policy,
        )
