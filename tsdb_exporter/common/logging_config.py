"""
Structured logging configuration.
JSON output by default, plain text when LOG_FORMAT=text.
Every record carries the export cycle's correlation ID when one is set.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional

from tsdb_exporter.common.correlation import CorrelationFilter

PACKAGE_LOGGER = "tsdb_exporter"

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with correlation tracking"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Injected by CorrelationFilter
        correlation_id = getattr(record, 'correlation_id', None)
        if correlation_id:
            log_data['correlation_id'] = correlation_id

        component = getattr(record, 'component', None)
        if component:
            log_data['component'] = component

        # Collector endpoint, attached through `extra=` by the reporter
        if hasattr(record, 'collector'):
            log_data['collector'] = record.collector

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _build_formatter(fmt: str) -> logging.Formatter:
    if fmt.lower() == "text":
        return logging.Formatter(TEXT_FORMAT)
    return JSONFormatter()


def setup_logging(name: str, level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """
    Configure structured logging for a component.

    Called with ``PACKAGE_LOGGER`` this configures every library module at
    once: their loggers have no handlers of their own and propagate to it.

    Args:
        name: Logger name (usually __name__ or PACKAGE_LOGGER)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: "json" (default) or "text"

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter(fmt))
    # On the handler, so records propagated from child loggers get it too
    handler.addFilter(CorrelationFilter())
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def _in_package(name: str) -> bool:
    return name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + ".")


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger, with optional level override.

    Loggers inside the package stay handler-less and inherit level and
    format from ``PACKAGE_LOGGER``, which gets a JSON/INFO default until
    ``setup_logging`` configures it. Other loggers get their own handler.

    Args:
        name: Logger name
        level: Optional log level override
    """
    if level:
        return setup_logging(name, level)

    if _in_package(name):
        package = logging.getLogger(PACKAGE_LOGGER)
        if not package.handlers:
            setup_logging(PACKAGE_LOGGER, "INFO")
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logging(name, "INFO")
    return logger
