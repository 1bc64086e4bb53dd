#!/usr/bin/env python3
"""
OpenTSDB Exporter - push an in-process metrics registry to OpenTSDB.

Imports the registry named on the command line and flushes it to the
collector every interval until SIGINT/SIGTERM, or once with --once.

    python exporter.py --registry myapp.metrics:registry --host tsdb --port 4242 \
        --prefix myapp --tag env=prod --duration-unit ms
"""
import sys
import logging
import argparse
import importlib
from typing import Any, Dict, List, Mapping, Optional

from config.settings import settings
from tsdb_exporter.common.logging_config import PACKAGE_LOGGER, setup_logging
from tsdb_exporter.common.exceptions import (
    BaseExporterException,
    ConfigurationError,
    RegistryLoadError
)
from tsdb_exporter.common.shutdown import ShutdownManager
from tsdb_exporter.common.correlation import set_component
from tsdb_exporter.monitoring.metrics import start_metrics_server
from tsdb_exporter.opentsdb.config import OpenTSDBConfig
from tsdb_exporter.opentsdb.reporter import OpenTSDBReporter
from tsdb_exporter.opentsdb.types import MappingRegistry


def configure_logging(cfg) -> logging.Logger:
    """Apply LOG_LEVEL / LOG_FORMAT to the CLI and to the tsdb_exporter package."""
    level = cfg.logging.level if cfg else "INFO"
    fmt = cfg.logging.format if cfg else "json"
    setup_logging(PACKAGE_LOGGER, level=level, fmt=fmt)
    return setup_logging(__name__, level=level, fmt=fmt)


logger = configure_logging(settings)

set_component("exporter")


def load_registry(target: str) -> Any:
    """
    Import a registry given as ``package.module:attribute``.

    The attribute may be dotted. Plain mappings of name -> metric are
    wrapped in a ``MappingRegistry``.

    Raises:
        RegistryLoadError: target is malformed, missing or not a registry
    """
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise RegistryLoadError(
            f"Registry must be given as 'module:attribute', got {target!r}"
        )

    try:
        obj = importlib.import_module(module_name)
    except ImportError as e:
        raise RegistryLoadError(f"Cannot import module '{module_name}': {e}") from e

    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise RegistryLoadError(
                f"'{module_name}' has no attribute '{attr_path}'"
            ) from e

    if callable(getattr(obj, "each", None)):
        return obj
    if isinstance(obj, Mapping):
        return MappingRegistry(obj)
    raise RegistryLoadError(
        f"{target} is a {type(obj).__name__}, expected a registry or a mapping"
    )


def parse_tags(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated ``key=value`` options into a dict (last one wins)."""
    tags: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key or not value:
            raise ConfigurationError(f"Tag must be given as key=value, got {item!r}")
        tags[key] = value
    return tags


def build_parser(cfg) -> argparse.ArgumentParser:
    tsdb = cfg.opentsdb
    parser = argparse.ArgumentParser(
        description="OpenTSDB Exporter - push registry metrics to an OpenTSDB collector"
    )
    parser.add_argument(
        "--registry",
        required=True,
        help="Registry to export, as module:attribute"
    )
    parser.add_argument(
        "--host",
        default=tsdb.host,
        help=f"Collector host (default: {tsdb.host})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=tsdb.port,
        help=f"Collector port (default: {tsdb.port})"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=tsdb.flush_interval_seconds,
        help=f"Flush interval in seconds (default: {tsdb.flush_interval_seconds})"
    )
    parser.add_argument(
        "--prefix",
        default=tsdb.prefix,
        help="Prefix prepended to every metric name"
    )
    parser.add_argument(
        "--tag",
        action="append",
        metavar="KEY=VALUE",
        help="Tag appended to every line (repeatable, added to OPENTSDB_TAGS)"
    )
    parser.add_argument(
        "--duration-unit",
        default=tsdb.duration_unit,
        help=f"Reporting unit for timers: ns, us, ms, s (default: {tsdb.duration_unit})"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single export cycle and exit"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=cfg.monitoring.metrics_port if cfg.monitoring.metrics_enabled else None,
        help="Serve the exporter's own Prometheus metrics on this port"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    if settings is None:
        logger.critical("Settings could not be loaded, check the environment")
        return 2

    args = build_parser(settings).parse_args(argv)

    try:
        registry = load_registry(args.registry)
        tags = dict(settings.opentsdb.tags)
        tags.update(parse_tags(args.tag))
        config = OpenTSDBConfig(
            host=args.host,
            port=args.port,
            registry=registry,
            flush_interval=args.interval,
            duration_unit=args.duration_unit,
            prefix=args.prefix,
            tags=tags,
            connect_timeout=settings.opentsdb.connect_timeout_seconds,
            write_error_policy=settings.opentsdb.write_error_policy,
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    reporter = OpenTSDBReporter(config)

    if args.once:
        try:
            written = reporter.export_once()
        except BaseExporterException as e:
            logger.error(f"Export failed: {e}")
            return 1
        logger.info(f"Exported {written} lines to {reporter.collector}")
        return 0

    timeout = settings.shutdown.timeout_seconds
    shutdown = ShutdownManager(timeout=timeout)
    shutdown.register(
        lambda: reporter.stop(timeout=timeout),
        priority=5,
        name="opentsdb-reporter"
    )
    shutdown.install_signal_handlers()

    reporter.start()
    shutdown.wait_for_shutdown()

    stats = reporter.get_stats()
    logger.info(
        f"Exporter Stats - Cycles: {stats['cycles_completed']}, "
        f"Failed: {stats['cycles_failed']}"
    )
    logger.info("Exporter terminated")
    return 0


if __name__ == "__main__":
    sys.exit(main())
