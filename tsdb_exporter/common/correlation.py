"""
Correlation IDs for export cycles.

Each export cycle runs under its own ID so the log records of one flush
(connect, write errors, failure) can be grouped. The ID and the component
name live in ContextVars; the reporter thread never sees the main thread's.
"""
import uuid
import logging
from typing import Optional
from contextvars import ContextVar, Token

_cycle_id: ContextVar[Optional[str]] = ContextVar('cycle_id', default=None)
_component: ContextVar[Optional[str]] = ContextVar('component', default=None)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """ID of the export cycle running in this context, or None."""
    return _cycle_id.get()


def set_component(component: str) -> None:
    """Name the component (``exporter``, ``scheduler``) for this context's logs."""
    _component.set(component)


def get_component() -> Optional[str]:
    return _component.get()


class CorrelationFilter(logging.Filter):
    """
    Adds ``correlation_id`` and ``component`` to every record.
    Attached to handlers, so it also sees records propagated from child loggers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or ""
        record.component = get_component() or ""
        return True


class CorrelationContext:
    """
    Run a block under a correlation ID, restoring the previous one on exit.

    Usage:
        with CorrelationContext() as ctx:
            logger.info(f"export cycle {ctx.correlation_id} started")
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token: Optional[Token] = None

    def __enter__(self) -> 'CorrelationContext':
        self._token = _cycle_id.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _cycle_id.reset(self._token)
