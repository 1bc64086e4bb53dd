"""
Graceful shutdown for the exporter process.

SIGINT/SIGTERM run the registered cleanup callbacks in priority order;
``wait_for_shutdown`` blocks the main thread until they have finished.
"""
import signal
import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

from tsdb_exporter.common.logging_config import get_logger

logger = get_logger(__name__)


class ShutdownState(Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ShutdownManager:
    """
    Process-wide shutdown coordinator.

    Priority levels (lower = executed first):
        0-9:   Stop the export loop, waiting for the in-flight cycle
        10-49: Work that must see the final export (stats, reports)

    Usage:
        shutdown = ShutdownManager(timeout=30)
        shutdown.register(reporter.stop, priority=5, name="opentsdb-reporter")
        shutdown.install_signal_handlers()

        reporter.start()
        shutdown.wait_for_shutdown()
    """

    _instance: Optional['ShutdownManager'] = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self, timeout: int = 30):
        """
        Args:
            timeout: Seconds after which remaining callbacks are skipped
        """
        if self._initialized:
            return
        self._initialized = True

        self.timeout = timeout
        self.state = ShutdownState.RUNNING
        self._callbacks: List[Tuple[int, str, Callable[[], None]]] = []
        self._state_lock = threading.Lock()
        self._done = threading.Event()

        logger.debug(f"ShutdownManager initialized (timeout={timeout}s)")

    @classmethod
    def reset(cls):
        """Forget the singleton (tests only)."""
        with cls._lock:
            cls._instance = None

    @property
    def is_running(self) -> bool:
        return self.state == ShutdownState.RUNNING

    def register(
        self,
        callback: Callable[[], None],
        priority: int = 20,
        name: str = "unnamed"
    ) -> None:
        """Register a no-argument cleanup callback."""
        with self._state_lock:
            self._callbacks.append((priority, name, callback))
            self._callbacks.sort(key=lambda entry: entry[0])
        logger.debug(f"Registered shutdown callback: {name} (priority={priority})")

    def install_signal_handlers(self) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, self._signal_handler)
        logger.info("Signal handlers installed (SIGINT, SIGTERM)")

    def _signal_handler(self, signum: int, frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, stopping exporter")
        self.initiate_shutdown()

    def initiate_shutdown(self) -> None:
        """
        Run the cleanup callbacks once.
        Safe to call from a signal handler or from any thread.
        """
        with self._state_lock:
            if self.state != ShutdownState.RUNNING:
                logger.warning("Shutdown already in progress, ignoring")
                return
            self.state = ShutdownState.SHUTTING_DOWN
            callbacks = list(self._callbacks)

        self._run_callbacks(callbacks)

        with self._state_lock:
            self.state = ShutdownState.STOPPED
        self._done.set()
        logger.info("Shutdown complete")

    def _run_callbacks(self, callbacks: List[Tuple[int, str, Callable[[], None]]]) -> None:
        deadline = time.monotonic() + self.timeout

        for priority, name, callback in callbacks:
            if time.monotonic() >= deadline:
                logger.error(
                    f"Shutdown timeout ({self.timeout}s) exceeded, "
                    f"skipping '{name}' and later callbacks"
                )
                break
            try:
                callback()
            except Exception as e:
                logger.error(f"Shutdown callback '{name}' failed: {e}")
            else:
                logger.debug(f"Shutdown callback done: {name} (priority={priority})")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Block until shutdown has run its callbacks.

        Returns:
            True once shutdown is complete, False on timeout
        """
        return self._done.wait(timeout=timeout)
