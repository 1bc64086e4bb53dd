"""
Short hostname reported in the `host=` tag of every put line.
"""
import socket
import threading
from typing import Callable, Optional


def shorten_hostname(hostname: str) -> str:
    """
    Strip the domain part of *hostname*.

        >>> shorten_hostname("host1.example.com")
        'host1'
        >>> shorten_hostname("host1")
        'host1'

    A leading dot is not treated as a domain separator.
    """
    index = hostname.find(".")
    if index > 0:
        return hostname[:index]
    return hostname


class ShortHostname:
    """
    Lazily resolved, write-once short hostname.

    The resolver runs on the first `get()` only; every later call returns
    the same string. Safe to share between threads.
    """

    def __init__(self, resolver: Callable[[], str] = socket.gethostname):
        self._resolver = resolver
        self._value: Optional[str] = None
        self._lock = threading.Lock()

    def get(self) -> str:
        if self._value is None:
            with self._lock:
                if self._value is None:
                    self._value = shorten_hostname(self._resolver())
        return self._value

    @property
    def is_resolved(self) -> bool:
        return self._value is not None
