"""
Unit tests for short hostname resolution.
"""
import socket
import threading
from unittest.mock import MagicMock

import pytest

from tsdb_exporter.opentsdb.hostname import ShortHostname, shorten_hostname


class TestShortenHostname:

    @pytest.mark.parametrize("hostname,expected", [
        ("host1.example.com", "host1"),
        ("host1", "host1"),
        ("db-01.eu.internal", "db-01"),
        (".hidden", ".hidden"),
        ("", ""),
    ])
    def test_strip_domain(self, hostname, expected):
        assert shorten_hostname(hostname) == expected


class TestShortHostname:

    def test_resolver_called_once(self):
        resolver = MagicMock(return_value="host1.example.com")
        hostname = ShortHostname(resolver)

        first = hostname.get()
        second = hostname.get()

        assert first == "host1"
        assert first is second
        resolver.assert_called_once_with()

    def test_lazy(self):
        resolver = MagicMock(return_value="host1")
        hostname = ShortHostname(resolver)

        assert not hostname.is_resolved
        resolver.assert_not_called()
        hostname.get()
        assert hostname.is_resolved

    def test_default_uses_socket_gethostname(self):
        assert ShortHostname()._resolver is socket.gethostname
        assert ShortHostname().get() == shorten_hostname(socket.gethostname())

    def test_concurrent_first_use_resolves_once(self):
        calls = []
        start = threading.Barrier(8)

        def resolver():
            calls.append(1)
            return "node7.cluster"

        hostname = ShortHostname(resolver)
        results = []

        def worker():
            start.wait()
            results.append(hostname.get())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == ["node7"] * 8
        assert len(calls) == 1

    def test_instances_are_independent(self):
        a = ShortHostname(lambda: "a.x")
        b = ShortHostname(lambda: "b.y")
        assert (a.get(), b.get()) == ("a", "b")
