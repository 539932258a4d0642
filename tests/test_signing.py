"""Tests for delegation_gateway.delegation.signing — LazySigningClient."""
from __future__ import annotations

import threading
import time

import pytest

from delegation_gateway.delegation import Ed25519SigningBackend, LazySigningClient
from delegation_gateway.errors import RequestTimeout, SigningUnavailable


class CountingFactory:
    """Backend factory that fails a set number of times before succeeding."""

    def __init__(self, failures: int = 0, delay: float = 0.0) -> None:
        self.failures = failures
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self) -> Ed25519SigningBackend:
        with self._lock:
            self.calls += 1
            call = self.calls
        if self.delay:
            time.sleep(self.delay)
        if call <= self.failures:
            raise ConnectionError(f"backend unreachable (attempt {call})")
        return Ed25519SigningBackend.generate()


class TestEd25519SigningBackend:
    def test_from_hex_accepts_prefix(self) -> None:
        seed = "11" * 32
        assert (
            Ed25519SigningBackend.from_hex("0x" + seed).agent_identity()
            == Ed25519SigningBackend.from_hex(seed).agent_identity()
        )

    def test_from_hex_rejects_short_seed(self) -> None:
        with pytest.raises(ValueError):
            Ed25519SigningBackend.from_hex("11" * 16)


class TestLazySigningClient:
    def test_ready_with(self) -> None:
        backend = Ed25519SigningBackend.generate()
        client = LazySigningClient.ready_with(backend)
        assert client.ready is True
        assert client.get(timeout=0) is backend

    def test_not_ready_before_start(self) -> None:
        client = LazySigningClient(CountingFactory())
        assert client.ready is False
        assert client.attempts == 0

    def test_get_starts_initialization(self) -> None:
        factory = CountingFactory()
        client = LazySigningClient(factory)
        backend = client.get(timeout=5)
        assert backend is client.get(timeout=0)
        assert factory.calls == 1

    def test_single_flight_under_concurrency(self) -> None:
        factory = CountingFactory(delay=0.2)
        client = LazySigningClient(factory)
        results: list[object] = []
        lock = threading.Lock()

        def worker() -> None:
            backend = client.get(timeout=5)
            with lock:
                results.append(backend)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert factory.calls == 1
        assert len(results) == 10
        assert all(result is results[0] for result in results)

    def test_retries_with_backoff_until_success(self) -> None:
        factory = CountingFactory(failures=2)
        client = LazySigningClient(factory, backoff_seconds=0.01, max_backoff_seconds=0.02)
        client.get(timeout=5)
        assert factory.calls == 3
        assert client.attempts == 3

    def test_unavailable_after_failed_attempt(self) -> None:
        client = LazySigningClient(CountingFactory(failures=1000), backoff_seconds=0.01,
                                   max_backoff_seconds=0.01)
        try:
            with pytest.raises(SigningUnavailable) as exc_info:
                client.get(timeout=0.2)
            assert exc_info.value.status == 503
        finally:
            client.stop()

    def test_timeout_while_first_attempt_runs(self) -> None:
        client = LazySigningClient(CountingFactory(delay=1.0))
        try:
            with pytest.raises(RequestTimeout) as exc_info:
                client.get(timeout=0.05)
            assert exc_info.value.status == 504
        finally:
            client.stop()

    def test_start_is_idempotent(self) -> None:
        factory = CountingFactory(delay=0.05)
        client = LazySigningClient(factory)
        client.start()
        client.start()
        client.get(timeout=5)
        assert factory.calls == 1

    def test_stop_abandons_retries(self) -> None:
        factory = CountingFactory(failures=1000)
        client = LazySigningClient(factory, backoff_seconds=0.05, max_backoff_seconds=0.05)
        client.start()
        time.sleep(0.1)
        client.stop()
        time.sleep(0.1)
        calls = factory.calls
        time.sleep(0.2)
        assert factory.calls == calls
        assert client.ready is False
