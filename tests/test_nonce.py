"""Tests for delegation_gateway.nonce — issuance, expiry, single use."""
from __future__ import annotations

import threading

import pytest

from support import NOW, FakeClock
from delegation_gateway.nonce import (
    InMemoryNonceStore,
    NonceAlreadyConsumed,
    NonceError,
    NonceExpired,
    NonceNotFound,
    NonceRegistry,
)


@pytest.fixture()
def store() -> InMemoryNonceStore:
    return InMemoryNonceStore()


@pytest.fixture()
def registry(store: InMemoryNonceStore, clock: FakeClock) -> NonceRegistry:
    return NonceRegistry(store=store, ttl_seconds=300, clock=clock)


class TestIssue:
    def test_nonce_is_alphanumeric(self, registry: NonceRegistry) -> None:
        nonce = registry.issue()
        assert nonce.value.isalnum()
        assert len(nonce.value) >= 8

    def test_expiry_uses_ttl(self, registry: NonceRegistry) -> None:
        nonce = registry.issue()
        assert nonce.issued_at == NOW
        assert (nonce.expires_at - nonce.issued_at).total_seconds() == 300

    def test_values_are_unique(self, registry: NonceRegistry) -> None:
        values = {registry.issue().value for _ in range(200)}
        assert len(values) == 200

    def test_issued_nonce_is_stored(self, registry: NonceRegistry, store: InMemoryNonceStore) -> None:
        registry.issue()
        assert len(store) == 1

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValueError):
            NonceRegistry(ttl_seconds=0)


class TestConsume:
    def test_consume_once(self, registry: NonceRegistry) -> None:
        nonce = registry.issue()
        registry.consume(nonce.value)

    def test_second_consume_is_already_consumed(self, registry: NonceRegistry) -> None:
        nonce = registry.issue()
        registry.consume(nonce.value)
        with pytest.raises(NonceAlreadyConsumed) as exc_info:
            registry.consume(nonce.value)
        assert exc_info.value.reason == "already_consumed"

    def test_unknown_value(self, registry: NonceRegistry) -> None:
        with pytest.raises(NonceNotFound) as exc_info:
            registry.consume("neverissued1")
        assert exc_info.value.reason == "not_found"

    def test_expired(self, registry: NonceRegistry, clock: FakeClock) -> None:
        nonce = registry.issue()
        clock.advance(301)
        with pytest.raises(NonceExpired) as exc_info:
            registry.consume(nonce.value)
        assert exc_info.value.reason == "expired"

    def test_consume_at_exact_expiry_succeeds(self, registry: NonceRegistry, clock: FakeClock) -> None:
        nonce = registry.issue()
        clock.advance(300)
        registry.consume(nonce.value)

    def test_expired_wins_over_consumed(self, registry: NonceRegistry, clock: FakeClock) -> None:
        nonce = registry.issue()
        registry.consume(nonce.value)
        clock.advance(400)
        with pytest.raises(NonceExpired):
            registry.consume(nonce.value)

    def test_concurrent_consumers_single_winner(self, registry: NonceRegistry) -> None:
        nonce = registry.issue()
        barrier = threading.Barrier(16)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            try:
                registry.consume(nonce.value)
                result = "ok"
            except NonceError as exc:
                result = exc.reason
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("already_consumed") == 15


class TestPurge:
    def test_purge_drops_only_expired(self, registry: NonceRegistry, store: InMemoryNonceStore,
                                      clock: FakeClock) -> None:
        registry.issue()
        clock.advance(200)
        fresh = registry.issue()
        clock.advance(150)
        assert registry.purge_expired() == 1
        assert len(store) == 1
        registry.consume(fresh.value)

    def test_purged_nonce_is_not_found(self, registry: NonceRegistry, clock: FakeClock) -> None:
        nonce = registry.issue()
        clock.advance(301)
        registry.purge_expired()
        with pytest.raises(NonceNotFound):
            registry.consume(nonce.value)
