"""Tests for delegation_gateway.pipeline — end-to-end issuance scenarios."""
from __future__ import annotations

import io
import threading

import pytest

from support import AUDIENCE, DOMAIN, FakeClock, Wallet, signed_payload
from delegation_gateway.audit import AuditLogger
from delegation_gateway.auth import ProofVerifier
from delegation_gateway.delegation import (
    REFERRAL_PROFILE,
    STORAGE_PROFILE,
    DelegationIssuer,
    Ed25519SigningBackend,
    LazySigningClient,
)
from delegation_gateway.errors import (
    BadSignature,
    InvalidAudience,
    InvalidNonce,
    MissingAudience,
    SigningUnavailable,
)
from delegation_gateway.ipld import decode, read_car
from delegation_gateway.nonce import NonceRegistry
from delegation_gateway.pipeline import DelegationPipeline


def _failing_factory() -> Ed25519SigningBackend:
    raise ConnectionError("signer offline")


@pytest.fixture()
def registry(clock: FakeClock) -> NonceRegistry:
    return NonceRegistry(clock=clock)


@pytest.fixture()
def audit() -> AuditLogger:
    return AuditLogger()


@pytest.fixture()
def backend() -> Ed25519SigningBackend:
    return Ed25519SigningBackend.from_hex("33" * 32)


def _pipeline(registry: NonceRegistry, clock: FakeClock, client: LazySigningClient,
              audit: AuditLogger, timeout: float | None = 5.0) -> DelegationPipeline:
    verifier = ProofVerifier(registry, expected_domain=DOMAIN, clock=clock)
    return DelegationPipeline(verifier, DelegationIssuer(client, clock=clock), audit=audit,
                              timeout_seconds=timeout)


@pytest.fixture()
def pipeline(registry: NonceRegistry, clock: FakeClock, backend: Ed25519SigningBackend,
             audit: AuditLogger) -> DelegationPipeline:
    return _pipeline(registry, clock, LazySigningClient.ready_with(backend), audit)


class TestSuccessfulIssuance:
    def test_storage_delegation(self, pipeline: DelegationPipeline, registry: NonceRegistry,
                                wallet: Wallet, backend: Ed25519SigningBackend) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        container = pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE])

        assert str(container.subject) == f"did:pkh:eip155:1:{wallet.address}"
        (delegation,) = container.delegations
        assert delegation.issuer == backend.agent_identity()
        assert str(delegation.audience) == AUDIENCE
        assert [c.can for c in delegation.capabilities] == ["upload/add", "store/add"]
        assert delegation.verify() is True

    def test_stream_decodes_to_issued_delegations(self, pipeline: DelegationPipeline,
                                                  registry: NonceRegistry, wallet: Wallet) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        container = pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE, REFERRAL_PROFILE])

        contents = read_car(io.BytesIO(b"".join(container.stream())))
        assert contents.roots == container.roots
        decoded = [decode(contents.get(root)) for root in contents.roots]
        assert decoded == list(container.delegations)

    def test_audit_trail(self, pipeline: DelegationPipeline, registry: NonceRegistry,
                         wallet: Wallet, audit: AuditLogger) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        container = pipeline.run(siwe, signature, AUDIENCE, [REFERRAL_PROFILE])
        events = audit.read_log()
        assert [e["event_type"] for e in events] == ["auth_success", "delegation_issued"]
        assert events[1]["details"]["cid"] == str(container.roots[0])
        assert "signature" not in str(events)


class TestRejectedRequests:
    def test_replay_issues_nothing(self, pipeline: DelegationPipeline, registry: NonceRegistry,
                                   wallet: Wallet, audit: AuditLogger) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE])
        audit.drain_buffer()

        with pytest.raises(InvalidNonce):
            pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE])
        assert [e["event_type"] for e in audit.read_log()] == ["auth_failure"]

    def test_missing_audience_keeps_nonce(self, pipeline: DelegationPipeline,
                                          registry: NonceRegistry, wallet: Wallet) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        with pytest.raises(MissingAudience) as exc_info:
            pipeline.run(siwe, signature, None, [STORAGE_PROFILE])
        assert exc_info.value.status == 400

        container = pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE])
        assert len(container.delegations) == 1

    def test_invalid_audience(self, pipeline: DelegationPipeline, registry: NonceRegistry,
                              wallet: Wallet) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        with pytest.raises(InvalidAudience, match="Invalid audience"):
            pipeline.run(siwe, signature, "did:unknown:abc", [STORAGE_PROFILE])

    def test_bad_signature(self, pipeline: DelegationPipeline, registry: NonceRegistry,
                           wallet: Wallet, other_wallet: Wallet) -> None:
        nonce = registry.issue().value
        siwe, _ = signed_payload(wallet, nonce)
        _, forged = signed_payload(other_wallet, nonce, address=wallet.address)
        with pytest.raises(BadSignature):
            pipeline.run(siwe, forged, AUDIENCE, [STORAGE_PROFILE])

    def test_signing_unavailable(self, registry: NonceRegistry, clock: FakeClock,
                                 wallet: Wallet, audit: AuditLogger) -> None:
        client = LazySigningClient(_failing_factory, backoff_seconds=0.01, max_backoff_seconds=0.01)
        pipeline = _pipeline(registry, clock, client, audit, timeout=0.2)
        try:
            siwe, signature = signed_payload(wallet, registry.issue().value)
            with pytest.raises(SigningUnavailable):
                pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE])
        finally:
            client.stop()
        assert "delegation_issued" not in [e["event_type"] for e in audit.read_log()]

    def test_non_string_audience_keeps_nonce(self, pipeline: DelegationPipeline,
                                             registry: NonceRegistry, wallet: Wallet) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        for bad in (123, ["did:key:z6Mk"], {"did": AUDIENCE}):
            with pytest.raises(InvalidAudience) as exc_info:
                pipeline.run(siwe, signature, bad, [STORAGE_PROFILE])
            assert exc_info.value.status == 400

        container = pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE])
        assert len(container.delegations) == 1


class TestConcurrentRequests:
    def test_identical_requests_single_winner(self, pipeline: DelegationPipeline,
                                              registry: NonceRegistry, wallet: Wallet) -> None:
        siwe, signature = signed_payload(wallet, registry.issue().value)
        barrier = threading.Barrier(12)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt() -> None:
            barrier.wait()
            try:
                pipeline.run(siwe, signature, AUDIENCE, [STORAGE_PROFILE])
                result = "ok"
            except InvalidNonce as exc:
                result = exc.reason
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(12)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("already_consumed") == 11
