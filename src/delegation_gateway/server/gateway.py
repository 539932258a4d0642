"""Gateway — the process-wide dependencies shared by request handlers.

Everything a request needs is reachable from one :class:`Gateway` object
hung off the HTTP server, so tests can build a gateway around a fake
signing backend or a fixed clock without touching module state.
"""
from __future__ import annotations

import dataclasses
import datetime
import logging
from dataclasses import dataclass
from typing import Callable

from delegation_gateway.audit import AuditLogger
from delegation_gateway.auth.verifier import ProofVerifier
from delegation_gateway.config import GatewaySettings
from delegation_gateway.delegation.capability import (
    REFERRAL_PROFILE,
    STORAGE_PROFILE,
    CapabilityProfile,
)
from delegation_gateway.delegation.issuer import DelegationIssuer
from delegation_gateway.delegation.signing import (
    Ed25519SigningBackend,
    LazySigningClient,
    SigningBackend,
)
from delegation_gateway.nonce.registry import NonceRegistry, NonceStore
from delegation_gateway.pipeline import DelegationPipeline

logger = logging.getLogger(__name__)

# Path -> profile names issued into one container.
DEFAULT_ROUTES: dict[str, tuple[str, ...]] = {
    "/delegation": (STORAGE_PROFILE.name,),
    "/delegation/referral": (REFERRAL_PROFILE.name,),
    "/delegation/all": (STORAGE_PROFILE.name, REFERRAL_PROFILE.name),
}


@dataclass
class Gateway:
    """Shared state and collaborators for the HTTP layer."""

    settings: GatewaySettings
    nonce_registry: NonceRegistry
    signing_client: LazySigningClient
    pipeline: DelegationPipeline
    audit: AuditLogger
    routes: dict[str, tuple[CapabilityProfile, ...]]

    def start(self) -> None:
        """Kick off signing backend initialization."""
        self.signing_client.start()

    def stop(self) -> None:
        self.signing_client.stop()


def signing_factory_from_settings(settings: GatewaySettings) -> Callable[[], SigningBackend]:
    """Return a factory building the signing backend described by *settings*."""
    if settings.signing_key is None:
        logger.warning(
            "No signing key configured; generating a throwaway key. "
            "Set DELEGATION_GATEWAY_SIGNING_KEY to keep a stable identity."
        )
        return Ed25519SigningBackend.generate
    seed_hex = settings.signing_key
    return lambda: Ed25519SigningBackend.from_hex(seed_hex)


def build_gateway(
    settings: GatewaySettings,
    signing_factory: Callable[[], SigningBackend] | None = None,
    nonce_store: NonceStore | None = None,
    clock: Callable[[], datetime.datetime] | None = None,
    route_profiles: dict[str, tuple[str, ...]] | None = None,
) -> Gateway:
    """Wire up a :class:`Gateway` from *settings*.

    Parameters
    ----------
    settings:
        Gateway configuration.
    signing_factory:
        Builds the signing backend; defaults to one derived from settings.
    nonce_store:
        Nonce backend; defaults to an in-memory store.
    clock:
        Current-time source shared by the nonce registry, verifier and issuer.
    route_profiles:
        Path -> profile names mapping; defaults to :data:`DEFAULT_ROUTES`.
    """
    profiles = {
        profile.name: dataclasses.replace(profile, ttl_seconds=settings.delegation_ttl_seconds)
        for profile in (STORAGE_PROFILE, REFERRAL_PROFILE)
    }
    routes = {
        path: tuple(profiles[name] for name in names)
        for path, names in (route_profiles or DEFAULT_ROUTES).items()
    }

    registry = NonceRegistry(store=nonce_store, ttl_seconds=settings.nonce_ttl_seconds, clock=clock)
    signing_client = LazySigningClient(
        signing_factory or signing_factory_from_settings(settings),
        backoff_seconds=settings.signing_init_backoff_seconds,
        max_backoff_seconds=settings.signing_init_max_backoff_seconds,
    )
    audit = AuditLogger(settings.audit_log_path)
    verifier = ProofVerifier(
        registry,
        expected_domain=settings.domain,
        clock=clock,
        clock_skew_seconds=settings.clock_skew_seconds,
        max_message_age_seconds=settings.max_message_age_seconds,
    )
    pipeline = DelegationPipeline(
        verifier,
        DelegationIssuer(signing_client, clock=clock),
        audit=audit,
        timeout_seconds=settings.request_timeout_seconds,
    )
    return Gateway(
        settings=settings,
        nonce_registry=registry,
        signing_client=signing_client,
        pipeline=pipeline,
        audit=audit,
        routes=routes,
    )


__all__ = ["DEFAULT_ROUTES", "Gateway", "build_gateway", "signing_factory_from_settings"]
