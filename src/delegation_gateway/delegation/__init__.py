"""Signed capability delegations issued by the gateway.

Quick start
-----------
::

    from delegation_gateway.delegation import (
        DelegationIssuer,
        Ed25519SigningBackend,
        LazySigningClient,
        STORAGE_PROFILE,
    )
    from delegation_gateway.identity import parse

    client = LazySigningClient(Ed25519SigningBackend.generate)
    issuer = DelegationIssuer(client)
    delegation = issuer.issue_profile(subject, parse(aud), STORAGE_PROFILE, timeout=5)
    assert delegation.verify()
"""
from __future__ import annotations

from delegation_gateway.delegation.capability import (
    BUILTIN_PROFILES,
    REFERRAL_PROFILE,
    STORAGE_PROFILE,
    Capability,
    CapabilityProfile,
)
from delegation_gateway.delegation.issuer import DelegationIssuer
from delegation_gateway.delegation.signing import (
    Ed25519SigningBackend,
    LazySigningClient,
    SigningBackend,
)
from delegation_gateway.delegation.token import Delegation

__all__ = [
    "BUILTIN_PROFILES",
    "Capability",
    "CapabilityProfile",
    "Delegation",
    "DelegationIssuer",
    "Ed25519SigningBackend",
    "LazySigningClient",
    "REFERRAL_PROFILE",
    "STORAGE_PROFILE",
    "SigningBackend",
]
