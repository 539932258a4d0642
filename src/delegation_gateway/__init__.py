"""delegation-gateway — exchange a Sign-In With Ethereum proof for signed capability delegations.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import delegation_gateway
>>> delegation_gateway.__version__
'0.1.0'

Quick start
-----------
::

    from delegation_gateway import GatewaySettings
    from delegation_gateway.server import build_gateway, run_server

    settings = GatewaySettings(domain="app.example.com")
    run_server(build_gateway(settings), port=settings.port)
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Errors and configuration
# ------------------------------------------------------------------
from delegation_gateway.config import GatewaySettings
from delegation_gateway.errors import (
    AuthenticationFailure,
    EncodingError,
    GatewayError,
    IdentityError,
    InvalidAudience,
    MalformedRequest,
    RequestTimeout,
    SigningUnavailable,
)

# ------------------------------------------------------------------
# Identity, nonces and sign-in
# ------------------------------------------------------------------
from delegation_gateway.identity import Identity, from_chain_account, parse
from delegation_gateway.nonce import NonceRegistry
from delegation_gateway.auth import AuthenticationProof, ProofVerifier, SiweMessage

# ------------------------------------------------------------------
# Delegation issuance and encoding
# ------------------------------------------------------------------
from delegation_gateway.delegation import (
    REFERRAL_PROFILE,
    STORAGE_PROFILE,
    Delegation,
    DelegationIssuer,
    LazySigningClient,
)
from delegation_gateway.ipld import Block, read_car, write_car
from delegation_gateway.pipeline import DelegationPipeline, IssuedContainer

__all__ = [
    "__version__",
    "AuthenticationFailure",
    "AuthenticationProof",
    "Block",
    "Delegation",
    "DelegationIssuer",
    "DelegationPipeline",
    "EncodingError",
    "GatewayError",
    "GatewaySettings",
    "Identity",
    "IdentityError",
    "InvalidAudience",
    "IssuedContainer",
    "LazySigningClient",
    "MalformedRequest",
    "NonceRegistry",
    "ProofVerifier",
    "REFERRAL_PROFILE",
    "RequestTimeout",
    "STORAGE_PROFILE",
    "SigningUnavailable",
    "SiweMessage",
    "from_chain_account",
    "parse",
    "read_car",
    "write_car",
]
