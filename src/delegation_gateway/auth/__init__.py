"""Sign-In With Ethereum verification.

Quick start
-----------
::

    from delegation_gateway.auth import AuthenticationProof, ProofVerifier
    from delegation_gateway.nonce import NonceRegistry

    registry = NonceRegistry()
    verifier = ProofVerifier(registry, expected_domain="example.com")
    proof = AuthenticationProof.from_payload(body["siwe"], body["signature"])
    session = verifier.verify(proof)
    print(session.identity)  # did:pkh:eip155:1:0x...
"""
from __future__ import annotations

from delegation_gateway.auth.message import SiweMessage, parse_timestamp
from delegation_gateway.auth.verifier import (
    AuthenticationProof,
    ProofVerifier,
    VerifiedSession,
    decode_signature,
)

__all__ = [
    "AuthenticationProof",
    "ProofVerifier",
    "SiweMessage",
    "VerifiedSession",
    "decode_signature",
    "parse_timestamp",
]
