"""Decentralized identifiers for issuers, audiences, and subjects.

Quick start
-----------
::

    from delegation_gateway.identity import from_chain_account, parse

    subject = from_chain_account(1, "0xab5801a7d398351b8be11c439e05c5b3259aec9b")
    audience = parse("did:key:z6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK")
    print(subject)  # did:pkh:eip155:1:0xAb5801a7D398351b8bE11C439e05C5B3259aeC9B
"""
from __future__ import annotations

from delegation_gateway.identity.did import (
    SUPPORTED_METHODS,
    Identity,
    from_chain_account,
    parse,
    to_string,
)
from delegation_gateway.identity.did_key import did_to_public_key, public_key_to_did
from delegation_gateway.identity.keys import Ed25519Keypair, verify_signature

__all__ = [
    "SUPPORTED_METHODS",
    "Ed25519Keypair",
    "Identity",
    "did_to_public_key",
    "from_chain_account",
    "parse",
    "public_key_to_did",
    "to_string",
    "verify_signature",
]
