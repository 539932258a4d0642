#!/usr/bin/env python3
"""Example: Quickstart

Runs the whole sign-in flow in process: issue a nonce, sign the message
with a throwaway wallet, exchange it for a storage delegation, and read the
delegation back out of the CAR stream.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install delegation-gateway
"""
from __future__ import annotations

import datetime
import io
import os

from coincurve import PrivateKey

import delegation_gateway
from delegation_gateway import (
    STORAGE_PROFILE,
    DelegationIssuer,
    DelegationPipeline,
    LazySigningClient,
    NonceRegistry,
    ProofVerifier,
    SiweMessage,
    read_car,
)
from delegation_gateway.delegation import Ed25519SigningBackend
from delegation_gateway.ethereum import personal_message_hash, public_key_to_address
from delegation_gateway.identity import Ed25519Keypair
from delegation_gateway.ipld import decode

DOMAIN = "app.example.com"


def main() -> None:
    print(f"delegation-gateway version: {delegation_gateway.__version__}")

    # Step 1: Wire the pipeline around a fresh service key
    registry = NonceRegistry()
    client = LazySigningClient.ready_with(Ed25519SigningBackend.generate())
    pipeline = DelegationPipeline(
        ProofVerifier(registry, expected_domain=DOMAIN),
        DelegationIssuer(client),
    )

    # Step 2: The wallet asks for a nonce and signs a sign-in message
    wallet = PrivateKey(os.urandom(32))
    address = public_key_to_address(wallet.public_key)
    message = SiweMessage(
        domain=DOMAIN,
        address=address,
        uri=f"https://{DOMAIN}/login",
        version="1",
        chain_id=1,
        nonce=registry.issue().value,
        issued_at=datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z"),
        statement="Sign in to receive a storage delegation.",
    )
    raw = wallet.sign_recoverable(personal_message_hash(message.to_text().encode()), hasher=None)
    signature = "0x" + (raw[:64] + bytes([raw[64] + 27])).hex()
    print(f"Wallet address: {address}")

    # Step 3: Exchange the proof for a delegation to the client's own key
    client_key = Ed25519Keypair.generate()
    audience = client_key.did
    container = pipeline.run(message.to_text(), signature, audience, [STORAGE_PROFILE])

    # Step 4: Read the streamed container back
    contents = read_car(io.BytesIO(b"".join(container.stream())))
    for root in contents.roots:
        delegation = decode(contents.get(root))
        print(f"Root {root}")
        print(f"  issuer:       {delegation.issuer}")
        print(f"  audience:     {delegation.audience}")
        print(f"  capabilities: {', '.join(c.can for c in delegation.capabilities)}")
        print(f"  signature ok: {delegation.verify()}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
