#!/usr/bin/env python3
"""Example: HTTP client

Talks to a running gateway over HTTP the way a browser dapp would.

Usage:
    delegation-gateway serve --domain localhost:3001 &
    python examples/02_http_client.py

Requirements:
    pip install delegation-gateway
"""
from __future__ import annotations

import datetime
import json
import os
import urllib.request

from coincurve import PrivateKey

from delegation_gateway import SiweMessage, read_car
from delegation_gateway.ethereum import personal_message_hash, public_key_to_address
from delegation_gateway.identity import Ed25519Keypair
from delegation_gateway.ipld import decode

BASE_URL = "http://localhost:3001"
DOMAIN = "localhost:3001"


def main() -> None:
    with urllib.request.urlopen(f"{BASE_URL}/nonce") as response:
        nonce = json.load(response)["nonce"]
    print(f"Nonce: {nonce}")

    wallet = PrivateKey(os.urandom(32))
    message = SiweMessage(
        domain=DOMAIN,
        address=public_key_to_address(wallet.public_key),
        uri=f"http://{DOMAIN}",
        version="1",
        chain_id=1,
        nonce=nonce,
        issued_at=datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z"),
    )
    raw = wallet.sign_recoverable(personal_message_hash(message.to_text().encode()), hasher=None)

    client_key = Ed25519Keypair.generate()
    body = {
        "siwe": message.to_dict(),
        "signature": "0x" + (raw[:64] + bytes([raw[64] + 27])).hex(),
        "aud": client_key.did,
    }
    request = urllib.request.Request(
        f"{BASE_URL}/delegation/all",
        data=json.dumps(body).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(request) as response:
        contents = read_car(response.read())

    for root in contents.roots:
        delegation = decode(contents.get(root))
        print(f"{root}: {', '.join(c.can for c in delegation.capabilities)}")


if __name__ == "__main__":
    main()
