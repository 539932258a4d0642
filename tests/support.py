"""Test helpers: a controllable clock, a test wallet, and message builders."""
from __future__ import annotations

import datetime
from typing import Any

from coincurve import PrivateKey

from delegation_gateway.auth.message import SiweMessage
from delegation_gateway.ethereum import personal_message_hash, public_key_to_address

DOMAIN = "app.example.com"
NOW = datetime.datetime(2026, 10, 19, 12, 0, 0, tzinfo=datetime.timezone.utc)
AUDIENCE = "did:key:z6MkiTBz1ymuepAQ4HEHYSF1H8quG5GLVVQR3djdX3mDooWp"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime.datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += datetime.timedelta(seconds=seconds)


class Wallet:
    """A secp256k1 account that signs like ``personal_sign``."""

    def __init__(self, secret: bytes) -> None:
        self._key = PrivateKey(secret)
        self.address = public_key_to_address(self._key.public_key)

    def sign(self, text: str) -> str:
        raw = self._key.sign_recoverable(personal_message_hash(text.encode("utf-8")), hasher=None)
        return "0x" + (raw[:64] + bytes([raw[64] + 27])).hex()


def iso(moment: datetime.datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def message_fields(address: str, nonce: str, **overrides: Any) -> dict[str, Any]:
    """Return the camelCase JSON form of a sign-in message."""
    fields: dict[str, Any] = {
        "domain": DOMAIN,
        "address": address,
        "statement": "Sign in to receive a storage delegation.",
        "uri": f"https://{DOMAIN}/login",
        "version": "1",
        "chainId": 1,
        "nonce": nonce,
        "issuedAt": iso(NOW - datetime.timedelta(seconds=5)),
    }
    fields.update(overrides)
    return {key: value for key, value in fields.items() if value is not None}


def signed_payload(wallet: Wallet, nonce: str, **overrides: Any) -> tuple[dict[str, Any], str]:
    """Build a message for *wallet* and sign its canonical text."""
    fields = message_fields(overrides.pop("address", wallet.address), nonce, **overrides)
    text = SiweMessage.from_dict(fields).to_text()
    return fields, wallet.sign(text)

