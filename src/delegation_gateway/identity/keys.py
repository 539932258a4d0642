"""Ed25519 keys for the gateway's signing identity.

Key material is held as the raw 32-byte seed so it can be loaded straight
from configuration; the public half is exposed raw and as a ``did:key``.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from delegation_gateway.identity.did_key import public_key_to_did

SEED_LENGTH: int = 32


@dataclass(frozen=True)
class Ed25519Keypair:
    """An Ed25519 signing key derived from a 32-byte seed.

    Parameters
    ----------
    seed:
        Raw private key bytes.

    Raises
    ------
    ValueError
        If *seed* is not 32 bytes long.
    """

    seed: bytes = field(repr=False)
    _private: Ed25519PrivateKey = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.seed) != SEED_LENGTH:
            raise ValueError(f"Ed25519 seed must be {SEED_LENGTH} bytes, got {len(self.seed)}.")
        object.__setattr__(self, "_private", Ed25519PrivateKey.from_private_bytes(self.seed))

    @classmethod
    def generate(cls) -> "Ed25519Keypair":
        seed = Ed25519PrivateKey.generate().private_bytes(
            Encoding.Raw, PrivateFormat.Raw, NoEncryption()
        )
        return cls(seed)

    @classmethod
    def from_hex(cls, text: str) -> "Ed25519Keypair":
        """Load a keypair from a hex seed (``0x`` optional)."""
        return cls(bytes.fromhex(text.strip().removeprefix("0x")))

    @property
    def public_bytes(self) -> bytes:
        return self._private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    @property
    def did(self) -> str:
        """The ``did:key`` of the public half."""
        return public_key_to_did(self.public_bytes)

    def sign(self, data: bytes) -> bytes:
        """Return the 64-byte signature of *data*."""
        return self._private.sign(data)


def verify_signature(public_key: bytes, signature: bytes, data: bytes) -> bool:
    """Return ``True`` if *signature* over *data* was made by *public_key*."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, data)
    except InvalidSignature:
        return False
    return True


__all__ = ["Ed25519Keypair", "SEED_LENGTH", "verify_signature"]
