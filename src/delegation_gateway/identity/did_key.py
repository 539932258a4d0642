"""did:key encoding for Ed25519 public keys.

Implements the ``did:key`` DID method
(https://w3c-ccg.github.io/did-method-key/) for the key type the gateway
signs with:

1. Take the 32-byte raw Ed25519 public key.
2. Prepend the ``ed25519-pub`` multicodec prefix (``0xed 0x01``).
3. Encode with multibase base58btc (``z`` prefix).
4. Assemble ``did:key:z<base58btc>``.

The public key is recoverable from the DID string alone, which is what lets
anyone verify a delegation signed by the gateway without a registry lookup.
"""
from __future__ import annotations

from multiformats import multibase, multicodec

DID_KEY_PREFIX: str = "did:key:"

_ED25519_CODEC: str = "ed25519-pub"
_ED25519_KEY_LENGTH: int = 32


def public_key_to_did(public_key_bytes: bytes) -> str:
    """Encode a raw Ed25519 public key as a ``did:key`` DID.

    Raises
    ------
    ValueError
        If the key is not 32 bytes long.
    """
    if len(public_key_bytes) != _ED25519_KEY_LENGTH:
        raise ValueError(
            f"Ed25519 public key must be {_ED25519_KEY_LENGTH} bytes, "
            f"got {len(public_key_bytes)}."
        )
    wrapped = multicodec.wrap(_ED25519_CODEC, public_key_bytes)
    return DID_KEY_PREFIX + multibase.encode(wrapped, "base58btc")


def did_to_public_key(did: str) -> bytes:
    """Decode the raw Ed25519 public key embedded in a ``did:key`` DID.

    Raises
    ------
    ValueError
        If the DID is not a base58btc ``did:key``, or if it wraps a key type
        other than Ed25519.
    """
    if not did.startswith(DID_KEY_PREFIX):
        raise ValueError(f"Invalid did:key format: {did!r}.")
    return decode_key_identifier(did[len(DID_KEY_PREFIX):])


def decode_key_identifier(method_specific_id: str) -> bytes:
    """Decode the method-specific part of a ``did:key`` (``z...``).

    Raises
    ------
    ValueError
        On a missing ``z`` multibase prefix, undecodable data, or an
        unsupported multicodec.
    """
    if not method_specific_id.startswith("z") or len(method_specific_id) < 2:
        raise ValueError(
            f"Invalid did:key identifier {method_specific_id!r}. "
            "Expected a base58btc multibase string starting with 'z'."
        )
    try:
        decoded = multibase.decode(method_specific_id)
        codec, raw = multicodec.unwrap(decoded)
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Invalid did:key identifier {method_specific_id!r}: {exc}") from exc
    if codec.name != _ED25519_CODEC:
        raise ValueError(
            f"Unsupported multicodec {codec.name!r} in did:key. "
            "Only Ed25519 (ed25519-pub) keys are supported."
        )
    raw_bytes = bytes(raw)
    if len(raw_bytes) != _ED25519_KEY_LENGTH:
        raise ValueError(
            f"Ed25519 public key must be {_ED25519_KEY_LENGTH} bytes, got {len(raw_bytes)}."
        )
    return raw_bytes


__all__ = [
    "DID_KEY_PREFIX",
    "decode_key_identifier",
    "did_to_public_key",
    "public_key_to_did",
]
