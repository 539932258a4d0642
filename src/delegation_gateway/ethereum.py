"""Ethereum account primitives used by sign-in verification.

- keccak-256 (``pycryptodome``; note this is not ``hashlib.sha3_256``)
- EIP-55 mixed-case checksum addresses
- EIP-191 ``personal_sign`` message hashing
- secp256k1 public key recovery (``coincurve``) and address derivation
"""
from __future__ import annotations

import re

from coincurve import PublicKey
from Crypto.Hash import keccak

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
_PERSONAL_PREFIX = b"\x19Ethereum Signed Message:\n"


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte keccak-256 digest of *data*."""
    return keccak.new(digest_bits=256, data=data).digest()


def is_address(value: str) -> bool:
    """Return ``True`` if *value* is a ``0x``-prefixed 20-byte hex string."""
    return bool(_ADDRESS_PATTERN.match(value))


def to_checksum_address(address: str) -> str:
    """Return the EIP-55 checksum form of *address*.

    Raises
    ------
    ValueError
        If *address* is not a 20-byte hex address.
    """
    if not is_address(address):
        raise ValueError(f"Invalid Ethereum address {address!r}.")
    lowered = address[2:].lower()
    digest = keccak256(lowered.encode("ascii")).hex()
    return "0x" + "".join(
        char.upper() if int(digest[i], 16) >= 8 else char
        for i, char in enumerate(lowered)
    )


def personal_message_hash(message: bytes) -> bytes:
    """Hash *message* the way ``personal_sign`` (EIP-191 version 0x45) does."""
    prefix = _PERSONAL_PREFIX + str(len(message)).encode("ascii")
    return keccak256(prefix + message)


def public_key_to_address(public_key: PublicKey) -> str:
    """Derive the checksummed account address of a secp256k1 public key."""
    uncompressed = public_key.format(compressed=False)
    return to_checksum_address("0x" + keccak256(uncompressed[1:])[-20:].hex())


def recover_address(message: bytes, signature: bytes) -> str:
    """Recover the signing address of a ``personal_sign`` signature.

    Parameters
    ----------
    message:
        The exact bytes that were signed (before EIP-191 prefixing).
    signature:
        65 bytes ``r || s || v`` where ``v`` is 0/1 or 27/28.

    Raises
    ------
    ValueError
        If the signature has the wrong shape or no key can be recovered.
    """
    if len(signature) != 65:
        raise ValueError(f"Signature must be 65 bytes, got {len(signature)}.")
    v = signature[64]
    if v >= 27:
        v -= 27
    if v not in (0, 1):
        raise ValueError(f"Invalid signature recovery id {signature[64]}.")
    recoverable = signature[:64] + bytes([v])
    digest = personal_message_hash(message)
    try:
        public_key = PublicKey.from_signature_and_message(recoverable, digest, hasher=None)
    except Exception as exc:  # coincurve raises bare Exception on failed recovery
        raise ValueError(f"Public key recovery failed: {exc}") from exc
    return public_key_to_address(public_key)


__all__ = [
    "is_address",
    "keccak256",
    "personal_message_hash",
    "public_key_to_address",
    "recover_address",
    "to_checksum_address",
]
