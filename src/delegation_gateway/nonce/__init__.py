"""Single-use sign-in nonces."""
from __future__ import annotations

from delegation_gateway.nonce.registry import (
    InMemoryNonceStore,
    Nonce,
    NonceAlreadyConsumed,
    NonceError,
    NonceExpired,
    NonceNotFound,
    NonceRegistry,
    NonceStore,
)

__all__ = [
    "InMemoryNonceStore",
    "Nonce",
    "NonceAlreadyConsumed",
    "NonceError",
    "NonceExpired",
    "NonceNotFound",
    "NonceRegistry",
    "NonceStore",
]
