"""NonceRegistry — single-use, expiring sign-in nonces.

A nonce is issued when a caller starts a sign-in session and consumed by
exactly one verification attempt. Storage is delegated to a
:class:`NonceStore` so the in-process dictionary can be swapped for a
shared key-value backend without touching verification code. Stores must
make :meth:`NonceStore.consume` atomic per value: of several callers racing
on the same nonce, exactly one succeeds.
"""
from __future__ import annotations

import datetime
import secrets
import string
import threading
from dataclasses import dataclass
from typing import Callable, Protocol

# EIP-4361 nonces are alphanumeric and at least 8 characters long;
# 17 characters from this alphabet carry roughly 100 bits of entropy.
_NONCE_ALPHABET: str = string.ascii_letters + string.digits
_NONCE_LENGTH: int = 17


class NonceError(Exception):
    """Base class for nonce consumption failures."""

    reason: str = "invalid"

    def __init__(self, value: str) -> None:
        super().__init__(f"Nonce {value!r} rejected: {self.reason}.")
        self.value = value


class NonceNotFound(NonceError):
    """The nonce was never issued (or has been purged)."""

    reason = "not_found"


class NonceExpired(NonceError):
    """The nonce passed its expiry before it was consumed."""

    reason = "expired"


class NonceAlreadyConsumed(NonceError):
    """The nonce has already been used by an earlier verification."""

    reason = "already_consumed"


@dataclass
class Nonce:
    """A single-use sign-in nonce.

    Parameters
    ----------
    value:
        The random token embedded in the sign-in message.
    issued_at:
        UTC datetime when the nonce was issued.
    expires_at:
        UTC datetime after which the nonce can no longer be consumed.
    consumed:
        Whether a verification attempt has already used this nonce.
    """

    value: str
    issued_at: datetime.datetime
    expires_at: datetime.datetime
    consumed: bool = False

    def is_expired(self, now: datetime.datetime) -> bool:
        """Return True if *now* is past the nonce expiry."""
        return now > self.expires_at


class NonceStore(Protocol):
    """Storage backend for nonces."""

    def put(self, nonce: Nonce) -> None:
        """Store a freshly issued nonce."""

    def consume(self, value: str, now: datetime.datetime) -> Nonce:
        """Atomically mark *value* consumed, raising :class:`NonceError` on failure."""

    def purge_expired(self, now: datetime.datetime) -> int:
        """Drop nonces whose expiry has passed and return how many were dropped."""


class InMemoryNonceStore:
    """Thread-safe, process-local :class:`NonceStore`.

    Consumed nonces stay in the store until they expire so that a replay is
    reported as ``already_consumed`` rather than ``not_found``.
    """

    def __init__(self) -> None:
        self._nonces: dict[str, Nonce] = {}
        self._lock = threading.Lock()

    def put(self, nonce: Nonce) -> None:
        with self._lock:
            if nonce.value in self._nonces:
                raise ValueError(f"Nonce {nonce.value!r} is already stored.")
            self._nonces[nonce.value] = nonce

    def consume(self, value: str, now: datetime.datetime) -> Nonce:
        with self._lock:
            nonce = self._nonces.get(value)
            if nonce is None:
                raise NonceNotFound(value)
            if nonce.is_expired(now):
                raise NonceExpired(value)
            if nonce.consumed:
                raise NonceAlreadyConsumed(value)
            nonce.consumed = True
            return nonce

    def purge_expired(self, now: datetime.datetime) -> int:
        with self._lock:
            expired = [value for value, nonce in self._nonces.items() if nonce.is_expired(now)]
            for value in expired:
                del self._nonces[value]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._nonces)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class NonceRegistry:
    """Issues and consumes single-use nonces.

    Parameters
    ----------
    store:
        Backend holding issued nonces. Defaults to :class:`InMemoryNonceStore`.
    ttl_seconds:
        Lifetime of an issued nonce. Defaults to 5 minutes.
    clock:
        Callable returning the current UTC datetime; injectable for tests.
    """

    def __init__(
        self,
        store: NonceStore | None = None,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")
        self._store: NonceStore = store if store is not None else InMemoryNonceStore()
        self._ttl = datetime.timedelta(seconds=ttl_seconds)
        self._clock = clock or _utcnow

    def issue(self) -> Nonce:
        """Generate, store, and return a fresh nonce."""
        now = self._clock()
        nonce = Nonce(
            value="".join(secrets.choice(_NONCE_ALPHABET) for _ in range(_NONCE_LENGTH)),
            issued_at=now,
            expires_at=now + self._ttl,
        )
        self._store.put(nonce)
        return nonce

    def consume(self, value: str) -> None:
        """Consume *value*.

        Raises
        ------
        NonceNotFound
            If the nonce was never issued.
        NonceExpired
            If the nonce is past its expiry.
        NonceAlreadyConsumed
            If the nonce was consumed before.
        """
        self._store.consume(value, self._clock())

    def purge_expired(self) -> int:
        """Remove expired nonces from the store; returns the number removed."""
        return self._store.purge_expired(self._clock())


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
