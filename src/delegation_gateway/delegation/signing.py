"""Signing backends and the once-initialized client that guards them.

The gateway never hands its private key to request code. Requests obtain a
:class:`SigningBackend` from a :class:`LazySigningClient`, which builds the
backend exactly once on a background thread. If building fails it is
retried with exponential backoff; requests arriving meanwhile wait on the
same initialization instead of starting their own.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol, Sequence

from delegation_gateway.delegation.capability import Capability
from delegation_gateway.delegation.token import Delegation
from delegation_gateway.errors import RequestTimeout, SigningUnavailable
from delegation_gateway.identity.did import Identity, parse
from delegation_gateway.identity.keys import Ed25519Keypair

logger = logging.getLogger(__name__)


class SigningBackend(Protocol):
    """Holder of the service signing key."""

    def agent_identity(self) -> Identity:
        """Return the identity delegations are issued under."""

    def create_delegation(
        self,
        audience: Identity,
        capabilities: Sequence[Capability],
        expiration: int | None,
    ) -> Delegation:
        """Build and sign a delegation to *audience*."""


class Ed25519SigningBackend:
    """In-process :class:`SigningBackend` holding an Ed25519 keypair."""

    def __init__(self, keypair: Ed25519Keypair) -> None:
        self._keypair = keypair
        self._identity = parse(keypair.did)

    @classmethod
    def generate(cls) -> "Ed25519SigningBackend":
        """Create a backend with a freshly generated key."""
        return cls(Ed25519Keypair.generate())

    @classmethod
    def from_hex(cls, seed_hex: str) -> "Ed25519SigningBackend":
        """Create a backend from a hex-encoded 32-byte seed.

        Raises
        ------
        ValueError
            If the seed is not 64 hex characters.
        """
        return cls(Ed25519Keypair.from_hex(seed_hex))

    def agent_identity(self) -> Identity:
        return self._identity

    def create_delegation(
        self,
        audience: Identity,
        capabilities: Sequence[Capability],
        expiration: int | None,
    ) -> Delegation:
        unsigned = Delegation(
            issuer=self._identity,
            audience=audience,
            capabilities=tuple(capabilities),
            expiration=expiration,
        )
        return unsigned.with_signature(self._keypair.sign(unsigned.signable_bytes()))


class LazySigningClient:
    """Initializes a :class:`SigningBackend` once and shares it.

    Parameters
    ----------
    factory:
        Callable building the backend. May raise; failures are retried.
    backoff_seconds:
        Delay before the first retry; doubled after each failure.
    max_backoff_seconds:
        Upper bound for the retry delay.
    """

    def __init__(
        self,
        factory: Callable[[], SigningBackend],
        backoff_seconds: float = 0.5,
        max_backoff_seconds: float = 30.0,
    ) -> None:
        self._factory = factory
        self._backoff = backoff_seconds
        self._max_backoff = max_backoff_seconds
        self._condition = threading.Condition()
        self._stopped = threading.Event()
        self._backend: SigningBackend | None = None
        self._last_error: BaseException | None = None
        self._attempts = 0
        self._thread: threading.Thread | None = None

    @classmethod
    def ready_with(cls, backend: SigningBackend) -> "LazySigningClient":
        """Return a client that is already initialized with *backend*."""
        client = cls(lambda: backend)
        client._backend = backend
        client._attempts = 1
        return client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin initialization in the background (idempotent)."""
        with self._condition:
            if self._thread is not None or self._backend is not None:
                return
            self._thread = threading.Thread(
                target=self._initialize, name="signing-client-init", daemon=True
            )
            self._thread.start()

    def stop(self) -> None:
        """Abandon any pending retries."""
        self._stopped.set()

    def _initialize(self) -> None:
        delay = self._backoff
        while not self._stopped.is_set():
            try:
                backend = self._factory()
            except Exception as exc:
                with self._condition:
                    self._attempts += 1
                    self._last_error = exc
                    attempts = self._attempts
                logger.warning(
                    "Signing client initialization attempt %d failed: %s; retrying in %.1fs",
                    attempts,
                    exc,
                    delay,
                )
                self._stopped.wait(delay)
                delay = min(delay * 2, self._max_backoff)
                continue
            with self._condition:
                self._attempts += 1
                self._backend = backend
                self._last_error = None
                self._condition.notify_all()
            logger.info("Signing client ready as %s", backend.agent_identity())
            return

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        with self._condition:
            return self._backend is not None

    @property
    def attempts(self) -> int:
        with self._condition:
            return self._attempts

    def get(self, timeout: float | None = None) -> SigningBackend:
        """Return the backend, waiting up to *timeout* seconds for it.

        Raises
        ------
        SigningUnavailable
            If initialization has failed and is still being retried when the
            wait ends.
        RequestTimeout
            If initialization is still in its first attempt when the wait ends.
        """
        self.start()
        with self._condition:
            ready = self._condition.wait_for(lambda: self._backend is not None, timeout=timeout)
            if ready:
                assert self._backend is not None
                return self._backend
            if self._last_error is not None:
                raise SigningUnavailable(
                    f"Signing backend unavailable after {self._attempts} attempt(s): "
                    f"{self._last_error}"
                )
        raise RequestTimeout("Timed out waiting for the signing backend.")


__all__ = ["Ed25519SigningBackend", "LazySigningClient", "SigningBackend"]
