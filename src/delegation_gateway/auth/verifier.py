"""ProofVerifier — replay-resistant verification of signed sign-in messages.

Checks run in a fixed order and stop at the first failure:

1. structure (enforced when the :class:`SiweMessage` is built)
2. domain binding
3. nonce consumption (the single-use point; later failures leave it consumed)
4. validity window (issued-at, not-before, expiration, optional max age)
5. signature recovery to the message address
"""
from __future__ import annotations

import base64
import binascii
import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from delegation_gateway.auth.message import SiweMessage
from delegation_gateway.errors import (
    BadSignature,
    DomainMismatch,
    InvalidNonce,
    MalformedMessage,
    MalformedRequest,
    MessageExpired,
    NotYetValid,
)
from delegation_gateway.ethereum import recover_address
from delegation_gateway.identity.did import Identity, from_chain_account
from delegation_gateway.nonce.registry import NonceError, NonceRegistry

logger = logging.getLogger(__name__)


def decode_signature(text: str) -> bytes:
    """Decode a signature given as hex (``0x`` optional) or base64.

    Raises
    ------
    MalformedRequest
        If *text* is neither valid hex nor valid base64.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedRequest("Signature must be a non-empty string.")
    candidate = text.strip()
    hex_part = candidate[2:] if candidate.lower().startswith("0x") else candidate
    try:
        return bytes.fromhex(hex_part)
    except ValueError:
        pass
    try:
        return base64.b64decode(candidate, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedRequest("Signature is neither hex nor base64 encoded.") from exc


@dataclass(frozen=True)
class AuthenticationProof:
    """A sign-in message and the wallet signature over its text form."""

    message: SiweMessage
    signature: bytes

    @classmethod
    def from_payload(cls, siwe: str | Mapping[str, Any], signature: str) -> "AuthenticationProof":
        """Build a proof from request fields.

        Raises
        ------
        MalformedMessage
            If the message is structurally invalid.
        MalformedRequest
            If the signature can not be decoded.
        """
        if isinstance(siwe, str):
            message = SiweMessage.from_text(siwe)
        elif isinstance(siwe, Mapping):
            message = SiweMessage.from_dict(siwe)
        else:
            raise MalformedMessage("Message must be an object or EIP-4361 text.")
        return cls(message=message, signature=decode_signature(signature))


@dataclass(frozen=True)
class VerifiedSession:
    """The outcome of a successful verification. The signature is not kept.

    Parameters
    ----------
    address:
        The account address that signed the message.
    chain_id:
        The chain the account belongs to.
    uri:
        The URI the message was signed for.
    raw_message:
        The canonical EIP-4361 text that was verified.
    """

    address: str
    chain_id: int
    uri: str
    raw_message: str

    @property
    def identity(self) -> Identity:
        """The ``did:pkh`` identity of the verified account."""
        return from_chain_account(self.chain_id, self.address)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ProofVerifier:
    """Verifies :class:`AuthenticationProof` objects against a nonce registry.

    Parameters
    ----------
    nonce_registry:
        Registry whose nonces bind proofs to sessions.
    expected_domain:
        The domain (``host[:port]``) messages must be issued for.
    clock:
        Callable returning the current UTC datetime.
    clock_skew_seconds:
        Tolerance applied to the issued-at and not-before checks.
    max_message_age_seconds:
        If set, messages issued longer ago than this are rejected even
        without an expiration time.
    """

    def __init__(
        self,
        nonce_registry: NonceRegistry,
        expected_domain: str,
        clock: Callable[[], datetime.datetime] | None = None,
        clock_skew_seconds: int = 0,
        max_message_age_seconds: int | None = None,
    ) -> None:
        self._nonces = nonce_registry
        self._domain = expected_domain
        self._clock = clock or _utcnow
        self._skew = datetime.timedelta(seconds=clock_skew_seconds)
        self._max_age = (
            datetime.timedelta(seconds=max_message_age_seconds)
            if max_message_age_seconds is not None
            else None
        )

    def verify(self, proof: AuthenticationProof) -> VerifiedSession:
        """Verify *proof* and return the authenticated session.

        Raises
        ------
        DomainMismatch
            If the message was issued for another domain.
        InvalidNonce
            If the nonce is unknown, expired, or already consumed.
        NotYetValid
            If the message is not valid yet.
        MessageExpired
            If the message validity window has passed.
        BadSignature
            If the signature does not recover to the message address.
        """
        message = proof.message

        if message.domain != self._domain:
            raise DomainMismatch(
                f"Message domain {message.domain!r} does not match {self._domain!r}."
            )

        try:
            self._nonces.consume(message.nonce)
        except NonceError as exc:
            raise InvalidNonce(exc.reason) from exc

        self._check_window(message)

        text = message.to_text()
        try:
            recovered = recover_address(text.encode("utf-8"), proof.signature)
        except ValueError as exc:
            raise BadSignature("Signature could not be recovered.") from exc
        if recovered.lower() != message.address.lower():
            raise BadSignature("Signature does not match the message address.")

        logger.info("Verified sign-in for %s on chain %d", recovered, message.chain_id)
        return VerifiedSession(
            address=recovered,
            chain_id=message.chain_id,
            uri=message.uri,
            raw_message=text,
        )

    def _check_window(self, message: SiweMessage) -> None:
        now = self._clock()
        issued_at = message.issued_at_time
        if issued_at - self._skew > now:
            raise NotYetValid("Message issued-at time is in the future.")
        not_before = message.not_before_time
        if not_before is not None and not_before - self._skew > now:
            raise NotYetValid("Message is not valid before its not-before time.")
        expiration = message.expiration
        if expiration is not None and now > expiration:
            raise MessageExpired("Message has expired.")
        if self._max_age is not None and now - issued_at > self._max_age:
            raise MessageExpired("Message is older than the maximum accepted age.")


__all__ = [
    "AuthenticationProof",
    "ProofVerifier",
    "VerifiedSession",
    "decode_signature",
]
