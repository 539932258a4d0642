"""DelegationPipeline — sign-in proof in, streamable delegation container out.

One request runs the components in sequence::

    audience check -> ProofVerifier -> DelegationIssuer (per profile)
        -> block encoding -> CAR stream

Every check happens in :meth:`DelegationPipeline.run`, before a single byte
of the container exists. The returned :class:`IssuedContainer` only knows
how to stream blocks that are already encoded.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Sequence

from multiformats import CID

from delegation_gateway.audit import AuditLogger
from delegation_gateway.auth.verifier import AuthenticationProof, ProofVerifier
from delegation_gateway.delegation.capability import CapabilityProfile
from delegation_gateway.delegation.issuer import DelegationIssuer
from delegation_gateway.delegation.token import Delegation
from delegation_gateway.errors import (
    AuthenticationFailure,
    IdentityError,
    InvalidAudience,
    MissingAudience,
)
from delegation_gateway.identity.did import Identity, parse
from delegation_gateway.ipld.block import Block, encode
from delegation_gateway.ipld.car import iter_car

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedContainer:
    """Encoded delegations ready to be streamed as a CAR container.

    Parameters
    ----------
    subject:
        The authenticated caller.
    delegations:
        Issued delegations, one per requested profile.
    blocks:
        Encoded blocks, in the same order as ``delegations``.
    """

    subject: Identity
    delegations: tuple[Delegation, ...]
    blocks: tuple[Block, ...]

    @property
    def roots(self) -> tuple[CID, ...]:
        return tuple(block.cid for block in self.blocks)

    def stream(self) -> Iterator[bytes]:
        """Yield the container bytes chunk by chunk."""
        return iter_car(self.roots, self.blocks)


class DelegationPipeline:
    """Runs verification and issuance for one request at a time.

    The pipeline itself holds no per-request state and is shared by all
    request threads.

    Parameters
    ----------
    verifier:
        Verifier bound to the shared nonce registry.
    issuer:
        Issuer bound to the shared signing client.
    audit:
        Optional audit logger.
    timeout_seconds:
        Time budget per request for waiting on the signing backend.
    """

    def __init__(
        self,
        verifier: ProofVerifier,
        issuer: DelegationIssuer,
        audit: AuditLogger | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._verifier = verifier
        self._issuer = issuer
        self._audit = audit
        self._timeout = timeout_seconds

    def run(
        self,
        siwe: str | Mapping[str, Any],
        signature: str,
        aud: object,
        profiles: Sequence[CapabilityProfile],
    ) -> IssuedContainer:
        """Authenticate the caller and issue one delegation per profile.

        Raises
        ------
        MissingAudience
            If *aud* is empty; nothing else is attempted.
        InvalidAudience
            If *aud* is not a string naming a supported DID.
        MalformedMessage, MalformedRequest
            If the message or signature can not be decoded.
        AuthenticationFailure
            If the proof is rejected.
        SigningUnavailable, RequestTimeout
            If the signing backend can not be reached in time.
        EncodingError
            If a delegation can not be encoded.
        """
        started = time.monotonic()
        if aud is None or aud == "":
            raise MissingAudience("Missing required field 'aud'.")
        if not isinstance(aud, str):
            raise InvalidAudience(f"Invalid audience: expected a DID string, got {type(aud).__name__}.")
        try:
            audience = parse(aud)
        except IdentityError as exc:
            raise InvalidAudience(f"Invalid audience: {exc.message}") from exc

        proof = AuthenticationProof.from_payload(siwe, signature)
        try:
            session = self._verifier.verify(proof)
        except AuthenticationFailure as exc:
            logger.warning("Sign-in rejected for %s: %s", proof.message.address, exc.message)
            if self._audit is not None:
                self._audit.log_auth_attempt(
                    proof.message.address,
                    success=False,
                    reason=type(exc).__name__,
                )
            raise
        subject = session.identity
        if self._audit is not None:
            self._audit.log_auth_attempt(str(subject), success=True, chain_id=session.chain_id)

        delegations: list[Delegation] = []
        blocks: list[Block] = []
        for profile in profiles:
            delegation = self._issuer.issue_profile(
                subject, audience, profile, timeout=self._remaining(started)
            )
            block = encode(delegation)
            delegations.append(delegation)
            blocks.append(block)
            if self._audit is not None:
                self._audit.log_delegation(
                    subject=str(subject),
                    audience=str(audience),
                    cid=str(block.cid),
                    capabilities=[c.can for c in delegation.capabilities],
                    expiration=delegation.expiration,
                )
        return IssuedContainer(
            subject=subject,
            delegations=tuple(delegations),
            blocks=tuple(blocks),
        )

    def _remaining(self, started: float) -> float | None:
        if self._timeout is None:
            return None
        return max(0.0, self._timeout - (time.monotonic() - started))


__all__ = ["DelegationPipeline", "IssuedContainer"]
