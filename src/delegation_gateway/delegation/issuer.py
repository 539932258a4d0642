"""DelegationIssuer — turns an authenticated subject into signed delegations."""
from __future__ import annotations

import datetime
import logging
from typing import Callable, Sequence

from delegation_gateway.delegation.capability import Capability, CapabilityProfile
from delegation_gateway.delegation.signing import LazySigningClient
from delegation_gateway.delegation.token import Delegation
from delegation_gateway.errors import InvalidAudience
from delegation_gateway.identity.did import Identity

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class DelegationIssuer:
    """Issues delegations signed by the service key.

    The signer is always the service identity. The authenticated subject
    appears inside the capabilities (as the resource they are scoped to),
    never as the issuer.

    Parameters
    ----------
    signing_client:
        Shared, lazily initialized signing client.
    clock:
        Callable returning the current UTC datetime.
    """

    def __init__(
        self,
        signing_client: LazySigningClient,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self._signing = signing_client
        self._clock = clock or _utcnow

    def issue(
        self,
        subject: Identity,
        audience: Identity | None,
        capabilities: Sequence[Capability],
        ttl_seconds: int | None,
        timeout: float | None = None,
    ) -> Delegation:
        """Sign a delegation of *capabilities* to *audience*.

        Parameters
        ----------
        subject:
            The authenticated caller the grant is made on behalf of.
        audience:
            The identity receiving the capabilities.
        capabilities:
            Capabilities in the order they should be encoded.
        ttl_seconds:
            Lifetime from now, or ``None`` for a non-expiring grant.
        timeout:
            How long to wait for the signing client.

        Raises
        ------
        InvalidAudience
            If *audience* is missing.
        SigningUnavailable
            If the signing client has not initialized.
        RequestTimeout
            If the wait for the signing client ran out.
        """
        if not isinstance(audience, Identity):
            raise InvalidAudience("A normalized audience identity is required.")
        if not capabilities:
            raise ValueError("At least one capability must be delegated.")

        backend = self._signing.get(timeout=timeout)
        expiration = None
        if ttl_seconds is not None:
            expiration = int(self._clock().timestamp()) + ttl_seconds

        delegation = backend.create_delegation(audience, list(capabilities), expiration)
        logger.info(
            "Issued delegation to %s for %s (%s)",
            audience,
            subject,
            ", ".join(capability.can for capability in delegation.capabilities),
        )
        return delegation

    def issue_profile(
        self,
        subject: Identity,
        audience: Identity | None,
        profile: CapabilityProfile,
        timeout: float | None = None,
    ) -> Delegation:
        """Issue the delegation described by *profile*, scoped to *subject*."""
        return self.issue(
            subject,
            audience,
            profile.bind(subject),
            profile.ttl_seconds,
            timeout=timeout,
        )


__all__ = ["DelegationIssuer"]
