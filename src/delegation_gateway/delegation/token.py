"""Delegation — a signed, optionally time-bounded capability grant.

The signable payload is the DAG-CBOR encoding of every field except the
signature. DAG-CBOR orders map keys canonically and encodes integers and
strings in their shortest form, so the same logical delegation always
produces the same bytes, the same Ed25519 signature, and the same CID.
Capability order is preserved as given.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

import dag_cbor

from delegation_gateway.delegation.capability import Capability
from delegation_gateway.errors import EncodingError, IdentityError
from delegation_gateway.identity.did import Identity, parse
from delegation_gateway.identity.did_key import did_to_public_key
from delegation_gateway.identity.keys import verify_signature

FORMAT_VERSION: str = "0.1"


@dataclass(frozen=True)
class Delegation:
    """A capability delegation from an issuer to an audience.

    Parameters
    ----------
    issuer:
        The signing identity (the gateway's ``did:key``).
    audience:
        The identity receiving the capabilities.
    capabilities:
        Granted capabilities, in encoding order.
    expiration:
        UNIX timestamp (seconds) after which the grant is void, or ``None``
        for a non-expiring grant.
    signature:
        Ed25519 signature over :meth:`signable_bytes`. Empty until signed.
    """

    issuer: Identity
    audience: Identity
    capabilities: tuple[Capability, ...]
    expiration: int | None = None
    signature: bytes = field(default=b"", repr=False)

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def signable_bytes(self) -> bytes:
        """Canonical bytes covered by the signature."""
        return dag_cbor.encode(self.to_ipld(include_signature=False))

    def with_signature(self, signature: bytes) -> "Delegation":
        """Return a signed copy of this delegation."""
        return replace(self, signature=signature)

    def verify(self) -> bool:
        """Verify the signature against the issuer's ``did:key``.

        Returns
        -------
        bool
            False when unsigned, when the issuer is not a ``did:key``, or when
            the signature does not match.
        """
        if not self.signature or self.issuer.method != "key":
            return False
        public_key = did_to_public_key(str(self.issuer))
        return verify_signature(public_key, self.signature, self.signable_bytes())

    def is_expired(self, now: datetime.datetime | None = None) -> bool:
        """Return True if the delegation has an expiration that has passed."""
        if self.expiration is None:
            return False
        current = now or datetime.datetime.now(datetime.timezone.utc)
        return current.timestamp() > self.expiration

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_ipld(self, include_signature: bool = True) -> dict[str, Any]:
        """Return the IPLD data-model form used for encoding.

        ``exp`` is omitted for non-expiring delegations.
        """
        node: dict[str, Any] = {
            "v": FORMAT_VERSION,
            "iss": str(self.issuer),
            "aud": str(self.audience),
            "att": [capability.to_dict() for capability in self.capabilities],
        }
        if self.expiration is not None:
            node["exp"] = self.expiration
        if include_signature:
            node["s"] = self.signature
        return node

    @classmethod
    def from_ipld(cls, node: Mapping[str, Any]) -> "Delegation":
        """Rebuild a delegation from its decoded IPLD form.

        Raises
        ------
        EncodingError
            If the node does not have the delegation shape.
        """
        try:
            if node["v"] != FORMAT_VERSION:
                raise EncodingError(f"Unsupported delegation format version {node['v']!r}.")
            expiration = node.get("exp")
            if expiration is not None and not isinstance(expiration, int):
                raise EncodingError("Delegation expiration must be an integer.")
            signature = node["s"]
            if not isinstance(signature, bytes):
                raise EncodingError("Delegation signature must be a byte string.")
            return cls(
                issuer=parse(node["iss"]),
                audience=parse(node["aud"]),
                capabilities=tuple(
                    Capability(can=item["can"], with_=item["with"]) for item in node["att"]
                ),
                expiration=expiration,
                signature=signature,
            )
        except (KeyError, TypeError, ValueError, IdentityError) as exc:
            raise EncodingError(f"Malformed delegation node: {exc}") from exc

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-friendly dictionary (signature as hex)."""
        return {
            "issuer": str(self.issuer),
            "audience": str(self.audience),
            "capabilities": [capability.to_dict() for capability in self.capabilities],
            "expiration": self.expiration,
            "signature": self.signature.hex(),
        }


__all__ = ["Delegation", "FORMAT_VERSION"]
