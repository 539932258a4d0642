"""Capabilities and the profiles that group them per endpoint.

A :class:`Capability` is an (action, resource) pair. Profiles hold
capability *templates* whose resource may reference ``{subject}``; binding
a profile to an authenticated subject substitutes the subject's DID so the
grant is scoped to the caller's own resources.
"""
from __future__ import annotations

from dataclasses import dataclass

from delegation_gateway.identity.did import Identity

SUBJECT_PLACEHOLDER: str = "{subject}"


@dataclass(frozen=True)
class Capability:
    """A permitted operation scope.

    Parameters
    ----------
    can:
        The action token, e.g. ``"store/add"``.
    with_:
        The resource URI the action applies to. May contain ``{subject}``
        while the capability is used as a template.
    """

    can: str
    with_: str

    def __post_init__(self) -> None:
        if not self.can or "/" not in self.can:
            raise ValueError(f"Capability action {self.can!r} must look like 'namespace/verb'.")
        if not self.with_:
            raise ValueError("Capability resource must not be empty.")

    def bind(self, subject: Identity) -> "Capability":
        """Return a copy with ``{subject}`` replaced by the subject's DID."""
        return Capability(can=self.can, with_=self.with_.replace(SUBJECT_PLACEHOLDER, str(subject)))

    def to_dict(self) -> dict[str, str]:
        return {"can": self.can, "with": self.with_}


@dataclass(frozen=True)
class CapabilityProfile:
    """The capabilities and lifetime one kind of delegation grants.

    Parameters
    ----------
    name:
        Profile name, used in logs and route configuration.
    capabilities:
        Capability templates, in the order they are encoded.
    ttl_seconds:
        Lifetime of issued delegations, or ``None`` for non-expiring grants.
    """

    name: str
    capabilities: tuple[Capability, ...]
    ttl_seconds: int | None = 86400

    def bind(self, subject: Identity) -> list[Capability]:
        """Return this profile's capabilities scoped to *subject*."""
        return [capability.bind(subject) for capability in self.capabilities]


STORAGE_PROFILE = CapabilityProfile(
    name="storage",
    capabilities=(
        Capability(can="upload/add", with_=SUBJECT_PLACEHOLDER),
        Capability(can="store/add", with_=SUBJECT_PLACEHOLDER),
    ),
)

REFERRAL_PROFILE = CapabilityProfile(
    name="referral",
    capabilities=(Capability(can="referral/claim", with_=SUBJECT_PLACEHOLDER),),
)

BUILTIN_PROFILES: dict[str, CapabilityProfile] = {
    STORAGE_PROFILE.name: STORAGE_PROFILE,
    REFERRAL_PROFILE.name: REFERRAL_PROFILE,
}


__all__ = [
    "BUILTIN_PROFILES",
    "Capability",
    "CapabilityProfile",
    "REFERRAL_PROFILE",
    "STORAGE_PROFILE",
    "SUBJECT_PLACEHOLDER",
]
