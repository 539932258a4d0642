"""Identity codec — parse and normalize decentralized identifiers.

Three DID methods are recognized:

``did:key``
    Self-certifying Ed25519 keys (the gateway's own signing identity).
``did:pkh``
    Blockchain accounts in CAIP-10 form, e.g.
    ``did:pkh:eip155:1:0xAb5801a7D398351b8bE11C439e05C5B3259aeC9B``. Ethereum
    (``eip155``) addresses are normalized to their EIP-55 checksum form.
``did:web``
    DNS-hosted identifiers; the host segment is lower-cased.

Every :class:`Identity` handed out by this module is already normalized, so
two identities are equal exactly when their string forms are equal and
``parse(to_string(x)) == x`` holds.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from delegation_gateway.errors import MalformedIdentifier, UnsupportedMethod
from delegation_gateway.ethereum import is_address, to_checksum_address
from delegation_gateway.identity.did_key import decode_key_identifier

SUPPORTED_METHODS: frozenset[str] = frozenset({"key", "pkh", "web"})

_DID_PATTERN = re.compile(r"^did:([a-z0-9]+):(.+)$")
_IDCHAR_SEGMENT = re.compile(r"^(?:[A-Za-z0-9._-]|%[0-9A-Fa-f]{2})+$")
_CAIP_NAMESPACE = re.compile(r"^[-a-z0-9]{3,8}$")
_CAIP_REFERENCE = re.compile(r"^[-_a-zA-Z0-9]{1,32}$")
_CAIP_ACCOUNT = re.compile(r"^[-.%a-zA-Z0-9]{1,128}$")
_CHAIN_ID = re.compile(r"^(0|[1-9][0-9]*)$")


@dataclass(frozen=True)
class Identity:
    """A normalized decentralized identifier.

    Parameters
    ----------
    method:
        The DID method name (``"key"``, ``"pkh"``, ``"web"``).
    method_specific_id:
        The normalized method-specific identifier.
    """

    method: str
    method_specific_id: str

    def __str__(self) -> str:
        return f"did:{self.method}:{self.method_specific_id}"


def parse(text: str) -> Identity:
    """Parse and normalize a DID string.

    Raises
    ------
    MalformedIdentifier
        If *text* is not a syntactically valid DID, or is invalid for its method.
    UnsupportedMethod
        If the DID method is not one of :data:`SUPPORTED_METHODS`.
    """
    if not isinstance(text, str):
        raise MalformedIdentifier(f"DID must be a string, got {type(text).__name__}.")
    match = _DID_PATTERN.match(text.strip())
    if match is None:
        raise MalformedIdentifier(f"Malformed DID {text!r}.")
    method, specific = match.group(1), match.group(2)

    segments = specific.split(":")
    if any(not _IDCHAR_SEGMENT.match(segment) for segment in segments):
        raise MalformedIdentifier(f"Malformed method-specific identifier in {text!r}.")

    if method not in SUPPORTED_METHODS:
        raise UnsupportedMethod(method)
    if method == "key":
        return _parse_key(specific)
    if method == "pkh":
        return _parse_pkh(segments)
    return _parse_web(segments)


def from_chain_account(chain_id: int, address: str) -> Identity:
    """Build the ``did:pkh`` identity of an Ethereum account.

    Raises
    ------
    MalformedIdentifier
        If *chain_id* is negative or *address* is not a valid account address.
    """
    if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id < 0:
        raise MalformedIdentifier(f"Invalid chain id {chain_id!r}.")
    if not is_address(address):
        raise MalformedIdentifier(f"Invalid account address {address!r}.")
    return Identity("pkh", f"eip155:{chain_id}:{to_checksum_address(address)}")


def to_string(identity: Identity) -> str:
    """Return the canonical DID string of *identity*."""
    return str(identity)


# ---------------------------------------------------------------------------
# Method-specific parsers
# ---------------------------------------------------------------------------


def _parse_key(specific: str) -> Identity:
    try:
        decode_key_identifier(specific)
    except ValueError as exc:
        raise MalformedIdentifier(str(exc)) from exc
    return Identity("key", specific)


def _parse_pkh(segments: list[str]) -> Identity:
    if len(segments) != 3:
        raise MalformedIdentifier(
            "did:pkh identifiers must have the form did:pkh:<namespace>:<reference>:<account>."
        )
    namespace, reference, account = segments
    if not (
        _CAIP_NAMESPACE.match(namespace)
        and _CAIP_REFERENCE.match(reference)
        and _CAIP_ACCOUNT.match(account)
    ):
        raise MalformedIdentifier(f"Invalid CAIP-10 account {':'.join(segments)!r}.")
    if namespace == "eip155":
        if not _CHAIN_ID.match(reference):
            raise MalformedIdentifier(f"Invalid eip155 chain id {reference!r}.")
        return from_chain_account(int(reference), account)
    return Identity("pkh", ":".join(segments))


def _parse_web(segments: list[str]) -> Identity:
    host = segments[0].lower()
    if "." not in host and not host.startswith("localhost"):
        raise MalformedIdentifier(f"Invalid did:web host {segments[0]!r}.")
    return Identity("web", ":".join([host, *segments[1:]]))


__all__ = [
    "Identity",
    "SUPPORTED_METHODS",
    "from_chain_account",
    "parse",
    "to_string",
]
