"""SiweMessage — EIP-4361 (Sign-In With Ethereum) messages.

A message can be built from the JSON object most wallet tooling sends
(camelCase keys) or parsed from its text form. Either way the signature is
checked against :meth:`SiweMessage.to_text`, which renders the message in
the exact EIP-4361 layout::

    example.com wants you to sign in with your Ethereum account:
    0xAb5801a7D398351b8bE11C439e05C5B3259aeC9B

    Sign in to receive a storage delegation.

    URI: https://example.com/login
    Version: 1
    Chain ID: 1
    Nonce: 32891756aZ81bd4e
    Issued At: 2026-10-19T12:00:00.000Z

Timestamps are kept as the strings the wallet signed; re-formatting them
would change the signed bytes.
"""
from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from delegation_gateway.errors import MalformedMessage
from delegation_gateway.ethereum import is_address

_HEADER_SUFFIX = " wants you to sign in with your Ethereum account:"
_NONCE_PATTERN = re.compile(r"^[A-Za-z0-9]{8,}$")
_URI_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:\S*$")

# (text label, attribute name) in the order EIP-4361 fixes them.
_REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("URI", "uri"),
    ("Version", "version"),
    ("Chain ID", "chain_id"),
    ("Nonce", "nonce"),
    ("Issued At", "issued_at"),
)
_OPTIONAL_FIELDS: tuple[tuple[str, str], ...] = (
    ("Expiration Time", "expiration_time"),
    ("Not Before", "not_before"),
    ("Request ID", "request_id"),
)

_JSON_KEYS: dict[str, str] = {
    "domain": "domain",
    "address": "address",
    "statement": "statement",
    "uri": "uri",
    "version": "version",
    "chainId": "chain_id",
    "nonce": "nonce",
    "issuedAt": "issued_at",
    "expirationTime": "expiration_time",
    "notBefore": "not_before",
    "requestId": "request_id",
    "resources": "resources",
}
_REQUIRED_JSON_KEYS: tuple[str, ...] = (
    "domain", "address", "uri", "version", "chainId", "nonce", "issuedAt",
)


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises
    ------
    ValueError
        If *value* is not a timestamp or carries no UTC offset.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp {value!r} has no UTC offset.")
    return parsed.astimezone(datetime.timezone.utc)


@dataclass(frozen=True)
class SiweMessage:
    """A structurally validated EIP-4361 message.

    Construction validates every field and raises
    :class:`~delegation_gateway.errors.MalformedMessage` on the first problem.
    """

    domain: str
    address: str
    uri: str
    version: str
    chain_id: int
    nonce: str
    issued_at: str
    statement: str | None = None
    expiration_time: str | None = None
    not_before: str | None = None
    request_id: str | None = None
    resources: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.domain or any(ch.isspace() for ch in self.domain):
            raise MalformedMessage("Message domain is missing or invalid.")
        if not is_address(self.address):
            raise MalformedMessage(f"Message address {self.address!r} is not an account address.")
        if not _URI_PATTERN.match(self.uri or ""):
            raise MalformedMessage(f"Message URI {self.uri!r} is invalid.")
        if self.version != "1":
            raise MalformedMessage(f"Unsupported message version {self.version!r}.")
        if isinstance(self.chain_id, bool) or not isinstance(self.chain_id, int) or self.chain_id < 1:
            raise MalformedMessage(f"Invalid chain id {self.chain_id!r}.")
        if not _NONCE_PATTERN.match(self.nonce or ""):
            raise MalformedMessage("Message nonce must be at least 8 alphanumeric characters.")
        if self.statement is not None and "\n" in self.statement:
            raise MalformedMessage("Message statement must not contain line breaks.")
        for name in ("issued_at", "expiration_time", "not_before"):
            value = getattr(self, name)
            if value is None and name != "issued_at":
                continue
            try:
                parse_timestamp(value or "")
            except ValueError as exc:
                raise MalformedMessage(f"Invalid {name}: {exc}") from exc
        for resource in self.resources:
            if not _URI_PATTERN.match(resource):
                raise MalformedMessage(f"Invalid resource URI {resource!r}.")

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    @property
    def issued_at_time(self) -> datetime.datetime:
        return parse_timestamp(self.issued_at)

    @property
    def expiration(self) -> datetime.datetime | None:
        return parse_timestamp(self.expiration_time) if self.expiration_time else None

    @property
    def not_before_time(self) -> datetime.datetime | None:
        return parse_timestamp(self.not_before) if self.not_before else None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SiweMessage":
        """Build a message from its JSON object form (camelCase keys).

        Raises
        ------
        MalformedMessage
            If a required field is missing or any field is invalid.
        """
        kwargs: dict[str, Any] = {}
        for key, attr in _JSON_KEYS.items():
            value = data.get(key)
            if value is not None:
                kwargs[attr] = value

        if kwargs.get("statement") == "":
            del kwargs["statement"]
        missing = [key for key in _REQUIRED_JSON_KEYS if _JSON_KEYS[key] not in kwargs]
        if missing:
            raise MalformedMessage(f"Message is missing required field(s): {', '.join(missing)}.")

        kwargs["version"] = str(kwargs["version"])
        kwargs["chain_id"] = _coerce_chain_id(kwargs["chain_id"])
        for attr in ("domain", "address", "uri", "nonce", "issued_at", "statement",
                     "expiration_time", "not_before", "request_id"):
            if attr in kwargs and not isinstance(kwargs[attr], str):
                raise MalformedMessage(f"Message field {attr!r} must be a string.")
        resources = kwargs.get("resources", ())
        if not isinstance(resources, (list, tuple)) or not all(isinstance(r, str) for r in resources):
            raise MalformedMessage("Message resources must be a list of URIs.")
        kwargs["resources"] = tuple(resources)
        return cls(**kwargs)

    @classmethod
    def from_text(cls, text: str) -> "SiweMessage":
        """Parse the EIP-4361 text form.

        Raises
        ------
        MalformedMessage
            If the text does not follow the EIP-4361 layout.
        """
        lines = text.split("\n")
        cursor = _Cursor(lines)

        header = cursor.take()
        if not header.endswith(_HEADER_SUFFIX):
            raise MalformedMessage("Message header is missing.")
        domain = header[: -len(_HEADER_SUFFIX)]
        address = cursor.take()
        cursor.expect_blank()

        statement: str | None = None
        if cursor.peek() != "":
            statement = cursor.take()
        cursor.expect_blank()

        values: dict[str, Any] = {"domain": domain, "address": address, "statement": statement}
        for label, attr in _REQUIRED_FIELDS:
            values[attr] = cursor.take_field(label)
        for label, attr in _OPTIONAL_FIELDS:
            if cursor.peek().startswith(f"{label}: "):
                values[attr] = cursor.take_field(label)

        resources: list[str] = []
        if cursor.peek() == "Resources:":
            cursor.take()
            while cursor.peek().startswith("- "):
                resources.append(cursor.take()[2:])
        if not cursor.exhausted():
            raise MalformedMessage(f"Unexpected content in message: {cursor.peek()!r}.")

        values["chain_id"] = _coerce_chain_id(values["chain_id"])
        values["resources"] = tuple(resources)
        return cls(**values)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_text(self) -> str:
        """Render the canonical EIP-4361 text that wallets sign."""
        lines = [f"{self.domain}{_HEADER_SUFFIX}", self.address, ""]
        if self.statement is not None:
            lines.append(self.statement)
        lines.append("")
        for label, attr in _REQUIRED_FIELDS + _OPTIONAL_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                lines.append(f"{label}: {value}")
        if self.resources:
            lines.append("Resources:")
            lines.extend(f"- {resource}" for resource in self.resources)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        """Serialize to the camelCase JSON object form, omitting unset fields."""
        result: dict[str, object] = {}
        for key, attr in _JSON_KEYS.items():
            value = getattr(self, attr)
            if value is None or (attr == "resources" and not value):
                continue
            result[key] = list(value) if attr == "resources" else value
        return result


def _coerce_chain_id(value: object) -> int:
    if isinstance(value, bool):
        raise MalformedMessage(f"Invalid chain id {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    raise MalformedMessage(f"Invalid chain id {value!r}.")


class _Cursor:
    """Line cursor for :meth:`SiweMessage.from_text`."""

    def __init__(self, lines: list[str]) -> None:
        self._lines = lines
        self._index = 0

    def peek(self) -> str:
        return self._lines[self._index] if self._index < len(self._lines) else "\x00"

    def take(self) -> str:
        if self._index >= len(self._lines):
            raise MalformedMessage("Message ended unexpectedly.")
        line = self._lines[self._index]
        self._index += 1
        return line

    def expect_blank(self) -> None:
        if self.take() != "":
            raise MalformedMessage("Message is missing a blank separator line.")

    def take_field(self, label: str) -> str:
        line = self.take()
        prefix = f"{label}: "
        if not line.startswith(prefix):
            raise MalformedMessage(f"Expected {label!r} field, found {line!r}.")
        return line[len(prefix):]

    def exhausted(self) -> bool:
        return self._index >= len(self._lines)


__all__ = ["SiweMessage", "parse_timestamp"]
