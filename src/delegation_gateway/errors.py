"""Error taxonomy for the delegation gateway.

Every failure the pipeline can surface to a caller is a subclass of
:class:`GatewayError`. Each class carries a stable ``kind`` token and the
HTTP ``status`` the transport layer answers with, so the boundary can map
any of them to an :class:`~delegation_gateway.server.models.ErrorResponse`
without inspecting messages.
"""
from __future__ import annotations


class GatewayError(Exception):
    """Base class for all errors surfaced by the gateway pipeline."""

    kind: str = "internal_error"
    status: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


# ---------------------------------------------------------------------------
# Client input
# ---------------------------------------------------------------------------


class MalformedRequest(GatewayError):
    """The request body is structurally invalid or misses a required field."""

    kind = "malformed_request"
    status = 422


class InvalidAudience(GatewayError):
    """The requested audience is missing or failed normalization."""

    kind = "invalid_audience"
    status = 400


class MissingAudience(InvalidAudience):
    """The request carries no ``aud`` field."""


class IdentityError(GatewayError):
    """A decentralized identifier could not be parsed."""

    kind = "identity_error"
    status = 400


class MalformedIdentifier(IdentityError):
    """The identifier is not syntactically valid."""


class UnsupportedMethod(IdentityError):
    """The identifier uses a DID method this service does not recognize."""

    def __init__(self, method: str) -> None:
        super().__init__(f"Unsupported DID method {method!r}.")
        self.method = method


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthenticationFailure(GatewayError):
    """The signed authentication proof was rejected."""

    kind = "authentication_failure"
    status = 401


class MalformedMessage(AuthenticationFailure):
    """The sign-in message is missing fields or has invalid values."""

    status = 422


class DomainMismatch(AuthenticationFailure):
    """The message was produced for a different domain."""


class InvalidNonce(AuthenticationFailure):
    """The message nonce is unknown, expired or already used.

    Parameters
    ----------
    reason:
        The nonce registry failure code (``not_found``, ``expired`` or
        ``already_consumed``).
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid nonce: {reason}.")
        self.reason = reason


class MessageExpired(AuthenticationFailure):
    """The message validity window has passed."""


class NotYetValid(AuthenticationFailure):
    """The message validity window has not started."""


class BadSignature(AuthenticationFailure):
    """The signature does not recover to the message address."""


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class SigningUnavailable(GatewayError):
    """The signing backend is not initialized (retryable by the caller)."""

    kind = "signing_unavailable"
    status = 503


class RequestTimeout(GatewayError):
    """The request exceeded its time budget."""

    kind = "timeout"
    status = 504


class EncodingError(GatewayError):
    """A delegation could not be encoded or decoded."""

    kind = "encoding_error"
    status = 500


class WriteAfterClose(GatewayError):
    """A block was offered to a container writer that is already finalized."""

    kind = "write_after_close"
    status = 500


class TruncatedContainer(EncodingError):
    """A container ended without its closing marker."""


__all__ = [
    "AuthenticationFailure",
    "BadSignature",
    "DomainMismatch",
    "EncodingError",
    "GatewayError",
    "IdentityError",
    "InvalidAudience",
    "InvalidNonce",
    "MalformedIdentifier",
    "MalformedMessage",
    "MalformedRequest",
    "MessageExpired",
    "MissingAudience",
    "NotYetValid",
    "RequestTimeout",
    "SigningUnavailable",
    "TruncatedContainer",
    "UnsupportedMethod",
    "WriteAfterClose",
]
