"""Route handler functions for the delegation gateway HTTP server.

Each function accepts the :class:`~delegation_gateway.server.gateway.Gateway`
and parsed request data and returns ``(status_code, payload)``. The payload
is a response dictionary, except for a successful delegation request where
it is the :class:`~delegation_gateway.pipeline.IssuedContainer` to stream.
All error mapping happens here; nothing below this layer knows about HTTP.
"""
from __future__ import annotations

import logging
from typing import Union

from pydantic import ValidationError

from delegation_gateway import __version__
from delegation_gateway.errors import GatewayError, MalformedRequest
from delegation_gateway.pipeline import IssuedContainer
from delegation_gateway.server.gateway import Gateway
from delegation_gateway.server.models import (
    DelegationRequest,
    ErrorResponse,
    HealthResponse,
    NonceResponse,
)

logger = logging.getLogger(__name__)

RouteResult = tuple[int, Union[dict[str, object], IssuedContainer]]


def error_result(exc: GatewayError) -> tuple[int, dict[str, object]]:
    """Map a gateway error to its status code and response body."""
    return exc.status, ErrorResponse.from_error(exc).model_dump()


def handle_nonce(gateway: Gateway) -> tuple[int, dict[str, object]]:
    """Handle GET /nonce: issue a fresh sign-in nonce."""
    purged = gateway.nonce_registry.purge_expired()
    if purged:
        logger.debug("Purged %d expired nonce(s)", purged)
    nonce = gateway.nonce_registry.issue()
    gateway.audit.log_nonce_issued(nonce.expires_at)
    response = NonceResponse(nonce=nonce.value, expires_at=nonce.expires_at.isoformat())
    return 200, response.model_dump(by_alias=True)


def handle_health(gateway: Gateway) -> tuple[int, dict[str, object]]:
    """Handle GET /health."""
    agent = None
    if gateway.signing_client.ready:
        agent = str(gateway.signing_client.get().agent_identity())
    response = HealthResponse(version=__version__, agent=agent)
    return 200, response.model_dump()


def handle_delegation(gateway: Gateway, path: str, body: dict[str, object]) -> RouteResult:
    """Handle POST on one of the configured delegation paths.

    Parameters
    ----------
    gateway:
        Shared gateway state.
    path:
        Request path; selects the capability profiles to issue.
    body:
        Parsed JSON request body.
    """
    try:
        request = DelegationRequest.model_validate(body)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"][:1]) for err in exc.errors()})
        return error_result(MalformedRequest(f"Invalid request body: {', '.join(fields)}."))

    try:
        container = gateway.pipeline.run(
            request.siwe,
            request.signature,
            request.aud,
            gateway.routes[path],
        )
    except GatewayError as exc:
        return error_result(exc)
    return 200, container


def handle_not_found() -> tuple[int, dict[str, object]]:
    """Fallback for unknown routes."""
    return 404, ErrorResponse(message="Invalid API route", error="not_found").model_dump()


__all__ = [
    "RouteResult",
    "error_result",
    "handle_delegation",
    "handle_health",
    "handle_nonce",
    "handle_not_found",
]
