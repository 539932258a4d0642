"""Pydantic request/response models for the delegation gateway HTTP server."""
from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from delegation_gateway.errors import GatewayError


class DelegationRequest(BaseModel):
    """Request body for the POST /delegation endpoints.

    ``daoLogin``, ``resolveEns`` and ``resolveLens`` are accepted for
    compatibility with existing clients and otherwise ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    siwe: Union[dict[str, Any], str]
    signature: str
    # Left untyped: a bad audience is a 400 from the pipeline, not a 422.
    aud: Any = None
    dao_login: Any = Field(default=None, alias="daoLogin")
    resolve_ens: Any = Field(default=None, alias="resolveEns")
    resolve_lens: Any = Field(default=None, alias="resolveLens")


class NonceResponse(BaseModel):
    """Response body for GET /nonce."""

    model_config = ConfigDict(populate_by_name=True)

    nonce: str
    expires_at: str = Field(alias="expiresAt")
    success: bool = True


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str = "ok"
    service: str = "delegation-gateway"
    version: str = "0.1.0"
    agent: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response body."""

    message: str
    success: bool = False
    error: str = ""

    @classmethod
    def from_error(cls, exc: GatewayError) -> "ErrorResponse":
        return cls(message=exc.message, error=exc.kind)


__all__ = [
    "DelegationRequest",
    "ErrorResponse",
    "HealthResponse",
    "NonceResponse",
]
