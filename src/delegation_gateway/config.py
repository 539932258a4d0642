"""Gateway configuration using pydantic-settings.

Settings are read from environment variables with the
``DELEGATION_GATEWAY_`` prefix, or from a ``.env`` file in the working
directory, e.g.::

    DELEGATION_GATEWAY_DOMAIN=app.example.com
    DELEGATION_GATEWAY_SIGNING_KEY=<64 hex characters>
"""
from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """Configuration for the delegation gateway server."""

    model_config = SettingsConfigDict(
        env_prefix="DELEGATION_GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Host to bind to")
    port: int = Field(default=3001, description="Port to bind to")
    domain: str = Field(
        default="localhost:3001",
        description="Domain sign-in messages must be issued for",
    )
    signing_key: str | None = Field(
        default=None,
        description="Hex-encoded 32-byte Ed25519 seed; a throwaway key is generated when unset",
    )

    nonce_ttl_seconds: int = Field(default=300, gt=0, description="Lifetime of issued nonces")
    delegation_ttl_seconds: int = Field(
        default=86400, gt=0, description="Lifetime of issued delegations"
    )
    max_message_age_seconds: int | None = Field(
        default=None, description="Reject sign-in messages issued longer ago than this"
    )
    clock_skew_seconds: int = Field(default=0, ge=0, description="Tolerated clock skew")
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Per-request wait budget for the signing backend"
    )
    signing_init_backoff_seconds: float = Field(default=0.5, gt=0)
    signing_init_max_backoff_seconds: float = Field(default=30.0, gt=0)

    cors_enabled: bool = Field(default=True, description="Reflect Origin with credentials")
    audit_log_path: Path | None = Field(default=None, description="JSONL audit log file")
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("signing_key")
    @classmethod
    def _check_signing_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip().removeprefix("0x")
        if len(stripped) != 64:
            raise ValueError("signing_key must be 32 bytes of hex (64 characters).")
        bytes.fromhex(stripped)
        return stripped

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {value!r}.")
        return upper


__all__ = ["GatewaySettings"]
