"""HTTP server mode for delegation-gateway.

Provides a stdlib-based HTTP API that issues nonces and exchanges signed
sign-in messages for delegation containers.
"""
from __future__ import annotations

from delegation_gateway.server.app import GatewayRequestHandler, create_server, run_server
from delegation_gateway.server.gateway import Gateway, build_gateway

__all__ = ["Gateway", "GatewayRequestHandler", "build_gateway", "create_server", "run_server"]
