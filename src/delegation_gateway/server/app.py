"""HTTP server for the delegation gateway using stdlib http.server.

Routes:
    GET    /nonce                  — issue a single-use sign-in nonce
    POST   /delegation             — storage delegation (upload/add, store/add)
    POST   /delegation/referral    — referral delegation (referral/claim)
    POST   /delegation/all         — both delegations in one container
    GET    /health                 — health check

Successful delegation requests are answered with a chunked CAR stream; the
body is written block by block as the container is produced.

Usage:
    delegation-gateway serve --port 3001
"""
from __future__ import annotations

import json
import logging
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from delegation_gateway.ipld.car import CONTENT_TYPE
from delegation_gateway.pipeline import IssuedContainer
from delegation_gateway.server import routes
from delegation_gateway.server.gateway import Gateway

logger = logging.getLogger(__name__)


class GatewayServer(ThreadingHTTPServer):
    """Thread-per-request HTTP server carrying a :class:`Gateway`."""

    daemon_threads = True

    def __init__(self, address: tuple[str, int], gateway: Gateway) -> None:
        super().__init__(address, GatewayRequestHandler)
        self.gateway = gateway


class GatewayRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler routing to :mod:`delegation_gateway.server.routes`."""

    protocol_version = "HTTP/1.1"
    server: GatewayServer

    def log_message(self, format: str, *args: object) -> None:
        """Route access logs through the Python logging system."""
        logger.debug(format, *args)

    @property
    def gateway(self) -> Gateway:
        return self.server.gateway

    # ── GET ───────────────────────────────────────────────────────────────────

    def do_GET(self) -> None:
        path = self._path()
        if path == "/nonce":
            self._send_json(*routes.handle_nonce(self.gateway))
        elif path == "/health":
            self._send_json(*routes.handle_health(self.gateway))
        else:
            self._send_json(*routes.handle_not_found())

    # ── POST ──────────────────────────────────────────────────────────────────

    def do_POST(self) -> None:
        path = self._path()
        content_length = self._content_length()
        if content_length is None:
            return
        if path not in self.gateway.routes:
            if content_length:
                self.rfile.read(content_length)
            self._send_json(*routes.handle_not_found())
            return

        body = self._read_json_body(content_length)
        if body is None:
            return

        try:
            status, payload = routes.handle_delegation(self.gateway, path, body)
        except Exception:
            logger.exception("Unhandled error on POST %s", path)
            self._send_json(500, {"message": "Internal server error", "success": False,
                                  "error": "internal_error"})
            return

        if isinstance(payload, IssuedContainer):
            self._send_container(payload)
        else:
            self._send_json(status, payload)

    # ── OPTIONS ───────────────────────────────────────────────────────────────

    def do_OPTIONS(self) -> None:
        """Answer CORS pre-flight requests."""
        self.send_response(204)
        self._send_cors_headers()
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        requested = self.headers.get("Access-Control-Request-Headers")
        if requested:
            self.send_header("Access-Control-Allow-Headers", requested)
        self.send_header("Content-Length", "0")
        self.end_headers()

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _path(self) -> str:
        return urllib.parse.urlparse(self.path).path.rstrip("/") or "/"

    def _send_cors_headers(self) -> None:
        origin = self.headers.get("Origin")
        if self.gateway.settings.cors_enabled and origin:
            self.send_header("Access-Control-Allow-Origin", origin)
            self.send_header("Access-Control-Allow-Credentials", "true")
            self.send_header("Vary", "Origin")

    def _send_json(self, status: int, data: dict[str, object]) -> None:
        """Serialize *data* to JSON and send it with *status*."""
        body = json.dumps(data, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self._send_cors_headers()
        self.end_headers()
        self.wfile.write(body)

    def _send_container(self, container: IssuedContainer) -> None:
        """Stream *container* with chunked transfer encoding.

        Once the status line is out, a failure can only be signalled by
        dropping the connection before the terminating chunk.
        """
        self.send_response(200)
        self.send_header("Content-Type", CONTENT_TYPE)
        self.send_header("Transfer-Encoding", "chunked")
        self._send_cors_headers()
        self.end_headers()

        chunks = container.stream()
        try:
            for chunk in chunks:
                if chunk:
                    self.wfile.write(b"%X\r\n%s\r\n" % (len(chunk), chunk))
            self.wfile.write(b"0\r\n\r\n")
        except (BrokenPipeError, ConnectionResetError):
            logger.warning("Client disconnected while streaming delegation for %s", container.subject)
            self.close_connection = True
        except Exception:
            logger.exception("Delegation stream for %s failed", container.subject)
            self.close_connection = True
        finally:
            chunks.close()

    def _content_length(self) -> int | None:
        """Return the declared body length.

        Returns None (and sends a 422 error response) when the header is not a
        non-negative integer; the connection is closed since the body can not
        be delimited.
        """
        header = self.headers.get("Content-Length") or "0"
        try:
            content_length = int(header)
        except ValueError:
            content_length = -1
        if content_length < 0:
            self.close_connection = True
            self._send_json(422, {"message": f"Invalid Content-Length: {header!r}.",
                                  "success": False, "error": "malformed_request"})
            return None
        return content_length

    def _read_json_body(self, content_length: int) -> dict[str, object] | None:
        """Read and parse the JSON request body.

        Returns None (and sends a 422 error response) if parsing fails.
        """
        raw = self.rfile.read(content_length) if content_length else b""
        try:
            parsed = json.loads(raw.decode("utf-8")) if raw else None
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._send_json(422, {"message": f"Invalid JSON: {exc}", "success": False,
                                  "error": "malformed_request"})
            return None
        if not isinstance(parsed, dict):
            self._send_json(422, {"message": "Request body must be a JSON object.",
                                  "success": False, "error": "malformed_request"})
            return None
        return parsed


def create_server(gateway: Gateway, host: str = "0.0.0.0", port: int = 3001) -> GatewayServer:
    """Create (but do not start) the gateway HTTP server.

    Parameters
    ----------
    gateway:
        Shared dependencies for request handlers.
    host:
        Bind address.
    port:
        TCP port; ``0`` picks a free port.
    """
    server = GatewayServer((host, port), gateway)
    logger.info("delegation-gateway server created at http://%s:%d", *server.server_address[:2])
    return server


def run_server(gateway: Gateway, host: str = "0.0.0.0", port: int = 3001) -> None:
    """Start signing initialization and serve until interrupted (blocking)."""
    gateway.start()
    server = create_server(gateway, host=host, port=port)
    logger.info("Serving delegation-gateway on http://%s:%d, press Ctrl-C to stop", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down delegation-gateway server.")
    finally:
        server.server_close()
        gateway.stop()


__all__ = ["GatewayRequestHandler", "GatewayServer", "create_server", "run_server"]
