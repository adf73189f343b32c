"""
HTTP server for the wormdrop relay.

Uses stdlib http.server with one thread per connection (ThreadingHTTPServer).
Routes requests to handler functions in handlers.py.

    PUT     /transfer/<id>  — store an encrypted blob
    GET     /transfer/<id>  — retrieve and delete it (one-time pickup)
    DELETE  /transfer/<id>  — explicitly delete a transfer
    GET     /health         — relay status
"""

from __future__ import annotations

import json
import logging
import signal
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Iterator

from wormdrop import RELAY_READ_CHUNK
from wormdrop.config import RelayConfig
from wormdrop.errors import InputError
from wormdrop.relay.handlers import (
    INTERNAL_ERROR,
    NOT_FOUND,
    handle_delete,
    handle_get,
    handle_health,
    handle_put,
    match_transfer_path,
)
from wormdrop.store import TransferStore

logger = logging.getLogger(__name__)

# Upper bound on bytes read and discarded after rejecting an upload
_DRAIN_LIMIT = 1024 * 1024
_DRAIN_TIMEOUT = 0.5


class RelayRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the relay.

    The store and start time are attached to the server instance and
    accessed via self.server.
    """

    server_version = "wormdrop-relay"
    protocol_version = "HTTP/1.1"

    # Route access logs through the logging module instead of stderr
    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(format, *args)

    def end_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, PUT, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        if self.close_connection:
            self.send_header("Connection", "close")
        super().end_headers()

    def _send_json(self, status: int, data: dict) -> None:
        body = json.dumps(data).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_bytes(self, status: int, data: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "application/octet-stream")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _send_result(self, status: int, result: dict | bytes) -> None:
        if isinstance(result, bytes):
            self._send_bytes(status, result)
        else:
            self._send_json(status, result)

    def _path(self) -> str:
        return self.path.split("?")[0]  # strip query string

    # -- inbound body ------------------------------------------------------

    def _iter_body(self) -> Iterator[bytes]:
        """Yield the request body in chunks as it arrives.

        Handles Content-Length and chunked transfer encoding. Raises
        InputError if the client stops sending before the body is complete.
        """
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            yield from self._iter_chunked()
            return

        remaining = self._content_length()
        while remaining > 0:
            chunk = self.rfile.read(min(RELAY_READ_CHUNK, remaining))
            if not chunk:
                raise InputError("Incomplete request body")
            remaining -= len(chunk)
            yield chunk

    def _iter_chunked(self) -> Iterator[bytes]:
        while True:
            line = self.rfile.readline(1024)
            if not line.endswith(b"\n"):
                raise InputError("Incomplete request body")
            try:
                size = int(line.split(b";", 1)[0].strip(), 16)
            except ValueError:
                raise InputError("Malformed chunk size") from None
            if size < 0:
                raise InputError("Malformed chunk size")
            if size == 0:
                # Skip trailers up to the terminating blank line
                while True:
                    trailer = self.rfile.readline(1024)
                    if trailer in (b"\r\n", b"\n", b""):
                        return
            while size > 0:
                chunk = self.rfile.read(min(RELAY_READ_CHUNK, size))
                if not chunk:
                    raise InputError("Incomplete request body")
                size -= len(chunk)
                yield chunk
            if self.rfile.readline(3) not in (b"\r\n", b"\n"):
                raise InputError("Malformed chunk terminator")

    def _content_length(self) -> int:
        raw = self.headers.get("Content-Length")
        if raw is None:
            return 0
        try:
            length = int(raw)
        except ValueError:
            raise InputError("Invalid Content-Length") from None
        if length < 0:
            raise InputError("Invalid Content-Length")
        return length

    def _reject(self, status: int, data: dict) -> None:
        """Answer with an error and close without reading the rest of the body."""
        self.close_connection = True
        self._send_json(status, data)
        self._linger_close()

    def _linger_close(self) -> None:
        """Close after an early rejection without resetting the client.

        Stops reading the upload, but discards a bounded amount of what is
        still in flight so the client gets to read our response.
        """
        self.close_connection = True
        try:
            self.wfile.flush()
            self.connection.shutdown(socket.SHUT_WR)
            self.connection.settimeout(_DRAIN_TIMEOUT)
            drained = 0
            while drained < _DRAIN_LIMIT:
                data = self.rfile.read1(RELAY_READ_CHUNK)
                if not data:
                    break
                drained += len(data)
        except OSError:
            pass  # client already gone

    # -- methods -----------------------------------------------------------

    def _dispatch(self, handler: Callable[[], None]) -> None:
        try:
            handler()
        except Exception:
            logger.exception("Unhandled error in %s %s", self.command, self._path())
            # Request body state is unknown, so never reuse the connection
            self.close_connection = True
            self._send_json(500, INTERNAL_ERROR)

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self) -> None:
        self._dispatch(self._get)

    def do_PUT(self) -> None:
        self._dispatch(self._put)

    def do_DELETE(self) -> None:
        self._dispatch(self._delete)

    def do_POST(self) -> None:
        if match_transfer_path(self._path()) is None:
            self._reject(404, NOT_FOUND)
        else:
            self._reject(405, {"error": "Method not allowed"})

    def _get(self) -> None:
        path = self._path()
        server = self.server  # type: ignore[attr-defined]

        # GET /health
        if path == "/health":
            code, data = handle_health(server.store, server.started_at)
            self._send_json(code, data)
            return

        # GET /transfer/<id>
        transfer_id = match_transfer_path(path)
        if transfer_id is None:
            self._send_json(404, NOT_FOUND)
            return
        code, result = handle_get(transfer_id, server.store)
        if code == 200:
            logger.info("Transfer %s retrieved", transfer_id[:12])
        self._send_result(code, result)

    def _put(self) -> None:
        server = self.server  # type: ignore[attr-defined]
        transfer_id = match_transfer_path(self._path())
        if transfer_id is None:
            self._reject(404, NOT_FOUND)
            return

        try:
            declared = self._content_length()
        except InputError as e:
            self._reject(400, {"error": str(e)})
            return

        # Reject an honest oversized declaration before reading anything
        if declared > server.store.max_size:
            self._reject(413, {
                "error": f"Payload too large (max {server.store.max_size} bytes)",
                "max_size": server.store.max_size,
            })
            return

        metadata = self.headers.get("X-Transfer-Metadata")
        code, data = handle_put(transfer_id, self._iter_body(), server.store, metadata)
        if code in (400, 413):
            logger.info("Upload for %s rejected (%d)", transfer_id[:12], code)
            self._reject(code, data)
            return
        self._send_json(code, data)
        if code == 201:
            logger.info("Transfer %s stored (%d bytes)", transfer_id[:12], data["size"])

    def _delete(self) -> None:
        server = self.server  # type: ignore[attr-defined]
        transfer_id = match_transfer_path(self._path())
        if transfer_id is None:
            self._send_json(404, NOT_FOUND)
            return
        code, data = handle_delete(transfer_id, server.store)
        self._send_json(code, data)


class RelayServer(ThreadingHTTPServer):
    """ThreadingHTTPServer subclass that carries the transfer store."""

    def __init__(self, address: tuple[str, int], store: TransferStore) -> None:
        super().__init__(address, RelayRequestHandler)
        self.store = store
        self.started_at = time.monotonic()

    @classmethod
    def from_config(cls, config: RelayConfig) -> RelayServer:
        store = TransferStore(
            max_size=config.max_size,
            ttl_ms=config.ttl_ms,
            sweep_interval_ms=config.sweep_interval_ms,
        )
        try:
            return cls((config.host, config.port), store)
        except OSError:
            store.shutdown()
            raise

    @property
    def transfer_count(self) -> int:
        return self.store.count

    def close(self) -> None:
        """Stop the store's sweeper and release the socket."""
        self.store.shutdown()
        self.server_close()


def run_relay(config: RelayConfig | None = None) -> None:
    """Start the relay server (blocking).

    Args:
        config: RelayConfig (read from the environment if not provided)
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    if config is None:
        config = RelayConfig.from_env()

    server = RelayServer.from_config(config)
    host, port = server.server_address[:2]

    def _on_sigterm(signum: int, frame: Any) -> None:
        # shutdown() blocks until serve_forever exits, so not on this thread
        threading.Thread(target=server.shutdown, daemon=True).start()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _on_sigterm)

    print(f"wormdrop relay listening on http://{host}:{port}")
    print(f"  max size: {config.max_size} bytes")
    print(f"  ttl:      {config.ttl_ms} ms (sweep every {config.sweep_interval_ms} ms)")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        server.close()
