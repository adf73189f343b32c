"""
Tests for the relay — pure handlers plus a real HTTP server on localhost.
"""

from __future__ import annotations

import http.client
import json
import logging
import time
import urllib.error
import urllib.request

import pytest

from wormdrop.errors import CapacityError, InputError
from wormdrop.relay.handlers import (
    collect_body,
    handle_delete,
    handle_get,
    handle_health,
    handle_put,
    match_transfer_path,
)
from wormdrop.store import TransferStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    s = TransferStore(max_size=1024, start_sweeper=False)
    yield s
    s.shutdown()


def _chunks(data: bytes, size: int = 100):
    for i in range(0, len(data), size):
        yield data[i : i + size]


# ---------------------------------------------------------------------------
# TestRouting
# ---------------------------------------------------------------------------

class TestRouting:

    def test_hex_id(self):
        assert match_transfer_path("/transfer/deadbeef01") == "deadbeef01"

    def test_full_length_id(self):
        assert match_transfer_path("/transfer/" + "ab" * 32) == "ab" * 32

    @pytest.mark.parametrize("path", [
        "/transfer/",
        "/transfer/DEADBEEF",
        "/transfer/xyz",
        "/transfer/abc/def",
        "/transfer/../etc",
        "/unknown",
        "/transfer/" + "a" * 129,
    ])
    def test_rejects(self, path):
        assert match_transfer_path(path) is None


# ---------------------------------------------------------------------------
# TestCollectBody
# ---------------------------------------------------------------------------

class TestCollectBody:

    def test_joins_chunks(self):
        assert collect_body(_chunks(b"x" * 250), 1024) == b"x" * 250

    def test_exact_limit(self):
        assert len(collect_body(_chunks(b"x" * 1024), 1024)) == 1024

    def test_stops_mid_stream(self):
        consumed = []

        def stream():
            for i in range(100):
                consumed.append(i)
                yield b"x" * 100

        with pytest.raises(CapacityError):
            collect_body(stream(), 250)
        assert len(consumed) == 3  # never pulled past the chunk that broke the cap


# ---------------------------------------------------------------------------
# TestHandlers
# ---------------------------------------------------------------------------

class TestHandlers:

    def test_put_success(self, store):
        code, data = handle_put("abc", _chunks(b"hello"), store)
        assert code == 201
        assert data == {"ok": True, "size": 5}

    def test_put_duplicate(self, store):
        handle_put("abc", _chunks(b"first"), store)
        code, data = handle_put("abc", _chunks(b"second"), store)
        assert code == 409
        assert "error" in data

    def test_put_too_large(self, store):
        code, data = handle_put("abc", _chunks(b"x" * 2048), store)
        assert code == 413
        assert data["max_size"] == 1024
        assert not store.has("abc")

    def test_put_incomplete_stores_nothing(self, store):
        def broken():
            yield b"partial"
            raise InputError("Incomplete request body")

        code, data = handle_put("abc", broken(), store)
        assert code == 400
        assert not store.has("abc")

    def test_put_metadata(self, store):
        handle_put("abc", _chunks(b"x"), store, metadata="hi")
        assert store.get("abc").metadata == "hi"

    def test_put_metadata_too_long(self, store):
        code, _ = handle_put("abc", _chunks(b"x"), store, metadata="m" * 300)
        assert code == 400

    def test_get(self, store):
        store.put("abc", b"blob")
        assert handle_get("abc", store) == (200, b"blob")
        code, data = handle_get("abc", store)
        assert code == 404
        assert data["error"] == "Transfer not found or already retrieved"

    def test_delete(self, store):
        store.put("abc", b"blob")
        assert handle_delete("abc", store)[0] == 200
        assert handle_delete("abc", store)[0] == 404

    def test_health(self, store):
        store.put("abc", b"blob")
        code, data = handle_health(store, time.monotonic() - 5)
        assert code == 200
        assert data["status"] == "ok"
        assert data["transfers"] == 1
        assert data["max_size"] == 1024
        assert data["uptime"] >= 5


# ---------------------------------------------------------------------------
# TestServerIntegration
# ---------------------------------------------------------------------------

def _request(base, method, path, body=None, headers=None):
    req = urllib.request.Request(base + path, data=body, method=method)
    for k, v in (headers or {}).items():
        req.add_header(k, v)
    try:
        with urllib.request.urlopen(req, timeout=5) as resp:
            return resp.status, resp.headers, resp.read()
    except urllib.error.HTTPError as e:
        return e.code, e.headers, e.read()


class TestServerIntegration:
    """Integration tests using a real HTTP server on localhost."""

    def test_health(self, relay_url):
        code, headers, body = _request(relay_url, "GET", "/health")
        assert code == 200
        data = json.loads(body)
        assert data["status"] == "ok"
        assert isinstance(data["transfers"], int)

    def test_put_then_get(self, relay_url):
        code, _, body = _request(relay_url, "PUT", "/transfer/deadbeef01", b"hello relay")
        assert code == 201
        assert json.loads(body) == {"ok": True, "size": 11}

        code, headers, body = _request(relay_url, "GET", "/transfer/deadbeef01")
        assert code == 200
        assert body == b"hello relay"
        assert headers["Content-Type"] == "application/octet-stream"

    def test_get_is_one_time(self, relay_url):
        _request(relay_url, "PUT", "/transfer/deadbeef02", b"once")
        _request(relay_url, "GET", "/transfer/deadbeef02")
        code, _, body = _request(relay_url, "GET", "/transfer/deadbeef02")
        assert code == 404
        assert json.loads(body)["error"] == "Transfer not found or already retrieved"

    def test_duplicate_put(self, relay_url):
        _request(relay_url, "PUT", "/transfer/deadbeef03", b"first")
        code, _, _ = _request(relay_url, "PUT", "/transfer/deadbeef03", b"second")
        assert code == 409

    def test_oversized_put(self, relay_url, relay_server):
        code, headers, body = _request(relay_url, "PUT", "/transfer/deadbeef04", b"\x00" * 2048)
        assert code == 413
        assert json.loads(body)["max_size"] == 1024
        assert headers["Connection"] == "close"
        assert not relay_server.store.has("deadbeef04")

    def test_oversized_chunked_put_is_cut_off(self, relay_server, relay_url):
        host, port = relay_server.server_address[:2]
        conn = http.client.HTTPConnection(host, port, timeout=5)
        try:
            conn.putrequest("PUT", "/transfer/deadbeef0c")
            conn.putheader("Transfer-Encoding", "chunked")
            conn.endheaders()
            for _ in range(3):
                conn.send(b"200\r\n" + b"\x00" * 0x200 + b"\r\n")
            conn.send(b"0\r\n\r\n")
            resp = conn.getresponse()
            assert resp.status == 413
            resp.read()
        finally:
            conn.close()
        assert not relay_server.store.has("deadbeef0c")

    def test_chunked_put_within_limit(self, relay_server):
        host, port = relay_server.server_address[:2]
        conn = http.client.HTTPConnection(host, port, timeout=5)
        try:
            conn.putrequest("PUT", "/transfer/deadbeef0d")
            conn.putheader("Transfer-Encoding", "chunked")
            conn.endheaders()
            conn.send(b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n")
            resp = conn.getresponse()
            assert resp.status == 201
            resp.read()
        finally:
            conn.close()
        assert relay_server.store.get("deadbeef0d").data == b"hello world"

    def test_truncated_upload_stores_nothing(self, relay_server):
        host, port = relay_server.server_address[:2]
        conn = http.client.HTTPConnection(host, port, timeout=5)
        conn.putrequest("PUT", "/transfer/deadbeef0e")
        conn.putheader("Content-Length", "100")
        conn.endheaders()
        conn.send(b"only ten b")
        conn.sock.shutdown(1)  # SHUT_WR: client gives up mid-upload
        try:
            resp = conn.getresponse()
            assert resp.status == 400
        except (ConnectionError, http.client.HTTPException):
            pass
        finally:
            conn.close()
        assert not relay_server.store.has("deadbeef0e")

    def test_metadata_header(self, relay_url, relay_server):
        code, _, _ = _request(
            relay_url, "PUT", "/transfer/deadbeef0f", b"x",
            {"X-Transfer-Metadata": "from-test"},
        )
        assert code == 201
        assert relay_server.store.get("deadbeef0f").metadata == "from-test"

    def test_delete(self, relay_url):
        _request(relay_url, "PUT", "/transfer/deadbeef05", b"delete me")
        code, _, _ = _request(relay_url, "DELETE", "/transfer/deadbeef05")
        assert code == 200
        code, _, _ = _request(relay_url, "GET", "/transfer/deadbeef05")
        assert code == 404

    def test_delete_missing(self, relay_url):
        code, _, _ = _request(relay_url, "DELETE", "/transfer/abcdef123456")
        assert code == 404

    def test_get_missing(self, relay_url):
        code, _, _ = _request(relay_url, "GET", "/transfer/abcdef789abc")
        assert code == 404

    def test_non_hex_id_is_unknown_route(self, relay_url, relay_server):
        code, _, body = _request(relay_url, "PUT", "/transfer/NOT-HEX", b"x")
        assert code == 404
        assert json.loads(body) == {"error": "Not found"}
        assert relay_server.store.count == 0

    def test_unknown_path(self, relay_url):
        code, _, _ = _request(relay_url, "GET", "/unknown")
        assert code == 404

    def test_post_not_allowed(self, relay_url):
        code, _, _ = _request(relay_url, "POST", "/transfer/deadbeef06", b"x")
        assert code == 405

    def test_cors_headers(self, relay_url):
        _, headers, _ = _request(relay_url, "GET", "/health")
        assert headers["Access-Control-Allow-Origin"] == "*"

    def test_options(self, relay_url):
        code, _, _ = _request(relay_url, "OPTIONS", "/transfer/test")
        assert code == 204

    def test_query_string_ignored(self, relay_url):
        _request(relay_url, "PUT", "/transfer/deadbeef07?x=1", b"q")
        code, _, body = _request(relay_url, "GET", "/transfer/deadbeef07")
        assert (code, body) == (200, b"q")

    def test_health_counts_transfers(self, relay_url):
        _request(relay_url, "PUT", "/transfer/deadbeef08", b"1")
        _request(relay_url, "PUT", "/transfer/deadbeef09", b"2")
        _, _, body = _request(relay_url, "GET", "/health")
        assert json.loads(body)["transfers"] == 2

    def test_close_shuts_down_store(self):
        from wormdrop.relay.server import RelayServer

        store = TransferStore()
        server = RelayServer(("127.0.0.1", 0), store)
        server.close()
        assert not store._sweeper.is_running

    def test_keep_alive_between_requests(self, relay_server):
        host, port = relay_server.server_address[:2]
        conn = http.client.HTTPConnection(host, port, timeout=5)
        try:
            conn.request("GET", "/health")
            resp = conn.getresponse()
            assert resp.version == 11
            resp.read()

            conn.request("PUT", "/transfer/deadbeef10", body=b"kept")
            resp = conn.getresponse()
            assert resp.status == 201
            resp.read()

            conn.request("GET", "/transfer/deadbeef10")
            resp = conn.getresponse()
            assert resp.read() == b"kept"
        finally:
            conn.close()

    def test_unexpected_error_is_500(self, relay_url, relay_server, monkeypatch, caplog):
        def broken_get(transfer_id):
            raise RuntimeError("store exploded")

        monkeypatch.setattr(relay_server.store, "get", broken_get)
        with caplog.at_level(logging.ERROR, logger="wormdrop.relay.server"):
            code, headers, body = _request(relay_url, "GET", "/transfer/abcd")
        assert code == 500
        assert json.loads(body) == {"error": "Internal server error"}
        assert headers["Connection"] == "close"
        assert "store exploded" in caplog.text
