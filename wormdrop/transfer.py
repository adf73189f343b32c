"""
HTTP client for the wormdrop relay.

Zero external dependencies: uses stdlib urllib.request. Every call is a
single blocking request/response; nothing is retried here.

Relay URL (priority order):
    1. explicit ``relay`` argument
    2. WORMDROP_RELAY environment variable
    3. http://localhost:8787
"""

from __future__ import annotations

import http.client
import json
import logging
import os
import urllib.error
import urllib.request
from typing import Any

from wormdrop import RELAY_DEFAULT_URL
from wormdrop.errors import (
    CapacityError,
    ConflictError,
    NotFoundError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def relay_url(relay: str | None = None) -> str:
    """Resolve the relay base URL (no trailing slash)."""
    url = relay or os.environ.get("WORMDROP_RELAY", "").strip() or RELAY_DEFAULT_URL
    return url.rstrip("/")


def _error_body(err: urllib.error.HTTPError) -> dict[str, Any]:
    try:
        body = json.loads(err.read().decode("utf-8"))
    except (ValueError, OSError):
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(err: urllib.error.HTTPError, body: dict[str, Any] | None = None) -> str:
    if body is None:
        body = _error_body(err)
    if body.get("error"):
        return str(body["error"])
    return err.reason or f"HTTP {err.code}"


def _request(
    method: str,
    url: str,
    data: bytes | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[int, bytes]:
    req = urllib.request.Request(url, data=data, method=method)
    for k, v in (headers or {}).items():
        req.add_header(k, v)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.status, resp.read()
    except urllib.error.HTTPError:
        raise
    except urllib.error.URLError as e:
        raise TransportError(f"Cannot reach relay at {url}: {e.reason}") from e
    except (OSError, http.client.HTTPException) as e:
        raise TransportError(f"Relay connection failed: {e}") from e


def upload(
    relay_id: str,
    data: bytes,
    relay: str | None = None,
    metadata: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """PUT an envelope under ``relay_id``. Returns the size the relay confirmed.

    Raises:
        ConflictError: The relay already holds a transfer under this id.
        CapacityError: The envelope exceeds the relay's limit.
        TransportError: Anything else.
    """
    url = f"{relay_url(relay)}/transfer/{relay_id}"
    headers = {"Content-Type": "application/octet-stream"}
    if metadata is not None:
        headers["X-Transfer-Metadata"] = metadata

    try:
        _, body = _request("PUT", url, data=data, headers=headers, timeout=timeout)
    except urllib.error.HTTPError as e:
        err_body = _error_body(e)
        if e.code == 409:
            raise ConflictError(_error_message(e, err_body)) from None
        if e.code == 413:
            limit = err_body.get("max_size")
            raise CapacityError(limit if isinstance(limit, int) else 0, len(data)) from None
        raise TransportError(f"Upload failed: {_error_message(e, err_body)}") from None
    except TransportError:
        # The relay cuts off an oversized upload; the 413 may be lost with it
        limit = relay_limit(relay)
        if limit is not None and len(data) > limit:
            raise CapacityError(limit, len(data)) from None
        raise

    logger.debug("Uploaded %d bytes to %s", len(data), relay_id[:12])
    try:
        return int(json.loads(body.decode("utf-8")).get("size", len(data)))
    except (ValueError, AttributeError):
        return len(data)


def download(
    relay_id: str,
    relay: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> bytes:
    """GET (and thereby consume) the envelope stored under ``relay_id``.

    Raises:
        NotFoundError: Never existed, already retrieved, or expired.
        TransportError: Anything else.
    """
    url = f"{relay_url(relay)}/transfer/{relay_id}"
    try:
        _, body = _request("GET", url, timeout=timeout)
    except urllib.error.HTTPError as e:
        if e.code == 404:
            raise NotFoundError("Transfer not found or already retrieved") from None
        raise TransportError(f"Download failed: {_error_message(e)}") from None
    logger.debug("Downloaded %d bytes from %s", len(body), relay_id[:12])
    return body


def discard(
    relay_id: str,
    relay: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> bool:
    """DELETE a pending transfer. Returns False if the relay had nothing."""
    url = f"{relay_url(relay)}/transfer/{relay_id}"
    try:
        _request("DELETE", url, timeout=timeout)
    except urllib.error.HTTPError as e:
        if e.code == 404:
            return False
        raise TransportError(f"Delete failed: {_error_message(e)}") from None
    return True


def health(relay: str | None = None, timeout: float = 5.0) -> dict[str, Any]:
    """GET /health from the relay."""
    url = f"{relay_url(relay)}/health"
    try:
        _, body = _request("GET", url, timeout=timeout)
    except urllib.error.HTTPError as e:
        raise TransportError(f"Health check failed: {_error_message(e)}") from None
    try:
        data = json.loads(body.decode("utf-8"))
    except ValueError:
        raise TransportError("Relay returned invalid JSON") from None
    if not isinstance(data, dict):
        raise TransportError("Relay returned invalid JSON")
    return data


def relay_limit(relay: str | None = None) -> int | None:
    """The relay's advertised payload cap, or None if it cannot be asked."""
    try:
        limit = health(relay).get("max_size")
    except TransportError:
        return None
    return limit if isinstance(limit, int) else None
