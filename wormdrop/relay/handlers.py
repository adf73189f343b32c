"""
Request handlers for the wormdrop relay.

Each handler is a pure function: (request_data, store) -> (status_code, body),
where body is a dict (sent as JSON) or raw bytes. No HTTP plumbing; that
lives in server.py.

The relay never looks inside stored bytes. "Never existed", "already
retrieved" and "expired" all answer the same 404 so a caller cannot tell
when a transfer was taken.
"""

from __future__ import annotations

import re
import time
from typing import Any, Iterable

from wormdrop import RELAY_MAX_METADATA
from wormdrop.errors import CapacityError, ConflictError, InputError

_TRANSFER_PATH_RE = re.compile(r"^/transfer/([a-f0-9]{1,128})$")

NOT_FOUND = {"error": "Not found"}
TRANSFER_NOT_FOUND = {"error": "Transfer not found or already retrieved"}
INTERNAL_ERROR = {"error": "Internal server error"}


def match_transfer_path(path: str) -> str | None:
    """Return the relay id in ``/transfer/<id>``, or None for any other path."""
    m = _TRANSFER_PATH_RE.match(path)
    return m.group(1) if m else None


def collect_body(chunks: Iterable[bytes], max_size: int) -> bytes:
    """Join streamed body chunks, failing as soon as the total passes max_size.

    The running total counts bytes actually received, never a declared
    length. Raises CapacityError mid-stream; nothing past the limit is
    buffered.
    """
    parts: list[bytes] = []
    total = 0
    for chunk in chunks:
        total += len(chunk)
        if total > max_size:
            raise CapacityError(max_size)
        parts.append(chunk)
    return b"".join(parts)


def handle_put(
    transfer_id: str,
    chunks: Iterable[bytes],
    store: Any,
    metadata: str | None = None,
) -> tuple[int, dict]:
    """PUT /transfer/<id> — stream in a blob and store it.

    Only a complete, size-checked body reaches store.put(); an aborted or
    short upload leaves nothing behind.
    """
    if metadata is not None and len(metadata) > RELAY_MAX_METADATA:
        return 400, {"error": f"Metadata too long (max {RELAY_MAX_METADATA} chars)"}

    try:
        data = collect_body(chunks, store.max_size)
    except CapacityError:
        return 413, {
            "error": f"Payload too large (max {store.max_size} bytes)",
            "max_size": store.max_size,
        }
    except InputError as e:
        return 400, {"error": str(e)}

    try:
        store.put(transfer_id, data, metadata)
    except CapacityError:
        return 413, {
            "error": f"Payload too large (max {store.max_size} bytes)",
            "max_size": store.max_size,
        }
    except ConflictError as e:
        return 409, {"error": str(e)}

    return 201, {"ok": True, "size": len(data)}


def handle_get(transfer_id: str, store: Any) -> tuple[int, dict | bytes]:
    """GET /transfer/<id> — one-time pickup.

    Returns the raw bytes on success (as bytes, not dict). The entry is
    gone once this returns.
    """
    entry = store.get(transfer_id)
    if entry is None:
        return 404, TRANSFER_NOT_FOUND
    return 200, entry.data


def handle_delete(transfer_id: str, store: Any) -> tuple[int, dict]:
    """DELETE /transfer/<id> — drop a transfer without reading it."""
    if store.delete(transfer_id):
        return 200, {"ok": True}
    return 404, {"error": "Transfer not found"}


def handle_health(store: Any, started_at: float) -> tuple[int, dict]:
    """GET /health — liveness, live transfer count and the payload cap."""
    return 200, {
        "status": "ok",
        "transfers": store.count,
        "max_size": store.max_size,
        "uptime": round(time.monotonic() - started_at, 3),
    }
