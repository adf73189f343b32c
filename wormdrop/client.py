"""
wormdrop client — send and receive through a relay.

    send:    code -> keys -> seal(payload) -> PUT /transfer/<relay id>
    receive: parse code -> keys -> GET /transfer/<relay id> -> open

Failures stay distinguishable for the caller:
    InputError      malformed code (raised before any network or crypto work)
    NotFoundError   relay has nothing: never sent, already taken, or expired
    IntegrityError  wrong code content or tampered envelope
    ConflictError   relay id already in use (pick another code)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from wormdrop.codes import TransferCode, generate_code, parse_code
from wormdrop.crypto import derive_key_material, open_envelope, seal
from wormdrop.errors import InputError
from wormdrop.packing import is_directory_archive, pack_path, unpack_to
from wormdrop.transfer import download, upload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    code: str
    relay_id: str
    size: int  # plaintext payload bytes


@dataclass(frozen=True)
class ReceiveResult:
    files: list[str]
    kind: str  # "file" or "directory"
    total_size: int


def _require_code(code: str | TransferCode) -> TransferCode:
    if isinstance(code, TransferCode):
        return code
    parsed = parse_code(code)
    if parsed is None:
        raise InputError(f"Invalid wormdrop code: {code!r}")
    return parsed


def send(
    payload: bytes,
    code: str | TransferCode | None = None,
    relay: str | None = None,
) -> SendResult:
    """Encrypt ``payload`` and leave it on the relay.

    Uses ``code`` if given, otherwise a freshly generated one. Raises
    ConflictError if the relay already holds something under the derived
    id; with a generated code the caller can simply try again.
    """
    transfer_code = generate_code() if code is None else _require_code(code)
    keys = derive_key_material(transfer_code)
    envelope = seal(payload, keys.encryption_key)
    upload(keys.relay_id, envelope, relay=relay)
    logger.info("Sent %d bytes as %s", len(payload), keys.relay_id[:12])
    return SendResult(code=str(transfer_code), relay_id=keys.relay_id, size=len(payload))


def receive(code: str | TransferCode, relay: str | None = None) -> bytes:
    """Fetch and decrypt the payload for ``code``. One-shot: a second call
    for the same code raises NotFoundError."""
    transfer_code = _require_code(code)
    keys = derive_key_material(transfer_code)
    envelope = download(keys.relay_id, relay=relay)
    return open_envelope(envelope, keys.encryption_key)


def send_path(
    path: str | Path,
    code: str | TransferCode | None = None,
    relay: str | None = None,
) -> tuple[SendResult, str]:
    """Pack a file or directory and send it. Returns (result, kind)."""
    packed = pack_path(path)
    return send(packed.data, code=code, relay=relay), packed.kind


def receive_to(
    code: str | TransferCode,
    output_dir: str | Path = ".",
    relay: str | None = None,
) -> ReceiveResult:
    """Receive a transfer made with send_path() and write it under output_dir."""
    payload = receive(code, relay=relay)
    kind = "directory" if is_directory_archive(payload) else "file"
    files = unpack_to(payload, output_dir)
    return ReceiveResult(files=files, kind=kind, total_size=len(payload))
