"""
Turn a file or directory into one payload and back.

    file:       {"type": "file", "name": ..., "size": ...}\\n  + raw content
    directory:  gzip-compressed tar archive (recognised by the gzip magic)

The payload is opaque to everything else in wormdrop: the client encrypts
whatever bytes come out of pack_path() and hands the decrypted bytes back
to unpack_to().
"""

from __future__ import annotations

import io
import json
import os
import tarfile
from dataclasses import dataclass
from pathlib import Path

from wormdrop.errors import InputError

_GZIP_MAGIC = b"\x1f\x8b"


@dataclass(frozen=True)
class PackedPayload:
    data: bytes
    kind: str  # "file" or "directory"


def is_directory_archive(data: bytes) -> bool:
    return data[:2] == _GZIP_MAGIC


def pack_path(path: str | Path) -> PackedPayload:
    """Pack a file (header + content) or a directory (tar.gz)."""
    if not str(path):
        raise InputError("No file or directory specified")
    p = Path(path)
    if p.is_dir():
        return PackedPayload(_pack_directory(p), "directory")
    if p.is_file():
        content = p.read_bytes()
        header = json.dumps({"type": "file", "name": p.name, "size": len(content)})
        return PackedPayload(header.encode("utf-8") + b"\n" + content, "file")
    raise InputError(f"No such file or directory: {path}")


def _pack_directory(root: Path) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for name in sorted(filenames):
                full = Path(dirpath) / name
                if full.is_symlink() or not full.is_file():
                    continue
                arcname = Path(root.name) / full.relative_to(root)
                tar.add(str(full), arcname=arcname.as_posix(), recursive=False)
    return buf.getvalue()


def _safe_target(output_dir: Path, member_path: str) -> Path:
    """Resolve member_path under output_dir, refusing traversal."""
    rel = Path(member_path)
    if rel.is_absolute() or ".." in rel.parts or not rel.parts:
        raise InputError(f"Unsafe path in payload: {member_path!r}")
    return output_dir / rel


def unpack_to(data: bytes, output_dir: str | Path = ".") -> list[str]:
    """Write a payload from pack_path() under output_dir.

    Returns the relative paths written.
    """
    out = Path(output_dir)
    if is_directory_archive(data):
        return _unpack_directory(data, out)

    newline = data.find(b"\n")
    if newline == -1:
        raise InputError("Invalid payload: no metadata header")
    try:
        header = json.loads(data[:newline].decode("utf-8"))
        name = header["name"]
    except (ValueError, KeyError, TypeError):
        raise InputError("Invalid payload: bad metadata header") from None
    if not isinstance(name, str):
        raise InputError("Invalid payload: bad metadata header")

    target = _safe_target(out, name)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data[newline + 1 :])
    return [name]


def _unpack_directory(data: bytes, out: Path) -> list[str]:
    written: list[str] = []
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            for member in tar.getmembers():
                if not member.isfile():
                    continue
                target = _safe_target(out, member.name)
                src = tar.extractfile(member)
                if src is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with src:
                    target.write_bytes(src.read())
                written.append(member.name)
    except tarfile.TarError as e:
        raise InputError(f"Invalid directory archive: {e}") from None
    return written
