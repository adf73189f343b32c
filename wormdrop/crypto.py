"""
End-to-end encryption for wormdrop transfers.

- Key derivation: PBKDF2-HMAC-SHA256 (stdlib, 100K iterations)
- Encryption: AES-256-GCM (`cryptography` package)

Two keys come out of the same code through two separate derivations with
different salts:

    encryption key — encrypts/decrypts the payload, never leaves the client
    relay id       — public storage key on the relay (64 lowercase hex chars)

The relay only sees the relay id. Recovering the encryption key from it
still means brute-forcing the code itself.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from wormdrop import (
    ENCRYPTION_SALT,
    KDF_ITERATIONS,
    KEY_SIZE,
    NONCE_SIZE,
    RELAY_SALT,
    TAG_SIZE,
)
from wormdrop.codes import TransferCode
from wormdrop.errors import IntegrityError


@dataclass(frozen=True)
class KeyMaterial:
    """Both secrets derived from one transfer code."""

    encryption_key: bytes
    relay_id: str


@dataclass(frozen=True)
class Envelope:
    """An AES-256-GCM envelope: nonce(12) + ciphertext + tag(16)."""

    nonce: bytes
    ciphertext: bytes
    tag: bytes

    def to_bytes(self) -> bytes:
        return self.nonce + self.ciphertext + self.tag

    @classmethod
    def from_bytes(cls, data: bytes) -> Envelope:
        """Split by fixed offsets. Raises IntegrityError if too short."""
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise IntegrityError("Invalid envelope: too short")
        return cls(
            nonce=bytes(data[:NONCE_SIZE]),
            ciphertext=bytes(data[NONCE_SIZE : len(data) - TAG_SIZE]),
            tag=bytes(data[len(data) - TAG_SIZE :]),
        )


def _pbkdf2(code: TransferCode | str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac(
        "sha256",
        str(code).encode("utf-8"),
        salt,
        KDF_ITERATIONS,
        dklen=KEY_SIZE,
    )


def derive_encryption_key(code: TransferCode | str) -> bytes:
    """32-byte AES key for ``code``."""
    return _pbkdf2(code, ENCRYPTION_SALT)


def derive_relay_id(code: TransferCode | str) -> str:
    """Relay storage id for ``code`` as 64 lowercase hex chars."""
    return _pbkdf2(code, RELAY_SALT).hex()


def derive_key_material(code: TransferCode | str) -> KeyMaterial:
    """Derive the encryption key and relay id for a code.

    Two full PBKDF2 runs with distinct salts, not one run split in half.
    Pass a TransferCode (or its canonical text) so that sender and
    receiver derive from identical bytes.
    """
    return KeyMaterial(
        encryption_key=derive_encryption_key(code),
        relay_id=derive_relay_id(code),
    )


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes")


def seal(plaintext: bytes, key: bytes) -> bytes:
    """Encrypt ``plaintext`` under ``key`` with a fresh random nonce.

    Returns nonce || ciphertext || tag.
    """
    _check_key(key)
    nonce = os.urandom(NONCE_SIZE)
    # AESGCM output is ciphertext || tag already
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def open_envelope(envelope: bytes, key: bytes) -> bytes:
    """Authenticate and decrypt an envelope produced by seal().

    Raises:
        IntegrityError: Too short, wrong key, or tampered/truncated data.
            No plaintext is returned in that case.
    """
    _check_key(key)
    env = Envelope.from_bytes(envelope)
    try:
        return AESGCM(key).decrypt(env.nonce, env.ciphertext + env.tag, None)
    except InvalidTag:
        raise IntegrityError(
            "Decryption failed: wrong code or tampered data"
        ) from None
