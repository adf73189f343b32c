"""
wormdrop — hand an encrypted blob to someone through an untrusted relay.

Architecture:
    Code:    "42-banana-thunder"  (number 1-999 + two distinct dictionary words)
    Keys:    PBKDF2-HMAC-SHA256(code, label) x2 -> encryption key, relay id
    Wire:    nonce (12) || AES-256-GCM ciphertext || tag (16)
    Relay:   PUT/GET/DELETE /transfer/<relay id>  — one blob per id, read once

The relay only ever sees the relay id and ciphertext.
"""

__version__ = "0.1.0"

# Key derivation
KDF_ITERATIONS = 100_000
KEY_SIZE = 32  # AES-256
ENCRYPTION_SALT = b"wormhole-encryption-v1"
RELAY_SALT = b"wormhole-relay-key-v1"

# Envelope
NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16  # 128-bit GCM tag

# Relay defaults
RELAY_DEFAULT_HOST = "0.0.0.0"
RELAY_DEFAULT_PORT = 8787
RELAY_DEFAULT_URL = "http://localhost:8787"
RELAY_MAX_SIZE = 1_048_576  # 1 MiB per transfer
RELAY_TTL_MS = 600_000  # 10 minutes
RELAY_SWEEP_INTERVAL_MS = 60_000
RELAY_READ_CHUNK = 64 * 1024
RELAY_MAX_METADATA = 256
