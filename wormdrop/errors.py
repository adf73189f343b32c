"""
Error taxonomy shared by the client, the store and the relay.

    InputError      — malformed code, missing path, unknown route (no side effects)
    IntegrityError  — authenticated decryption failed; plaintext is never exposed
    CapacityError   — payload larger than the configured maximum
    ConflictError   — relay id already holds a live transfer
    NotFoundError   — never existed, already retrieved, or expired (one case on the wire)
    TransportError  — relay unreachable or answered outside the protocol

Nothing here is retried automatically: a blind retry of a put is unsafe
under at-most-once storage.
"""

from __future__ import annotations


class WormdropError(Exception):
    """Base class for all wormdrop errors."""


class InputError(WormdropError):
    """Caller-supplied input is malformed."""


class IntegrityError(WormdropError):
    """Envelope failed authentication (wrong code, tampering, truncation)."""


class CapacityError(WormdropError):
    """Payload exceeds the configured size limit."""

    def __init__(self, limit: int, size: int | None = None) -> None:
        self.limit = limit
        self.size = size
        if size is None:
            msg = f"Payload too large (max {limit} bytes)"
        else:
            msg = f"Payload too large: {size} bytes (max {limit})"
        super().__init__(msg)


class ConflictError(WormdropError):
    """A live transfer already exists under this relay id."""


class NotFoundError(WormdropError):
    """Transfer not found or already retrieved."""


class TransportError(WormdropError):
    """Relay could not be reached or returned an unexpected response."""
