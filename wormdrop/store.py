"""
TransferStore — in-memory, one-shot blob store behind the relay.

Per relay id:

    absent -> stored -> {retrieved | expired | deleted} -> absent

- At most one live entry per id; a second put is a ConflictError, never
  an overwrite.
- get() removes the entry in the same critical section that reads it, so
  an entry is handed out at most once.
- An entry whose age reached the TTL behaves as absent immediately, even
  before the sweeper physically removes it.

Thread-safe via a single threading.Lock over the whole mapping. Nothing is
persisted; a relay restart forgets every transfer.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from wormdrop import RELAY_MAX_SIZE, RELAY_SWEEP_INTERVAL_MS, RELAY_TTL_MS
from wormdrop.errors import CapacityError, ConflictError, WormdropError
from wormdrop.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferEntry:
    """A stored transfer. ``created_at`` is on the store's clock (seconds)."""

    data: bytes
    created_at: float
    metadata: str | None = None

    def age(self, now: float) -> float:
        return now - self.created_at


class TransferStore:
    """Ephemeral transfer store with TTL expiry and destructive reads.

    Usage:
        store = TransferStore(max_size=1024, ttl_ms=60_000)
        store.put(relay_id, blob)
        entry = store.get(relay_id)   # entry, then None forever after
        store.shutdown()
    """

    def __init__(
        self,
        max_size: int = RELAY_MAX_SIZE,
        ttl_ms: int = RELAY_TTL_MS,
        sweep_interval_ms: int = RELAY_SWEEP_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        start_sweeper: bool = True,
    ) -> None:
        if max_size < 0:
            raise ValueError("max_size must not be negative")
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        self.max_size = max_size
        self.ttl_ms = ttl_ms
        self._ttl = ttl_ms / 1000.0
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, TransferEntry] = {}
        self._closed = False
        self._sweeper = ExpirySweeper(self, sweep_interval_ms / 1000.0)
        if start_sweeper:
            self._sweeper.start()

    def __enter__(self) -> TransferStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    def __len__(self) -> int:
        return self.count

    def _is_expired(self, entry: TransferEntry, now: float) -> bool:
        return entry.age(now) >= self._ttl

    def put(
        self, transfer_id: str, data: bytes, metadata: str | None = None,
    ) -> TransferEntry:
        """Store ``data`` under ``transfer_id``.

        Raises:
            CapacityError: len(data) exceeds max_size.
            ConflictError: A live entry already exists for this id.
            WormdropError: The store has been shut down.
        """
        size = len(data)
        if size > self.max_size:
            raise CapacityError(self.max_size, size)

        with self._lock:
            if self._closed:
                raise WormdropError("Transfer store is shut down")
            now = self._clock()
            existing = self._entries.get(transfer_id)
            if existing is not None and not self._is_expired(existing, now):
                raise ConflictError("Transfer ID already exists")
            entry = TransferEntry(data=bytes(data), created_at=now, metadata=metadata)
            self._entries[transfer_id] = entry

        logger.debug("Stored transfer %s (%d bytes)", transfer_id[:12], size)
        return entry

    def get(self, transfer_id: str) -> TransferEntry | None:
        """Remove and return the entry for ``transfer_id``.

        Returns None if absent, already retrieved, or expired. Of any
        number of concurrent callers, exactly one receives the entry.
        """
        with self._lock:
            entry = self._entries.pop(transfer_id, None)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                logger.debug("Transfer %s expired before pickup", transfer_id[:12])
                return None

        logger.debug("Transfer %s picked up", transfer_id[:12])
        return entry

    def delete(self, transfer_id: str) -> bool:
        """Remove the entry regardless of age. Returns True if one was removed."""
        with self._lock:
            return self._entries.pop(transfer_id, None) is not None

    def has(self, transfer_id: str) -> bool:
        """True if a live (unexpired) entry exists. Diagnostic only."""
        with self._lock:
            entry = self._entries.get(transfer_id)
            return entry is not None and not self._is_expired(entry, self._clock())

    @property
    def count(self) -> int:
        """Number of live entries. Diagnostic only."""
        with self._lock:
            now = self._clock()
            return sum(
                1 for e in self._entries.values() if not self._is_expired(e, now)
            )

    def sweep(self) -> int:
        """Remove every entry whose age reached the TTL. Returns how many."""
        with self._lock:
            now = self._clock()
            expired = [
                tid for tid, e in self._entries.items() if self._is_expired(e, now)
            ]
            for tid in expired:
                del self._entries[tid]

        if expired:
            logger.info("Swept %d expired transfer(s)", len(expired))
        return len(expired)

    def shutdown(self) -> None:
        """Stop the sweeper and drop all entries. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._sweeper.stop()
        with self._lock:
            self._entries.clear()
