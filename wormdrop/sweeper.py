"""
ExpirySweeper — background daemon thread that drops expired transfers.

Owned by a TransferStore: started when the store is built, stopped by
TransferStore.shutdown(). The thread is a daemon and waits on an Event,
so stop() returns promptly and a forgotten store never pins the process.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Calls ``store.sweep()`` every ``interval`` seconds until stopped.

    Usage:
        sweeper = ExpirySweeper(store, interval=60)
        sweeper.start()
        # ... later ...
        sweeper.stop()
    """

    def __init__(self, store: Any, interval: float) -> None:
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self._store = store
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sweeper daemon thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="expiry-sweeper", daemon=True
        )
        self._thread.start()
        logger.info("ExpirySweeper started (interval: %.1fs)", self._interval)

    def stop(self) -> None:
        """Signal the sweeper to stop and wait for the thread to exit."""
        if self._thread is None:
            return
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None
        logger.info("ExpirySweeper stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._store.sweep()
            except Exception:
                logger.exception("ExpirySweeper sweep error")
