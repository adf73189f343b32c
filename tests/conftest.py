from __future__ import annotations

import threading

import pytest

from wormdrop.relay.server import RelayServer
from wormdrop.store import TransferStore


@pytest.fixture
def relay_server():
    """Start a real relay on a random port with a 1 KiB cap."""
    store = TransferStore(max_size=1024)
    # Use port 0 to let OS pick an available port
    server = RelayServer(("127.0.0.1", 0), store)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.close()


@pytest.fixture
def relay_url(relay_server):
    host, port = relay_server.server_address[:2]
    return f"http://{host}:{port}"
