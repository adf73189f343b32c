"""
wormdrop relay — untrusted HTTP rendezvous for encrypted transfers.

Holds at most one opaque blob per relay id, hands it out once, and drops
anything older than the TTL. Zero external dependencies — stdlib only.
"""

from wormdrop.relay.server import RelayServer, run_relay

__all__ = ["RelayServer", "run_relay"]
