"""
Infrastructure package for fetchbench.

Centralizes database connectivity concerns: the connection factory, the
round-trip counting wrapper, and table/index bootstrap. Keep this layer
focused on I/O, decoupled from strategy and orchestrator logic.
"""

from fetchbench.infrastructure.db_factory import build_dsn, get_sync_connection
from fetchbench.infrastructure.tracking import RoundTripCounter, TrackedConnection

__all__ = [
    "RoundTripCounter",
    "TrackedConnection",
    "build_dsn",
    "get_sync_connection",
]
