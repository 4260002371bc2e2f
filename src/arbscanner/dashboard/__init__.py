"""API server: HTTP endpoints, live price broadcast and wire schemas."""

from arbscanner.dashboard.broadcaster import BroadcastScheduler, ConnectionState
from arbscanner.dashboard.server import create_app, main


__all__ = [
    "BroadcastScheduler",
    "ConnectionState",
    "create_app",
    "main",
]
