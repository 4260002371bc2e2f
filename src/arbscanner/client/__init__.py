"""Client runtime: HTTP and stream clients plus the reconciliation store."""

from arbscanner.client.http import ScannerClient, build_query_params
from arbscanner.client.store import ReconciliationStore
from arbscanner.client.websocket import ConnectionState, PriceStreamClient


__all__ = [
    "ConnectionState",
    "PriceStreamClient",
    "ReconciliationStore",
    "ScannerClient",
    "build_query_params",
]
