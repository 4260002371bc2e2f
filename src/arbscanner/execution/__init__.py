"""Execution module for deal construction, the ledger and session balances."""

from arbscanner.execution.balances import MemorySnapshotStorage, SessionBalances
from arbscanner.execution.deals import create_deal
from arbscanner.execution.ledger import Ledger, PortfolioMetrics, ProfitPoint


__all__ = [
    "Ledger",
    "MemorySnapshotStorage",
    "PortfolioMetrics",
    "ProfitPoint",
    "SessionBalances",
    "create_deal",
]
