"""
Type definitions for the arbitrage scanner.

This module contains all dataclasses, enums and Protocol definitions
used throughout the application. Wire (camelCase JSON) models live
in arbscanner.dashboard.schemas.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


# =============================================================================
# Enums
# =============================================================================


class SortDirection(str, Enum):
    """Sort direction for query results."""

    ASC = "asc"
    DESC = "desc"


class DealStatus(str, Enum):
    """Lifecycle of an executed opportunity."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class StreamState(str, Enum):
    """Broadcast state of a single live connection."""

    IDLE = "idle"
    STREAMING = "streaming"
    CLOSED = "closed"


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class Asset:
    """
    Reference data for a simulated asset.

    Frozen: the asset table is loaded once and never mutated.
    """

    symbol: str
    base_price: float
    base_volume: float


@dataclass(slots=True, frozen=True)
class PriceUpdate:
    """New price for one (coin, exchange) pair."""

    coin: str
    exchange: str
    price: float
    timestamp_ms: int


# =============================================================================
# Opportunity Types
# =============================================================================


@dataclass(slots=True)
class Opportunity:
    """
    Synthetic arbitrage candidate between two exchanges for one coin.

    Spread and profit are derived fields; they are recomputed whenever
    a leg price is patched.
    """

    id: int
    coin: str
    buy_exchange: str
    sell_exchange: str
    buy_price: float
    sell_price: float
    volume: float
    spread: float
    profit: float
    last_update: str

    def __post_init__(self) -> None:
        if self.buy_exchange == self.sell_exchange:
            raise ValueError(
                f"Opportunity {self.id}: buy and sell exchange are both {self.buy_exchange}"
            )

    @property
    def is_consistent(self) -> bool:
        """Check that the sell leg is still priced above the buy leg."""
        return self.sell_price > self.buy_price


@dataclass(slots=True)
class FilterSpec:
    """
    Declarative query filter.

    Every numeric bound is optional; None or 0 means unconstrained,
    so a bound of exactly zero cannot be expressed. Empty allow-lists
    accept everything.
    """

    min_volume: float | None = None
    max_volume: float | None = None
    min_profit: float | None = None
    max_profit: float | None = None
    min_spread: float | None = None
    max_spread: float | None = None
    min_commission: float | None = None
    max_commission: float | None = None
    buy_exchanges: frozenset[str] = field(default_factory=frozenset)
    sell_exchanges: frozenset[str] = field(default_factory=frozenset)
    currencies: frozenset[str] = field(default_factory=frozenset)


@dataclass(slots=True, frozen=True)
class SortSpec:
    """Single-field sort order."""

    field: str = "spread"
    direction: SortDirection = SortDirection.DESC

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC


@dataclass(slots=True)
class Summary:
    """Aggregate statistics over a filtered batch."""

    total_opportunities: int = 0
    avg_spread: float = 0.0
    total_volume: float = 0.0
    last_update_time: str = ""


@dataclass(slots=True, frozen=True)
class Pagination:
    """Offset pagination metadata."""

    page: int
    limit: int
    total: int


@dataclass(slots=True)
class QueryResult:
    """One page of filtered opportunities plus summary."""

    results: list[Opportunity]
    summary: Summary
    pagination: Pagination


# =============================================================================
# Execution Types
# =============================================================================


@dataclass(slots=True)
class Deal:
    """
    Record of an executed opportunity.

    `profit` is net of commission; the pre-commission figure is kept
    in `gross_profit`.
    """

    opportunity_id: int
    coin: str
    buy_exchange: str
    sell_exchange: str
    buy_price: float
    sell_price: float
    volume: float
    spread: float
    gross_profit: float
    commission: float
    profit: float
    status: DealStatus
    executed_at: str
    last_update: str = ""


@dataclass(slots=True, frozen=True)
class LedgerAck:
    """Acknowledgement returned by the ledger for a submitted deal."""

    success: bool
    deal: Deal | None = None
    message: str = ""


# Exchange -> currency -> amount
Balances = dict[str, dict[str, float]]


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


class OpportunityFetcher(Protocol):
    """Protocol for anything that can answer an opportunity query."""

    async def fetch_opportunities(
        self,
        filters: FilterSpec,
        sort: SortSpec,
        page: int,
        limit: int,
    ) -> QueryResult:
        """Fetch one page of opportunities."""
        ...


class LedgerClient(Protocol):
    """Protocol for the deal ledger collaborator."""

    async def submit_deal(self, deal: Deal) -> LedgerAck:
        """Record a deal and apply it to the exchange balances."""
        ...

    async def get_balances(self) -> Balances:
        """Get current balances per exchange and currency."""
        ...


class SnapshotStorage(Protocol):
    """Protocol for session-scoped key-value persistence."""

    def load(self, key: str) -> Mapping[str, Mapping[str, float]] | None:
        """Load a stored snapshot, or None if absent."""
        ...

    def save(self, key: str, value: Mapping[str, Mapping[str, float]]) -> None:
        """Store a snapshot."""
        ...

    def delete(self, key: str) -> None:
        """Remove a stored snapshot."""
        ...
