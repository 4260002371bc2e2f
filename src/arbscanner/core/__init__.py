"""Core module containing errors, the event bus, and type definitions."""

from arbscanner.core.errors import (
    DataInconsistencyError,
    InvalidQueryError,
    OpportunityNotFoundError,
    ScannerError,
    TransportError,
    UnknownAssetError,
)
from arbscanner.core.event_bus import Event, EventBus, EventType
from arbscanner.core.types import (
    Asset,
    Deal,
    DealStatus,
    FilterSpec,
    LedgerAck,
    Opportunity,
    Pagination,
    PriceUpdate,
    QueryResult,
    SortDirection,
    SortSpec,
    StreamState,
    Summary,
)


__all__ = [
    "Asset",
    "DataInconsistencyError",
    "Deal",
    "DealStatus",
    "Event",
    "EventBus",
    "EventType",
    "FilterSpec",
    "InvalidQueryError",
    "LedgerAck",
    "Opportunity",
    "OpportunityNotFoundError",
    "Pagination",
    "PriceUpdate",
    "QueryResult",
    "ScannerError",
    "SortDirection",
    "SortSpec",
    "StreamState",
    "Summary",
    "TransportError",
    "UnknownAssetError",
]
