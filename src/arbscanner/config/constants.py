"""
Market simulation constants and configuration values.

This module contains all hardcoded values used throughout the scanner.
Values are organized by category for easy maintenance and auditing.
"""

from typing import Final

from arbscanner.core.types import Asset


# =============================================================================
# Reference Market Data
# =============================================================================

# Base price (USDT) and base quote volume (USDT) per asset
ASSETS: Final[tuple[Asset, ...]] = (
    Asset("BTC", 45000.0, 100000.0),
    Asset("ETH", 2500.0, 50000.0),
    Asset("SOL", 100.0, 25000.0),
    Asset("AVAX", 35.0, 20000.0),
    Asset("BNB", 300.0, 30000.0),
    Asset("XRP", 0.5, 15000.0),
    Asset("ADA", 0.4, 10000.0),
    Asset("MATIC", 0.8, 12000.0),
    Asset("DOT", 7.0, 18000.0),
    Asset("DOGE", 0.08, 8000.0),
    Asset("SHIB", 0.00001, 5000.0),
    Asset("LINK", 15.0, 20000.0),
    Asset("UNI", 5.0, 15000.0),
    Asset("ATOM", 10.0, 20000.0),
    Asset("TRX", 0.08, 10000.0),
)

EXCHANGES: Final[tuple[str, ...]] = ("Binance", "Bybit", "OKX", "Huobi")

QUOTE_CURRENCY: Final[str] = "USDT"


# =============================================================================
# Price Walk
# =============================================================================

# Maximum change per step as a fraction of the base price (0.5%)
PRICE_STEP_PCT: Final[float] = 0.005

# Prices never leave base * (1 +/- PRICE_BAND_PCT)
PRICE_BAND_PCT: Final[float] = 0.02

# Assets priced below this keep 8 decimals, others 2
SMALL_PRICE_THRESHOLD: Final[float] = 0.01
SMALL_PRICE_PRECISION: Final[int] = 8
PRICE_PRECISION: Final[int] = 2

# Precision of prices pushed over the wire
WIRE_PRICE_PRECISION: Final[int] = 8


# =============================================================================
# Opportunity Generation
# =============================================================================

# Sell/buy spread drawn uniformly from this range (0.1% - 2%)
MIN_SPREAD_FRACTION: Final[float] = 0.001
MAX_SPREAD_FRACTION: Final[float] = 0.02

# Volume jitter around the asset base volume (+/- 20%)
VOLUME_JITTER: Final[float] = 0.2

# Upper bound on rejection-sampling draws for a distinct sell exchange
MAX_EXCHANGE_DRAWS: Final[int] = 64

# Opportunities generated per query
DEFAULT_BATCH_SIZE: Final[int] = 200

# Decimal places of derived display fields
SPREAD_PRECISION: Final[int] = 2
PROFIT_PRECISION: Final[int] = 2
VOLUME_PRECISION: Final[int] = 2


# =============================================================================
# Fees
# =============================================================================

# Taker fee per leg (0.1%); a round trip has two legs
FEE_RATE_PER_LEG: Final[float] = 0.001
LEGS_PER_TRADE: Final[int] = 2


# =============================================================================
# Query Defaults
# =============================================================================

DEFAULT_PAGE: Final[int] = 1
DEFAULT_PAGE_LIMIT: Final[int] = 50
MAX_PAGE_LIMIT: Final[int] = 500

DEFAULT_SORT_FIELD: Final[str] = "spread"
DEFAULT_SORT_DIRECTION: Final[str] = "desc"


# =============================================================================
# Broadcast Configuration
# =============================================================================

DEFAULT_UPDATE_PERIOD: Final[float] = 5.0  # seconds
MIN_UPDATE_PERIOD: Final[float] = 0.5  # seconds
MAX_UPDATE_PERIOD: Final[float] = 3600.0  # seconds

# Share of the asset table refreshed on every tick
UPDATE_ASSET_FRACTION: Final[float] = 0.2

# Exchanges touched per selected asset on every tick
MIN_EXCHANGES_PER_UPDATE: Final[int] = 2
MAX_EXCHANGES_PER_UPDATE: Final[int] = 3

MESSAGE_PRICE_UPDATES: Final[str] = "price_updates"
MESSAGE_SET_UPDATE_PERIOD: Final[str] = "set_update_period"
MESSAGE_UPDATE_PERIOD: Final[str] = "update_period"
MESSAGE_ERROR: Final[str] = "error"


# =============================================================================
# Ledger
# =============================================================================

# Starting USDT per exchange
DEFAULT_INITIAL_QUOTE_BALANCE: Final[float] = 1_000_000.0

# Starting inventory per asset, expressed in base volumes
INITIAL_INVENTORY_VOLUMES: Final[float] = 5.0

# Balance deltas below this are display noise
BALANCE_TOLERANCE: Final[float] = 1e-4

PROFIT_CHART_DAYS: Final[int] = 7
RECENT_DEALS_LIMIT: Final[int] = 20


# =============================================================================
# WebSocket Client Configuration
# =============================================================================

MIN_RECONNECT_DELAY: Final[float] = 1.0  # seconds
MAX_RECONNECT_DELAY: Final[float] = 30.0  # seconds
RECONNECT_MULTIPLIER: Final[float] = 2.0

WS_PING_INTERVAL: Final[float] = 20.0  # seconds
WS_MAX_MESSAGE_SIZE: Final[int] = 10 * 1024 * 1024  # 10MB
WS_CLOSE_TIMEOUT: Final[float] = 5.0  # seconds

HTTP_TIMEOUT: Final[float] = 10.0  # seconds

ENDPOINT_SCANNER: Final[str] = "/api/scanner"
ENDPOINT_DEALS: Final[str] = "/api/deals"
ENDPOINT_BALANCES: Final[str] = "/api/balances"
ENDPOINT_DASHBOARD: Final[str] = "/api/dashboard"
ENDPOINT_DASHBOARD_RESET: Final[str] = "/api/dashboard/reset"
ENDPOINT_METRICS: Final[str] = "/api/metrics"
ENDPOINT_WS: Final[str] = "/ws"

# Default watcher filter (volume and profit in USDT)
WATCH_MIN_VOLUME: Final[float] = 30.0
WATCH_MAX_VOLUME: Final[float] = 2000.0
WATCH_MIN_PROFIT: Final[float] = 0.5

# Seconds between watcher summary lines
WATCH_REPORT_INTERVAL: Final[float] = 10.0


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%S"

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000

# Samples kept per timed operation
LATENCY_WINDOW_SIZE: Final[int] = 1000
