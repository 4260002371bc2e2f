"""
Derived-field formulas for cross-exchange opportunities.

Single source of truth for spread, profit and commission so that the
generator, the query engine, the reconciliation store and the ledger
always agree.

Profit converts the quote-currency volume into base-asset units at the
buy price, then multiplies by the per-unit price difference:

    profit = (sell - buy) * (volume / buy)
"""

from arbscanner.config.constants import (
    FEE_RATE_PER_LEG,
    LEGS_PER_TRADE,
    PROFIT_PRECISION,
    SPREAD_PRECISION,
)
from arbscanner.core.types import Opportunity
from arbscanner.utils.math import safe_divide


def calculate_spread(buy_price: float, sell_price: float) -> float:
    """
    Calculate the sell/buy spread in percent.

    Example:
        >>> calculate_spread(100.0, 101.0)
        1.0
    """
    return round(safe_divide(sell_price - buy_price, buy_price) * 100, SPREAD_PRECISION)


def calculate_profit(buy_price: float, sell_price: float, volume: float) -> float:
    """
    Calculate gross profit in quote currency.

    Args:
        buy_price: Price paid on the buy exchange.
        sell_price: Price received on the sell exchange.
        volume: Trade size in quote currency.

    Returns:
        Profit before commission, rounded for display.

    Example:
        >>> calculate_profit(100.0, 101.0, 1000.0)
        10.0
    """
    base_units = safe_divide(volume, buy_price)
    return round((sell_price - buy_price) * base_units, PROFIT_PRECISION)


def calculate_commission(
    volume: float,
    fee_rate: float = FEE_RATE_PER_LEG,
    legs: int = LEGS_PER_TRADE,
) -> float:
    """
    Calculate total commission for a round trip.

    Fees are charged on the traded volume once per leg (buy and sell).

    Example:
        >>> calculate_commission(1000.0)
        2.0
    """
    return volume * fee_rate * legs


def refresh_derived_fields(opportunity: Opportunity) -> None:
    """Recompute spread and profit from the current leg prices in place."""
    opportunity.spread = calculate_spread(opportunity.buy_price, opportunity.sell_price)
    opportunity.profit = calculate_profit(
        opportunity.buy_price, opportunity.sell_price, opportunity.volume
    )
