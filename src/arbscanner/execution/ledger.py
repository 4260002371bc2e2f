"""
In-memory deal ledger.

Records executed deals, settles them against per-exchange balances and
derives portfolio metrics from the history. The ledger is an explicitly
owned object (one per server app) with an explicit reset; nothing is
persisted across restarts.

Settlement model: every exchange starts with a quote balance and an
inventory of each asset. A deal buys `volume / buy_price` units on the
buy exchange and sells the same units from inventory on the sell
exchange, so the net quote change equals the deal's net profit.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from arbscanner.config.constants import (
    ASSETS,
    DEFAULT_INITIAL_QUOTE_BALANCE,
    EXCHANGES,
    INITIAL_INVENTORY_VOLUMES,
    PROFIT_CHART_DAYS,
    PROFIT_PRECISION,
    QUOTE_CURRENCY,
    RECENT_DEALS_LIMIT,
    SPREAD_PRECISION,
)
from arbscanner.core.errors import UnknownAssetError
from arbscanner.core.types import Asset, Balances, Deal, DealStatus, LedgerAck
from arbscanner.utils.math import safe_divide
from arbscanner.utils.time import iso_to_datetime


logger = logging.getLogger(__name__)


@dataclass
class PortfolioMetrics:
    """Aggregate performance over the deal history."""

    total_profit: float = 0.0
    daily_profit: float = 0.0
    total_commission: float = 0.0
    success_rate: float = 0.0
    total_deals: int = 0
    completed_deals: int = 0
    failed_deals: int = 0
    volume_24h: float = 0.0
    avg_spread: float = 0.0


@dataclass(frozen=True)
class ProfitPoint:
    """Net profit realised on one calendar day (UTC)."""

    date: str
    value: float


class Ledger:
    """
    Deal history plus exchange balance table.

    Features:
    - Funds check before settlement
    - Failed deals kept in the history for the success rate
    - Explicit reset back to the starting balances
    """

    def __init__(
        self,
        exchanges: Sequence[str] = EXCHANGES,
        assets: Iterable[Asset] = ASSETS,
        initial_quote_balance: float = DEFAULT_INITIAL_QUOTE_BALANCE,
        quote_currency: str = QUOTE_CURRENCY,
    ) -> None:
        """
        Initialize ledger.

        Args:
            exchanges: Exchanges holding balances.
            assets: Asset table (inventory is seeded per asset).
            initial_quote_balance: Starting quote balance per exchange.
            quote_currency: Currency volumes and profits are quoted in.
        """
        self._exchanges = list(exchanges)
        self._assets = {asset.symbol: asset for asset in assets}
        self._initial_quote_balance = initial_quote_balance
        self._quote = quote_currency

        self._deals: list[Deal] = []
        self._balances: Balances = {}
        self.reset()

    @property
    def deals(self) -> list[Deal]:
        """Get the deal history, oldest first."""
        return list(self._deals)

    @property
    def quote_currency(self) -> str:
        return self._quote

    def initial_balances(self) -> Balances:
        """Build the starting balance table."""
        inventory = {
            symbol: asset.base_volume / asset.base_price * INITIAL_INVENTORY_VOLUMES
            for symbol, asset in self._assets.items()
        }
        return {
            exchange: {self._quote: self._initial_quote_balance, **inventory}
            for exchange in self._exchanges
        }

    def reset(self) -> None:
        """Drop the deal history and restore starting balances."""
        self._deals.clear()
        self._balances = self.initial_balances()
        logger.info("Ledger reset")

    def balances(self) -> Balances:
        """Get a copy of the current balance table."""
        return {exchange: dict(currencies) for exchange, currencies in self._balances.items()}

    def submit(self, deal: Deal) -> LedgerAck:
        """
        Record a deal and settle it against the balances.

        Returns:
            Successful ack with the completed deal, or a failed ack
            (deal recorded as failed) when validation or funds fail.

        Raises:
            UnknownAssetError: If the deal's coin is not in the asset table.
        """
        if deal.coin not in self._assets:
            raise UnknownAssetError(deal.coin)

        reason = self._check(deal)
        if reason:
            failed = replace(deal, status=DealStatus.FAILED)
            self._deals.append(failed)
            logger.warning(f"Deal for opportunity {deal.opportunity_id} rejected: {reason}")
            return LedgerAck(success=False, deal=failed, message=reason)

        self._settle(deal)
        completed = replace(deal, status=DealStatus.COMPLETED)
        self._deals.append(completed)

        logger.info(
            f"Deal {deal.coin} {deal.buy_exchange}->{deal.sell_exchange} "
            f"volume={deal.volume:.2f} net={deal.profit:.2f}"
        )
        return LedgerAck(success=True, deal=completed, message="Deal recorded")

    def _check(self, deal: Deal) -> str:
        """Return a rejection reason, or an empty string if the deal can settle."""
        for exchange in (deal.buy_exchange, deal.sell_exchange):
            if exchange not in self._balances:
                return f"Unknown exchange: {exchange}"
        if deal.buy_exchange == deal.sell_exchange:
            return "Buy and sell exchange must differ"
        if deal.volume <= 0 or deal.buy_price <= 0 or deal.sell_price <= 0:
            return "Volume and prices must be positive"

        units = deal.volume / deal.buy_price
        quote_needed = deal.volume + deal.commission / 2
        if self._balances[deal.buy_exchange][self._quote] < quote_needed:
            return f"Insufficient {self._quote} on {deal.buy_exchange}"
        if self._balances[deal.sell_exchange][deal.coin] < units:
            return f"Insufficient {deal.coin} on {deal.sell_exchange}"
        return ""

    def _settle(self, deal: Deal) -> None:
        units = deal.volume / deal.buy_price
        half_commission = deal.commission / 2

        buy_side = self._balances[deal.buy_exchange]
        buy_side[self._quote] -= deal.volume + half_commission
        buy_side[deal.coin] += units

        sell_side = self._balances[deal.sell_exchange]
        sell_side[deal.coin] -= units
        sell_side[self._quote] += units * deal.sell_price - half_commission

    def metrics(self, now: datetime | None = None) -> PortfolioMetrics:
        """
        Compute portfolio metrics from the deal history.

        Args:
            now: Reference time (default: current UTC time).
        """
        now = now or datetime.now(UTC)
        completed = [d for d in self._deals if d.status == DealStatus.COMPLETED]
        day_ago = now - timedelta(days=1)

        daily_profit = 0.0
        volume_24h = 0.0
        for deal in completed:
            executed = iso_to_datetime(deal.executed_at)
            if executed.date() == now.date():
                daily_profit += deal.profit
            if executed >= day_ago:
                volume_24h += deal.volume

        total = len(self._deals)
        return PortfolioMetrics(
            total_profit=round(sum(d.profit for d in completed), PROFIT_PRECISION),
            daily_profit=round(daily_profit, PROFIT_PRECISION),
            total_commission=round(sum(d.commission for d in completed), PROFIT_PRECISION),
            success_rate=round(safe_divide(len(completed), total) * 100, 2),
            total_deals=total,
            completed_deals=len(completed),
            failed_deals=total - len(completed),
            volume_24h=volume_24h,
            avg_spread=round(
                safe_divide(sum(d.spread for d in completed), len(completed)),
                SPREAD_PRECISION,
            ),
        )

    def profit_chart(
        self,
        days: int = PROFIT_CHART_DAYS,
        now: datetime | None = None,
    ) -> list[ProfitPoint]:
        """Net profit per UTC day for the last `days` days, oldest first."""
        now = now or datetime.now(UTC)
        totals: dict[str, float] = {}
        for deal in self._deals:
            if deal.status == DealStatus.COMPLETED:
                day = iso_to_datetime(deal.executed_at).date().isoformat()
                totals[day] = totals.get(day, 0.0) + deal.profit

        dates = [(now - timedelta(days=offset)).date().isoformat() for offset in range(days)]
        return [
            ProfitPoint(date=day, value=round(totals.get(day, 0.0), PROFIT_PRECISION))
            for day in reversed(dates)
        ]

    def recent_deals(self, limit: int = RECENT_DEALS_LIMIT) -> list[Deal]:
        """Get the most recent deals, newest first."""
        return list(reversed(self._deals[-limit:])) if limit > 0 else []
