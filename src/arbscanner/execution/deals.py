"""Deal construction from a live opportunity."""

from arbscanner.config.constants import PROFIT_PRECISION
from arbscanner.core.types import Deal, DealStatus, Opportunity
from arbscanner.strategy.calculator import calculate_commission
from arbscanner.utils.time import utc_now_iso


def create_deal(opportunity: Opportunity, executed_at: str | None = None) -> Deal:
    """
    Snapshot an opportunity into a pending deal.

    Commission is the round-trip fee on the volume (0.2%); the deal's
    `profit` is the opportunity profit net of that commission.

    Example:
        volume=1000, profit=50 -> commission=2.0, profit=48.0
    """
    commission = round(calculate_commission(opportunity.volume), PROFIT_PRECISION)
    return Deal(
        opportunity_id=opportunity.id,
        coin=opportunity.coin,
        buy_exchange=opportunity.buy_exchange,
        sell_exchange=opportunity.sell_exchange,
        buy_price=opportunity.buy_price,
        sell_price=opportunity.sell_price,
        volume=opportunity.volume,
        spread=opportunity.spread,
        gross_profit=opportunity.profit,
        commission=commission,
        profit=round(opportunity.profit - commission, PROFIT_PRECISION),
        status=DealStatus.PENDING,
        executed_at=executed_at or utc_now_iso(),
        last_update=opportunity.last_update,
    )
