"""
Synthetic opportunity generator.

Produces batches of cross-exchange opportunities from the price model.
Every opportunity is created with a strictly positive spread: the buy
price comes from the price model and the sell price is derived from it.
"""

import itertools
import logging
import random
from collections.abc import Sequence

from arbscanner.config.constants import (
    EXCHANGES,
    MAX_EXCHANGE_DRAWS,
    MAX_SPREAD_FRACTION,
    MIN_SPREAD_FRACTION,
    VOLUME_JITTER,
    VOLUME_PRECISION,
)
from arbscanner.core.types import Asset, Opportunity
from arbscanner.simulation.price_model import PriceModel
from arbscanner.strategy.calculator import calculate_profit, calculate_spread
from arbscanner.utils.time import utc_now_iso


logger = logging.getLogger(__name__)


def pick_distinct(
    rng: random.Random,
    choices: Sequence[str],
    exclude: str,
    max_draws: int = MAX_EXCHANGE_DRAWS,
) -> str:
    """
    Draw uniformly from choices until the result differs from exclude.

    Raises:
        RuntimeError: If no distinct value was drawn within max_draws.
    """
    for _ in range(max_draws):
        candidate = rng.choice(choices)
        if candidate != exclude:
            return candidate
    raise RuntimeError(f"No exchange distinct from {exclude} after {max_draws} draws")


class OpportunityGenerator:
    """
    Generates synthetic arbitrage opportunities.

    Owns the monotonic id counter, so ids keep increasing across batches
    for the lifetime of the generator.
    """

    def __init__(
        self,
        price_model: PriceModel,
        exchanges: Sequence[str] = EXCHANGES,
        rng: random.Random | None = None,
        spread_range: tuple[float, float] = (MIN_SPREAD_FRACTION, MAX_SPREAD_FRACTION),
        volume_jitter: float = VOLUME_JITTER,
    ) -> None:
        """
        Initialize generator.

        Args:
            price_model: Source of buy prices and asset reference data.
            exchanges: Exchanges to pair up (at least two).
            rng: Random source (default: new unseeded Random).
            spread_range: Min/max sell premium over the buy price (fractions).
            volume_jitter: Relative volume jitter around the base volume.
        """
        if len(set(exchanges)) < 2:
            raise ValueError("At least two distinct exchanges are required")
        low, high = spread_range
        if not 0 < low <= high:
            raise ValueError(f"Invalid spread range: {spread_range}")

        self._price_model = price_model
        self._exchanges = list(exchanges)
        self._rng = rng or random.Random()
        self._spread_range = spread_range
        self._volume_jitter = volume_jitter
        self._ids = itertools.count(1)

    @property
    def exchanges(self) -> list[str]:
        """Get configured exchanges."""
        return list(self._exchanges)

    def generate(self, count: int, round_robin: bool = True) -> list[Opportunity]:
        """
        Generate a batch of opportunities.

        Args:
            count: Number of opportunities to produce.
            round_robin: Cycle through the asset table in order
                instead of picking assets at random.

        Returns:
            List of opportunities, all with sell_price > buy_price.
        """
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")

        assets = self._price_model.assets
        batch = []
        for i in range(count):
            asset = assets[i % len(assets)] if round_robin else self._rng.choice(assets)
            batch.append(self._create(asset))

        logger.debug(f"Generated {len(batch)} opportunities")
        return batch

    def _create(self, asset: Asset) -> Opportunity:
        """Create one opportunity for an asset."""
        buy_exchange = self._rng.choice(self._exchanges)
        sell_exchange = pick_distinct(self._rng, self._exchanges, buy_exchange)

        buy_price = self._price_model.next_price(asset.symbol, asset.base_price)
        # Sell is derived from buy so the spread is always positive
        sell_price = buy_price * (1 + self._rng.uniform(*self._spread_range))

        jitter = self._rng.uniform(1 - self._volume_jitter, 1 + self._volume_jitter)
        volume = round(asset.base_volume * jitter, VOLUME_PRECISION)

        return Opportunity(
            id=next(self._ids),
            coin=asset.symbol,
            buy_exchange=buy_exchange,
            sell_exchange=sell_exchange,
            buy_price=buy_price,
            sell_price=sell_price,
            volume=volume,
            spread=calculate_spread(buy_price, sell_price),
            profit=calculate_profit(buy_price, sell_price, volume),
            last_update=utc_now_iso(),
        )
