"""
Bounded random-walk price model.

Every step perturbs the current price by at most PRICE_STEP_PCT of the
asset's *base* price and clamps the result into a PRICE_BAND_PCT band
around the base, so prices cannot drift away regardless of how many
steps accumulate.
"""

import random
from collections.abc import Iterable

from arbscanner.config.constants import (
    ASSETS,
    PRICE_BAND_PCT,
    PRICE_PRECISION,
    PRICE_STEP_PCT,
    SMALL_PRICE_PRECISION,
    SMALL_PRICE_THRESHOLD,
)
from arbscanner.core.errors import UnknownAssetError
from arbscanner.core.types import Asset
from arbscanner.utils.math import clamp


def price_precision(base_price: float) -> int:
    """Decimal places kept for prices of an asset with this base price."""
    if base_price < SMALL_PRICE_THRESHOLD:
        return SMALL_PRICE_PRECISION
    return PRICE_PRECISION


class PriceModel:
    """
    Static asset table plus the bounded price walk.

    Deterministic for a given random source: pass a seeded
    random.Random to reproduce a walk.
    """

    def __init__(
        self,
        assets: Iterable[Asset] = ASSETS,
        rng: random.Random | None = None,
        step_pct: float = PRICE_STEP_PCT,
        band_pct: float = PRICE_BAND_PCT,
    ) -> None:
        """
        Initialize price model.

        Args:
            assets: Reference asset table.
            rng: Random source (default: new unseeded Random).
            step_pct: Max change per step as a fraction of base price.
            band_pct: Half-width of the allowed band around base price.
        """
        self._assets = {asset.symbol: asset for asset in assets}
        if not self._assets:
            raise ValueError("Price model needs at least one asset")
        self._rng = rng or random.Random()
        self._step_pct = step_pct
        self._band_pct = band_pct

    @property
    def assets(self) -> list[Asset]:
        """Get the asset table in configuration order."""
        return list(self._assets.values())

    @property
    def symbols(self) -> list[str]:
        """Get all asset symbols."""
        return list(self._assets.keys())

    def asset(self, coin: str) -> Asset:
        """
        Resolve a coin against the asset table.

        Raises:
            UnknownAssetError: If the coin is not configured.
        """
        try:
            return self._assets[coin]
        except KeyError:
            raise UnknownAssetError(coin) from None

    def bounds(self, coin: str) -> tuple[float, float]:
        """Get the (lower, upper) price band for a coin."""
        base = self.asset(coin).base_price
        return base * (1 - self._band_pct), base * (1 + self._band_pct)

    def next_price(self, coin: str, current_price: float) -> float:
        """
        Advance a price by one bounded random step.

        Args:
            coin: Asset symbol.
            current_price: Last known price for the (coin, exchange) pair.

        Returns:
            New price, rounded to the asset precision and clamped
            into the band around the base price.
        """
        base = self.asset(coin).base_price
        max_change = base * self._step_pct
        change = self._rng.uniform(-max_change, max_change)

        # Round before clamping so the band edges stay exact
        new_price = round(current_price + change, price_precision(base))
        lower, upper = self.bounds(coin)
        return clamp(new_price, lower, upper)
