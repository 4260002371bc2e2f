"""Configuration module for the arbitrage scanner."""

from arbscanner.config.constants import (
    ASSETS,
    DEFAULT_UPDATE_PERIOD,
    EXCHANGES,
    FEE_RATE_PER_LEG,
    QUOTE_CURRENCY,
)
from arbscanner.config.settings import Settings, get_settings


__all__ = [
    "ASSETS",
    "DEFAULT_UPDATE_PERIOD",
    "EXCHANGES",
    "FEE_RATE_PER_LEG",
    "QUOTE_CURRENCY",
    "Settings",
    "get_settings",
]
