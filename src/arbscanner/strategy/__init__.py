"""Strategy module: derived-field formulas and the query engine."""

from arbscanner.strategy.calculator import (
    calculate_commission,
    calculate_profit,
    calculate_spread,
)
from arbscanner.strategy.query import query, validate_query


__all__ = [
    "calculate_commission",
    "calculate_profit",
    "calculate_spread",
    "query",
    "validate_query",
]
