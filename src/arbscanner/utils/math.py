"""
Mathematical utilities for price calculations.

Precision-safe helpers shared by the price model, the query engine
and the reconciliation store.
"""

from typing import Final


# Epsilon for floating point comparisons
EPSILON: Final[float] = 1e-10


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default on division by zero.

    Args:
        numerator: The dividend.
        denominator: The divisor.
        default: Value to return if denominator is zero.

    Returns:
        Result of division or default value.
    """
    if abs(denominator) < EPSILON:
        return default
    return numerator / denominator


def clamp(value: float, lower: float, upper: float) -> float:
    """
    Clamp a value into [lower, upper].

    Example:
        >>> clamp(105.0, 98.0, 102.0)
        102.0
    """
    return min(max(value, lower), upper)


def snap_to_zero(value: float, tolerance: float) -> float:
    """
    Treat values within tolerance of zero as exactly zero.

    Example:
        >>> snap_to_zero(0.00004, 1e-4)
        0.0
        >>> snap_to_zero(-0.5, 1e-4)
        -0.5
    """
    if abs(value) < tolerance:
        return 0.0
    return value
