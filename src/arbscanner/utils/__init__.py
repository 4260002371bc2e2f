"""Utility functions for the arbitrage scanner."""

from arbscanner.utils.math import clamp, safe_divide, snap_to_zero
from arbscanner.utils.time import (
    get_timestamp_ms,
    get_timestamp_us,
    ms_to_iso,
    utc_now_iso,
)


__all__ = [
    "clamp",
    "get_timestamp_ms",
    "get_timestamp_us",
    "ms_to_iso",
    "safe_divide",
    "snap_to_zero",
    "utc_now_iso",
]
