"""
Time utilities.

Wire messages carry epoch milliseconds; display fields (`lastUpdate`,
`executedAt`) are ISO-8601 UTC strings with millisecond precision.
"""

import time
from datetime import UTC, datetime


def get_timestamp_us() -> int:
    """Current Unix time in microseconds."""
    return time.time_ns() // 1000


def get_timestamp_ms() -> int:
    """Current Unix time in milliseconds, as sent in price updates."""
    return time.time_ns() // 1_000_000


def ms_to_iso(timestamp_ms: int) -> str:
    """
    Format a millisecond timestamp as an ISO-8601 UTC string.

    Example:
        >>> ms_to_iso(1704110400123)
        '2024-01-01T12:00:00.123Z'
    """
    dt = datetime.fromtimestamp(timestamp_ms // 1000, tz=UTC)
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{timestamp_ms % 1000:03d}Z"


def utc_now_iso() -> str:
    """Current UTC time in the ms_to_iso format."""
    return ms_to_iso(get_timestamp_ms())


def iso_to_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string produced by ms_to_iso (or with an offset)."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class LatencyTimer:
    """
    Measure a block on the monotonic clock.

    Example:
        >>> with LatencyTimer() as timer:
        ...     result = query(batch, filters, sort, page, limit)
        >>> metrics.record_latency("query", timer.latency_us)
    """

    __slots__ = ("_start_ns", "latency_us")

    def __init__(self) -> None:
        self._start_ns = 0
        self.latency_us = 0

    def __enter__(self) -> "LatencyTimer":
        self._start_ns = time.perf_counter_ns()
        return self

    def __exit__(self, *args: object) -> None:
        self.latency_us = (time.perf_counter_ns() - self._start_ns) // 1000
