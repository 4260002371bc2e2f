"""
Server-side operational metrics.

Counters for queries, rejections, deals and broadcast ticks, gauges for
open connections, and rolling latency windows for query handling.
Exposed as JSON at /api/metrics.
"""

import time
from collections import deque
from dataclasses import dataclass

from arbscanner.config.constants import LATENCY_WINDOW_SIZE


@dataclass(slots=True)
class LatencyStats:
    """Latency percentiles over one window, in microseconds."""

    min_us: int = 0
    max_us: int = 0
    avg_us: float = 0.0
    p50_us: int = 0
    p99_us: int = 0
    count: int = 0

    def as_dict(self) -> dict[str, float]:
        return {
            "min": self.min_us,
            "max": self.max_us,
            "avg": round(self.avg_us, 1),
            "p50": self.p50_us,
            "p99": self.p99_us,
            "count": self.count,
        }


class LatencyWindow:
    """Most recent N samples of one timed operation."""

    __slots__ = ("_samples",)

    def __init__(self, size: int) -> None:
        self._samples: deque[int] = deque(maxlen=size)

    def add(self, latency_us: int) -> None:
        self._samples.append(latency_us)

    def stats(self) -> LatencyStats:
        if not self._samples:
            return LatencyStats()
        ordered = sorted(self._samples)
        n = len(ordered)
        return LatencyStats(
            min_us=ordered[0],
            max_us=ordered[-1],
            avg_us=sum(ordered) / n,
            p50_us=ordered[n // 2],
            p99_us=ordered[min(int(n * 0.99), n - 1)],
            count=n,
        )


class MetricsCollector:
    """
    In-memory metrics for one server app.

    Owned by the app (created in create_app) and shared with the
    broadcast scheduler; not persisted.
    """

    def __init__(self, latency_window_size: int = LATENCY_WINDOW_SIZE) -> None:
        """
        Initialize metrics collector.

        Args:
            latency_window_size: Samples kept per timed operation.
        """
        self._window_size = latency_window_size
        self._windows: dict[str, LatencyWindow] = {}
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}
        self._started = time.monotonic()

    def record_latency(self, name: str, latency_us: int) -> None:
        """Add one sample to the window of `name` (e.g. "query")."""
        window = self._windows.get(name)
        if window is None:
            window = self._windows[name] = LatencyWindow(self._window_size)
        window.add(latency_us)

    def increment_counter(self, name: str, value: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + value

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get_gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    def get_latency_stats(self, name: str) -> LatencyStats:
        window = self._windows.get(name)
        return window.stats() if window else LatencyStats()

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def to_dict(self) -> dict[str, object]:
        """Snapshot for the metrics endpoint."""
        return {
            "uptime_seconds": round(self.uptime_seconds, 3),
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "latencies": {
                name: window.stats().as_dict() for name, window in self._windows.items()
            },
        }

    def reset(self) -> None:
        """Zero every counter, gauge and window and restart the uptime clock."""
        self._windows.clear()
        self._counters.clear()
        self._gauges.clear()
        self._started = time.monotonic()
