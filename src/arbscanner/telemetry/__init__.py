"""Telemetry module for logging and metrics."""

from arbscanner.telemetry.logger import AsyncLogger, ConnectionLogAdapter, setup_logging
from arbscanner.telemetry.metrics import LatencyStats, MetricsCollector


__all__ = [
    "AsyncLogger",
    "ConnectionLogAdapter",
    "LatencyStats",
    "MetricsCollector",
    "setup_logging",
]
