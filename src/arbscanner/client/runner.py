"""
Console watcher for a running scanner server.

Usage:
    arbscanner-watch

Loads the first page for the configured filter, follows the live price
stream and logs a summary line at a fixed interval. Configured through
the same SCANNER_* environment variables as the server.
"""

import asyncio
import logging
import sys
from typing import Any

from arbscanner.client.http import ScannerClient
from arbscanner.client.store import ReconciliationStore
from arbscanner.client.websocket import PriceStreamClient
from arbscanner.config.settings import Settings, get_settings
from arbscanner.core.errors import ScannerError, TransportError
from arbscanner.core.event_bus import Event, EventBus, EventType
from arbscanner.core.types import FilterSpec


logger = logging.getLogger(__name__)


def _log_event(event: Event[Any]) -> None:
    if event.type == EventType.REFETCH_FAILED:
        logger.warning(f"Refetch failed, showing patched prices: {event.payload}")
    elif event.type == EventType.DRIFT_DETECTED:
        logger.info(f"{len(event.payload)} opportunities drifted out of the filter")


def build_store(
    settings: Settings,
    client: ScannerClient,
    event_bus: EventBus | None = None,
) -> ReconciliationStore:
    """Create a store for the watcher filter in settings."""
    filters = FilterSpec(
        min_volume=settings.watch_min_volume,
        max_volume=settings.watch_max_volume,
        min_profit=settings.watch_min_profit,
    )
    return ReconciliationStore(
        client,
        client,
        filters=filters,
        limit=settings.default_page_limit,
        event_bus=event_bus,
    )


def _format_deltas(store: ReconciliationStore) -> str:
    try:
        deltas = store.balance_deltas()
    except ScannerError:
        return ""
    return ", ".join(
        f"{exchange} {currency}={delta:+.2f}"
        for exchange, amounts in sorted(deltas.items())
        for currency, delta in sorted(amounts.items())
        if delta
    )


def format_report(store: ReconciliationStore) -> str:
    """One-line summary of the working set."""
    summary = store.summary
    best = store.opportunities[0] if store.opportunities else None
    line = (
        f"shown={summary.total_opportunities} total={store.total} "
        f"avg_spread={summary.avg_spread:.2f}% volume={summary.total_volume:,.2f}"
    )
    if best is not None:
        line += (
            f" | best {best.coin} {best.buy_exchange}->{best.sell_exchange} "
            f"spread={best.spread:.2f}% profit={best.profit:.2f}"
        )
    bus = store.event_bus
    line += (
        f" | drift={bus.published_count(EventType.DRIFT_DETECTED)}"
        f" refetch_failures={bus.published_count(EventType.REFETCH_FAILED)}"
    )
    moved = _format_deltas(store)
    if moved:
        line += f" | balances {moved}"
    if store.is_stale:
        line += " (stale)"
    return line


async def watch(settings: Settings, duration: float | None = None) -> None:
    """
    Follow the scanner until cancelled or `duration` seconds elapse.

    Raises:
        TransportError: If the initial load fails.
    """
    bus = EventBus()
    bus.subscribe_sync(EventType.REFETCH_FAILED, _log_event)
    bus.subscribe_sync(EventType.DRIFT_DETECTED, _log_event)

    async with ScannerClient(settings.server_url) as client:
        store = build_store(settings, client, bus)
        await store.refresh()
        await store.load_balances()
        logger.info(f"Watching {settings.server_url}: {format_report(store)}")

        async with PriceStreamClient(settings.ws_url, store.handle_message) as stream:
            period = settings.watch_update_period
            if period is not None and await stream.wait_connected():
                await stream.set_update_period(period)

            loop = asyncio.get_running_loop()
            deadline = None if duration is None else loop.time() + duration
            while deadline is None or loop.time() < deadline:
                await asyncio.sleep(settings.watch_report_interval)
                try:
                    await store.load_balances()
                except TransportError as e:
                    logger.warning(f"Balance reload failed: {e}")
                logger.info(format_report(store))


def main() -> int:
    """
    Console entry point.

    Returns:
        Exit code (0 for success).
    """
    from arbscanner.telemetry.logger import setup_logging

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1

    async_logger = setup_logging(settings.log_level, settings.log_file)
    try:
        asyncio.run(watch(settings))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    except ScannerError as e:
        logger.error(f"Watcher stopped: {e}")
        return 1
    finally:
        async_logger.stop()


if __name__ == "__main__":
    sys.exit(main())
