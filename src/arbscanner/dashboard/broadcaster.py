"""
Per-connection price broadcast scheduler.

Every live connection gets its own ConnectionState holding the one
timer task and the last-known price per (coin, exchange). Changing the
period cancels the timer and starts a new one, so a connection never
has two timers running.
"""

import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from arbscanner.config.constants import (
    DEFAULT_UPDATE_PERIOD,
    EXCHANGES,
    MAX_EXCHANGES_PER_UPDATE,
    MAX_UPDATE_PERIOD,
    MIN_EXCHANGES_PER_UPDATE,
    MIN_UPDATE_PERIOD,
    UPDATE_ASSET_FRACTION,
    WIRE_PRICE_PRECISION,
)
from arbscanner.core.errors import InvalidQueryError, ScannerError
from arbscanner.core.types import PriceUpdate, StreamState
from arbscanner.simulation.price_model import PriceModel
from arbscanner.telemetry.logger import ConnectionLogAdapter
from arbscanner.telemetry.metrics import MetricsCollector
from arbscanner.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


# Delivers one tick worth of updates to the connection
SendCallback = Callable[[list[PriceUpdate]], Awaitable[None]]


@dataclass
class ConnectionState:
    """Broadcast state owned by a single connection."""

    connection_id: str
    send: SendCallback
    period: float
    state: StreamState = StreamState.IDLE
    timer: asyncio.Task[None] | None = None
    last_prices: dict[tuple[str, str], float] = field(default_factory=dict)
    ticks: int = 0
    log: ConnectionLogAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.log = ConnectionLogAdapter(logger, self.connection_id)


class BroadcastScheduler:
    """
    Pushes partial price update batches to every open connection.

    Connections are independent: each has its own timer, period and
    price walk, and nothing is shared between them.
    """

    def __init__(
        self,
        price_model: PriceModel,
        exchanges: Sequence[str] = EXCHANGES,
        rng: random.Random | None = None,
        default_period: float = DEFAULT_UPDATE_PERIOD,
        min_period: float = MIN_UPDATE_PERIOD,
        max_period: float = MAX_UPDATE_PERIOD,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize scheduler.

        Args:
            price_model: Price walk and asset table.
            exchanges: Exchanges quoted for every asset (at least two).
            rng: Random source for asset/exchange selection.
            default_period: Seconds between ticks for new connections.
            min_period: Shortest period a client may request.
            max_period: Longest period a client may request.
            metrics: Optional collector for tick counters.
        """
        if len(set(exchanges)) < MIN_EXCHANGES_PER_UPDATE:
            raise ValueError(f"At least {MIN_EXCHANGES_PER_UPDATE} exchanges are required")

        self._price_model = price_model
        self._exchanges = list(exchanges)
        self._rng = rng or random.Random()
        self._default_period = default_period
        self._min_period = min_period
        self._max_period = max_period
        self._metrics = metrics
        self._connections: dict[str, ConnectionState] = {}

    @property
    def connection_count(self) -> int:
        """Get number of streaming connections."""
        return len(self._connections)

    def get(self, connection_id: str) -> ConnectionState | None:
        """Look up a connection's state."""
        return self._connections.get(connection_id)

    def open(self, connection_id: str, send: SendCallback) -> ConnectionState:
        """
        Register a connection and start streaming at the default period.

        Must be called from a running event loop.
        """
        if connection_id in self._connections:
            raise ScannerError(f"Connection {connection_id} is already open")

        state = ConnectionState(
            connection_id=connection_id,
            send=send,
            period=self._default_period,
        )
        self._connections[connection_id] = state
        self._start_timer(state)
        self._update_gauge()

        state.log.info(f"Streaming every {state.period:g}s")
        return state

    def validate_period(self, period: Any) -> float:
        """
        Coerce and bound-check a requested update period.

        Raises:
            InvalidQueryError: If the period is not a finite number
                within the configured bounds.
        """
        if isinstance(period, bool):
            raise InvalidQueryError(f"Invalid update period: {period!r}", "period")
        try:
            value = float(period)
        except (TypeError, ValueError):
            raise InvalidQueryError(f"Invalid update period: {period!r}", "period") from None

        if not math.isfinite(value) or not self._min_period <= value <= self._max_period:
            raise InvalidQueryError(
                f"Update period must be between {self._min_period:g} and "
                f"{self._max_period:g} seconds, got {period!r}",
                "period",
            )
        return value

    def set_period(self, connection_id: str, period: Any) -> float:
        """
        Change a connection's period, restarting its timer.

        Returns:
            The period now in effect.

        Raises:
            InvalidQueryError: If the period is rejected; the current
                timer keeps running.
            ScannerError: If the connection is not open.
        """
        value = self.validate_period(period)
        state = self._connections.get(connection_id)
        if state is None:
            raise ScannerError(f"Connection {connection_id} is not open")

        state.period = value
        self._start_timer(state)

        state.log.info(f"Update period changed to {value:g}s")
        return value

    def close(self, connection_id: str) -> bool:
        """
        Cancel the connection's timer and drop its state.

        Returns:
            True if the connection was open.
        """
        state = self._connections.pop(connection_id, None)
        if state is None:
            return False

        self._cancel_timer(state)
        state.state = StreamState.CLOSED
        state.last_prices.clear()
        self._update_gauge()

        state.log.info(f"Streaming stopped after {state.ticks} ticks")
        return True

    async def close_all(self) -> None:
        """Close every connection and wait for the timers to finish."""
        timers = [s.timer for s in self._connections.values() if s.timer is not None]
        for connection_id in list(self._connections):
            self.close(connection_id)
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    def tick(self, state: ConnectionState) -> list[PriceUpdate]:
        """
        Advance prices for a random subset of (coin, exchange) pairs.

        Picks ~UPDATE_ASSET_FRACTION of the assets (at least one) and for
        each 2-3 distinct exchanges, continuing the walk from the last
        price this connection has seen.
        """
        symbols = self._price_model.symbols
        coin_count = max(1, math.ceil(len(symbols) * UPDATE_ASSET_FRACTION))
        selected = self._rng.sample(symbols, min(coin_count, len(symbols)))

        now_ms = get_timestamp_ms()
        updates = []
        for coin in selected:
            exchange_count = min(
                self._rng.randint(MIN_EXCHANGES_PER_UPDATE, MAX_EXCHANGES_PER_UPDATE),
                len(self._exchanges),
            )
            for exchange in self._rng.sample(self._exchanges, exchange_count):
                key = (coin, exchange)
                current = state.last_prices.get(key)
                if current is None:
                    current = self._price_model.asset(coin).base_price

                new_price = self._price_model.next_price(coin, current)
                state.last_prices[key] = new_price
                updates.append(
                    PriceUpdate(
                        coin=coin,
                        exchange=exchange,
                        price=round(new_price, WIRE_PRICE_PRECISION),
                        timestamp_ms=now_ms,
                    )
                )

        state.ticks += 1
        return updates

    def _start_timer(self, state: ConnectionState) -> None:
        """Cancel any running timer, then start a fresh one."""
        self._cancel_timer(state)
        state.timer = asyncio.create_task(
            self._run(state), name=f"broadcast-{state.connection_id}"
        )
        state.state = StreamState.STREAMING

    def _cancel_timer(self, state: ConnectionState) -> None:
        timer = state.timer
        state.timer = None
        # A timer closing its own connection just returns
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _run(self, state: ConnectionState) -> None:
        """Timer loop: sleep one period, then push one batch."""
        while True:
            await asyncio.sleep(state.period)
            try:
                updates = self.tick(state)
            except Exception as e:
                state.log.error(f"Price tick failed, closing: {e}")
                self.close(state.connection_id)
                return

            try:
                await state.send(updates)
            except Exception as e:
                state.log.warning(f"Delivery failed, closing: {e}")
                self.close(state.connection_id)
                return

            if self._metrics:
                self._metrics.increment_counter("broadcast_ticks")
                self._metrics.increment_counter("price_updates_sent", len(updates))

    def _update_gauge(self) -> None:
        if self._metrics:
            self._metrics.set_gauge("connections", len(self._connections))
