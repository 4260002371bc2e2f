"""
Unit tests for the per-connection broadcast scheduler.

Tests timer lifecycle, period validation and tick contents.
"""

import asyncio
import math
import random

import pytest

from arbscanner.config.constants import ASSETS, EXCHANGES
from arbscanner.core.errors import InvalidQueryError, ScannerError, UnknownAssetError
from arbscanner.core.types import StreamState
from arbscanner.dashboard.broadcaster import BroadcastScheduler
from arbscanner.simulation.price_model import PriceModel
from arbscanner.telemetry.metrics import MetricsCollector
from tests.mocks.stream import RecordingSend


class BrokenPriceModel(PriceModel):
    """Price model whose walk rejects every coin."""

    def next_price(self, coin: str, current_price: float) -> float:
        raise UnknownAssetError(coin)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def scheduler(price_model: PriceModel, metrics: MetricsCollector) -> BroadcastScheduler:
    """Scheduler with fast periods."""
    return BroadcastScheduler(
        price_model,
        rng=random.Random(3),
        default_period=0.02,
        min_period=0.01,
        max_period=10.0,
        metrics=metrics,
    )


class TestLifecycle:
    """Tests for open, set_period and close."""

    def test_requires_two_exchanges(self, price_model: PriceModel) -> None:
        """Test that a single exchange is rejected."""
        with pytest.raises(ValueError):
            BroadcastScheduler(price_model, exchanges=["Binance"])

    @pytest.mark.asyncio
    async def test_open_starts_single_timer(self, scheduler: BroadcastScheduler) -> None:
        """Test that opening starts exactly one timer at the default period."""
        state = scheduler.open("c1", RecordingSend())

        assert state.state == StreamState.STREAMING
        assert state.period == 0.02
        assert state.timer is not None
        assert scheduler.connection_count == 1

        await scheduler.close_all()

    @pytest.mark.asyncio
    async def test_open_twice_rejected(self, scheduler: BroadcastScheduler) -> None:
        """Test that a connection id cannot be opened twice."""
        scheduler.open("c1", RecordingSend())

        with pytest.raises(ScannerError):
            scheduler.open("c1", RecordingSend())

        await scheduler.close_all()

    @pytest.mark.asyncio
    async def test_pushes_batches(self, scheduler: BroadcastScheduler) -> None:
        """Test that the timer delivers batches periodically."""
        send = RecordingSend()
        scheduler.open("c1", send)

        await send.wait_for_batches(3)

        assert all(batch for batch in send.batches)
        await scheduler.close_all()

    @pytest.mark.asyncio
    async def test_set_period_replaces_timer(self, scheduler: BroadcastScheduler) -> None:
        """Test that a period change cancels the old timer and starts one new timer."""
        state = scheduler.open("c1", RecordingSend())
        old_timer = state.timer

        assert scheduler.set_period("c1", 0.5) == 0.5
        await asyncio.sleep(0.01)

        assert old_timer is not None and old_timer.cancelled()
        assert state.timer is not old_timer
        assert state.timer is not None and not state.timer.done()
        assert state.period == 0.5

        await scheduler.close_all()

    @pytest.mark.asyncio
    async def test_set_period_accepts_numeric_string(self, scheduler: BroadcastScheduler) -> None:
        """Test that a numeric string period is coerced."""
        scheduler.open("c1", RecordingSend())

        assert scheduler.set_period("c1", "2") == 2.0

        await scheduler.close_all()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("period", [0, -1, "abc", None, True, math.inf, math.nan, 11.0])
    async def test_invalid_period_keeps_timer(
        self, scheduler: BroadcastScheduler, period: object
    ) -> None:
        """Test that a rejected period leaves the current timer running."""
        state = scheduler.open("c1", RecordingSend())
        timer = state.timer

        with pytest.raises(InvalidQueryError):
            scheduler.set_period("c1", period)

        assert state.timer is timer
        assert state.period == 0.02
        await scheduler.close_all()

    def test_set_period_unknown_connection(self, scheduler: BroadcastScheduler) -> None:
        """Test that changing the period of a closed connection fails."""
        with pytest.raises(ScannerError):
            scheduler.set_period("missing", 1.0)

    @pytest.mark.asyncio
    async def test_close_cancels_timer(self, scheduler: BroadcastScheduler) -> None:
        """Test that closing stops the timer and drops the state."""
        send = RecordingSend()
        state = scheduler.open("c1", send)
        timer = state.timer

        assert scheduler.close("c1") is True
        await asyncio.sleep(0.06)

        assert timer is not None and timer.cancelled()
        assert state.state == StreamState.CLOSED
        assert state.last_prices == {}
        assert scheduler.get("c1") is None
        assert scheduler.close("c1") is False

    @pytest.mark.asyncio
    async def test_send_failure_closes_connection(self, scheduler: BroadcastScheduler) -> None:
        """Test that a failed delivery cleans up like close."""
        send = RecordingSend()
        send.fail = True
        state = scheduler.open("c1", send)

        assert state.timer is not None
        await asyncio.wait_for(state.timer, timeout=1.0)

        assert scheduler.get("c1") is None
        assert state.state == StreamState.CLOSED
        assert scheduler.connection_count == 0

    @pytest.mark.asyncio
    async def test_tick_failure_closes_connection(self, metrics: MetricsCollector) -> None:
        """Test that a failing price walk cleans up like close."""
        scheduler = BroadcastScheduler(
            BrokenPriceModel(),
            rng=random.Random(3),
            default_period=0.01,
            min_period=0.01,
            metrics=metrics,
        )
        send = RecordingSend()
        state = scheduler.open("c1", send)

        assert state.timer is not None
        await asyncio.wait_for(state.timer, timeout=1.0)

        assert scheduler.get("c1") is None
        assert state.state == StreamState.CLOSED
        assert send.batches == []
        assert metrics.get_gauge("connections") == 0

    @pytest.mark.asyncio
    async def test_connections_are_independent(self, scheduler: BroadcastScheduler) -> None:
        """Test that closing one connection leaves another streaming."""
        send_a, send_b = RecordingSend(), RecordingSend()
        scheduler.open("a", send_a)
        scheduler.open("b", send_b)

        scheduler.close("a")
        count_a = len(send_a.batches)
        await send_b.wait_for_batches(2)

        assert len(send_a.batches) == count_a
        await scheduler.close_all()

    @pytest.mark.asyncio
    async def test_metrics(
        self, scheduler: BroadcastScheduler, metrics: MetricsCollector
    ) -> None:
        """Test tick counters and the connection gauge."""
        send = RecordingSend()
        scheduler.open("c1", send)
        assert metrics.get_gauge("connections") == 1

        await send.wait_for_batches(2)
        await scheduler.close_all()

        assert metrics.get_counter("broadcast_ticks") >= 2
        assert metrics.get_counter("price_updates_sent") >= 2
        assert metrics.get_gauge("connections") == 0


class TestTick:
    """Tests for the contents of one tick."""

    @pytest.mark.asyncio
    async def test_tick_selection(self, scheduler: BroadcastScheduler) -> None:
        """Test ceil(20%) of assets and 2-3 distinct exchanges each."""
        state = scheduler.open("c1", RecordingSend())
        await scheduler.close_all()

        for _ in range(50):
            updates = scheduler.tick(state)
            coins = {u.coin for u in updates}
            assert len(coins) == math.ceil(len(ASSETS) * 0.2)

            for coin in coins:
                exchanges = [u.exchange for u in updates if u.coin == coin]
                assert 2 <= len(exchanges) <= 3
                assert len(set(exchanges)) == len(exchanges)
                assert set(exchanges) <= set(EXCHANGES)

    @pytest.mark.asyncio
    async def test_tick_continues_walk(
        self, scheduler: BroadcastScheduler, price_model: PriceModel
    ) -> None:
        """Test that prices stay in band and the last-price table is kept."""
        state = scheduler.open("c1", RecordingSend())
        await scheduler.close_all()

        for _ in range(200):
            for update in scheduler.tick(state):
                lower, upper = price_model.bounds(update.coin)
                assert lower - 1e-12 <= update.price <= upper + 1e-12
                assert state.last_prices[(update.coin, update.exchange)] == pytest.approx(
                    update.price
                )
        assert state.ticks == 200
