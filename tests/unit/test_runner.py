"""
Unit tests for the console watcher helpers.
"""

import pytest

from arbscanner.client.runner import build_store, format_report
from arbscanner.client.store import ReconciliationStore
from arbscanner.config.settings import Settings
from arbscanner.core.types import PriceUpdate
from tests.mocks.scanner import MockScannerClient


class TestRunner:
    """Tests for build_store and format_report."""

    def test_build_store_uses_watch_filter(
        self, settings: Settings, mock_client: MockScannerClient
    ) -> None:
        """Test that the watcher filter comes from settings."""
        store = build_store(settings, mock_client)  # type: ignore[arg-type]

        assert store.filters.min_volume == settings.watch_min_volume
        assert store.filters.max_volume == settings.watch_max_volume
        assert store.filters.min_profit == settings.watch_min_profit

    @pytest.mark.asyncio
    async def test_format_report(self, mock_client: MockScannerClient) -> None:
        """Test the summary line for a loaded working set."""
        store = ReconciliationStore(mock_client, mock_client)
        await store.refresh()

        line = format_report(store)

        assert line.startswith("shown=3 total=3 avg_spread=1.17%")
        assert "best ETH Binance->Bybit spread=2.00%" in line
        assert "drift=0 refetch_failures=0" in line
        assert not line.endswith("(stale)")

    @pytest.mark.asyncio
    async def test_format_report_stale(self, mock_client: MockScannerClient) -> None:
        """Test that a stale view is flagged."""
        store = ReconciliationStore(mock_client, mock_client)
        await store.refresh()

        store.apply_updates([PriceUpdate("ETH", "Binance", 2600.0, 1704067200000)])

        line = format_report(store)
        assert "drift=1" in line
        assert line.endswith("(stale)")
        await store.wait_for_refetch()

    @pytest.mark.asyncio
    async def test_format_report_balance_deltas(self, mock_client: MockScannerClient) -> None:
        """Test that moved balances since the session snapshot are listed."""
        store = ReconciliationStore(mock_client, mock_client)
        await store.refresh()
        await store.load_balances()
        assert "balances" not in format_report(store)

        mock_client.balances["Binance"]["USDT"] -= 100.0
        mock_client.balances["Bybit"]["USDT"] += 104.5
        await store.load_balances()

        line = format_report(store)
        assert "| balances Binance USDT=-100.00, Bybit USDT=+104.50" in line
        assert "ETH" not in line.split("| balances")[1]
