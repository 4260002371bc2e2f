"""
Unit tests for the in-memory deal ledger.

Tests settlement, funds checks, portfolio metrics and reset.
"""

from dataclasses import replace
from datetime import UTC, datetime

import pytest

from arbscanner.core.errors import DataInconsistencyError, UnknownAssetError
from arbscanner.core.types import Deal, DealStatus, Opportunity
from arbscanner.execution.deals import create_deal
from arbscanner.execution.ledger import Ledger
from tests.mocks.opportunities import make_opportunity


NOW = datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


def deal_at(executed_at: str, **overrides: object) -> Deal:
    """Pending ETH deal (volume 1000, gross 10, commission 2) executed at a given time."""
    deal = create_deal(make_opportunity(), executed_at=executed_at)
    return replace(deal, **overrides) if overrides else deal


class TestSubmit:
    """Tests for deal settlement."""

    def test_completed_deal(self, ledger: Ledger, eth_opportunity: Opportunity) -> None:
        """Test that a funded deal completes and is recorded."""
        ack = ledger.submit(create_deal(eth_opportunity))

        assert ack.success
        assert ack.deal is not None
        assert ack.deal.status == DealStatus.COMPLETED
        assert len(ledger.deals) == 1

    def test_balances_move(self, ledger: Ledger, eth_opportunity: Opportunity) -> None:
        """Test the buy and sell legs and that net quote change equals net profit."""
        before = ledger.balances()
        deal = create_deal(eth_opportunity)

        ledger.submit(deal)
        after = ledger.balances()

        units = deal.volume / deal.buy_price
        assert after["Binance"]["ETH"] == pytest.approx(before["Binance"]["ETH"] + units)
        assert after["Bybit"]["ETH"] == pytest.approx(before["Bybit"]["ETH"] - units)

        quote_change = sum(after[ex]["USDT"] - before[ex]["USDT"] for ex in after)
        assert quote_change == pytest.approx(deal.profit, abs=0.01)

    def test_other_exchanges_untouched(
        self, ledger: Ledger, eth_opportunity: Opportunity
    ) -> None:
        """Test that only the two deal exchanges change."""
        before = ledger.balances()

        ledger.submit(create_deal(eth_opportunity))
        after = ledger.balances()

        assert after["OKX"] == before["OKX"]

    def test_insufficient_quote(self, eth_opportunity: Opportunity) -> None:
        """Test that an unfunded buy leg fails without moving balances."""
        ledger = Ledger(initial_quote_balance=100.0)
        before = ledger.balances()

        ack = ledger.submit(create_deal(eth_opportunity))

        assert not ack.success
        assert ack.deal is not None and ack.deal.status == DealStatus.FAILED
        assert "USDT" in ack.message
        assert ledger.balances() == before
        assert ledger.deals[0].status == DealStatus.FAILED

    def test_insufficient_inventory(self, ledger: Ledger) -> None:
        """Test that selling more units than held fails."""
        large = make_opportunity(volume=500_000.0)

        ack = ledger.submit(create_deal(large))

        assert not ack.success
        assert ack.message == "Insufficient ETH on Bybit"

    def test_unknown_exchange(self, ledger: Ledger) -> None:
        """Test that an exchange outside the table is rejected."""
        deal = replace(create_deal(make_opportunity()), sell_exchange="Nowhere")

        ack = ledger.submit(deal)

        assert not ack.success
        assert "Nowhere" in ack.message

    def test_unknown_coin(self, ledger: Ledger) -> None:
        """Test that an unconfigured coin is a data inconsistency."""
        deal = replace(create_deal(make_opportunity()), coin="NOPE")

        with pytest.raises(UnknownAssetError) as exc_info:
            ledger.submit(deal)

        assert isinstance(exc_info.value, DataInconsistencyError)
        assert ledger.deals == []


class TestMetrics:
    """Tests for portfolio metrics."""

    def test_empty_history(self, ledger: Ledger) -> None:
        """Test that metrics over no deals are zero."""
        metrics = ledger.metrics(now=NOW)

        assert metrics.total_deals == 0
        assert metrics.success_rate == 0.0
        assert metrics.avg_spread == 0.0

    def test_counts_and_totals(self, ledger: Ledger) -> None:
        """Test profit, commission and success rate over mixed results."""
        ledger.submit(deal_at("2024-01-10T08:00:00.000Z"))
        ledger.submit(deal_at("2024-01-09T08:00:00.000Z"))
        ledger.submit(deal_at("2024-01-10T09:00:00.000Z", buy_exchange="Nowhere"))

        metrics = ledger.metrics(now=NOW)

        assert metrics.total_deals == 3
        assert metrics.completed_deals == 2
        assert metrics.failed_deals == 1
        assert metrics.success_rate == pytest.approx(66.67)
        assert metrics.total_profit == pytest.approx(16.0)
        assert metrics.total_commission == pytest.approx(4.0)
        assert metrics.avg_spread == pytest.approx(1.0)

    def test_daily_and_24h_windows(self, ledger: Ledger) -> None:
        """Test that daily profit is today only and volume covers 24 hours."""
        ledger.submit(deal_at("2024-01-10T08:00:00.000Z"))
        ledger.submit(deal_at("2024-01-09T20:00:00.000Z"))
        ledger.submit(deal_at("2024-01-08T08:00:00.000Z"))

        metrics = ledger.metrics(now=NOW)

        assert metrics.daily_profit == pytest.approx(8.0)
        assert metrics.volume_24h == pytest.approx(2000.0)


class TestHistory:
    """Tests for the profit chart and recent deals."""

    def test_profit_chart(self, ledger: Ledger) -> None:
        """Test seven daily points, oldest first, with empty days at zero."""
        ledger.submit(deal_at("2024-01-10T08:00:00.000Z"))
        ledger.submit(deal_at("2024-01-10T10:00:00.000Z"))
        ledger.submit(deal_at("2024-01-05T10:00:00.000Z"))
        ledger.submit(deal_at("2023-12-01T10:00:00.000Z"))

        chart = ledger.profit_chart(now=NOW)

        assert [p.date for p in chart] == [f"2024-01-{day:02d}" for day in range(4, 11)]
        assert chart[-1].value == pytest.approx(16.0)
        assert chart[1].value == pytest.approx(8.0)
        assert chart[0].value == 0.0

    def test_recent_deals_newest_first(self, ledger: Ledger) -> None:
        """Test ordering and limit of recent deals."""
        for hour in range(5):
            ledger.submit(deal_at(f"2024-01-10T0{hour}:00:00.000Z", opportunity_id=hour))

        recent = ledger.recent_deals(limit=3)

        assert [d.opportunity_id for d in recent] == [4, 3, 2]
        assert ledger.recent_deals(limit=0) == []


class TestReset:
    """Tests for ledger reset."""

    def test_reset_restores_state(self, ledger: Ledger, eth_opportunity: Opportunity) -> None:
        """Test that reset drops history and restores balances."""
        initial = ledger.balances()
        ledger.submit(create_deal(eth_opportunity))

        ledger.reset()

        assert ledger.deals == []
        assert ledger.balances() == initial
        assert ledger.metrics(now=NOW).total_deals == 0

    def test_balances_returns_copy(self, ledger: Ledger) -> None:
        """Test that callers cannot mutate the ledger through balances()."""
        ledger.balances()["Binance"]["USDT"] = 0.0

        assert ledger.balances()["Binance"]["USDT"] == 1_000_000.0
