"""
Integration tests for ScannerClient against the real API app.

Requests are routed through FastAPI's TestClient instead of a socket;
response handling is the client's own.
"""

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from arbscanner.client.http import ScannerClient
from arbscanner.config.settings import Settings
from arbscanner.core.errors import DataInconsistencyError
from arbscanner.core.types import DealStatus, FilterSpec, SortSpec
from arbscanner.dashboard.server import create_app
from arbscanner.execution.deals import create_deal
from tests.mocks.opportunities import make_opportunity
from tests.mocks.scanner import FakeResponse


class AppScannerClient(ScannerClient):
    """ScannerClient whose transport is an in-process TestClient."""

    def __init__(self, test_client: TestClient) -> None:
        super().__init__("http://testserver")
        self._test_client = test_client

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: list[tuple[str, str]] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        response = self._test_client.request(method, endpoint, params=params, json=body)
        return await self._handle_response(FakeResponse(response.status_code, response.text))  # type: ignore[arg-type]


@pytest.fixture
def api(settings: Settings) -> Iterator[AppScannerClient]:
    with TestClient(create_app(settings)) as test_client:
        yield AppScannerClient(test_client)


class TestScannerClientEndpoints:
    """Tests for every ScannerClient call against the server."""

    @pytest.mark.asyncio
    async def test_fetch_opportunities(self, api: AppScannerClient) -> None:
        """Test that a page decodes into a QueryResult."""
        result = await api.fetch_opportunities(FilterSpec(), SortSpec(), 1, 10)

        assert len(result.results) == 10
        assert result.pagination.limit == 10
        assert result.pagination.total == result.summary.total_opportunities

    @pytest.mark.asyncio
    async def test_deal_history_and_dashboard(self, api: AppScannerClient) -> None:
        """Test submit, history and dashboard round through the ledger."""
        ack = await api.submit_deal(create_deal(make_opportunity()))
        assert ack.success
        assert ack.deal is not None and ack.deal.status == DealStatus.COMPLETED

        deals = await api.get_deals()
        assert len(deals) == 1
        assert deals[0].opportunity_id == 1

        dashboard = await api.get_dashboard()
        assert dashboard.metrics.total_deals == 1
        assert dashboard.recent_deals[0].opportunity_id == 1
        assert "Binance" in dashboard.balances

    @pytest.mark.asyncio
    async def test_reset_dashboard(self, api: AppScannerClient) -> None:
        """Test that a reset clears history and restores balances."""
        initial = await api.get_balances()
        await api.submit_deal(create_deal(make_opportunity()))

        await api.reset_dashboard()

        assert await api.get_deals() == []
        assert await api.get_balances() == initial
        dashboard = await api.get_dashboard()
        assert dashboard.metrics.total_deals == 0

    @pytest.mark.asyncio
    async def test_unknown_coin_conflict(self, api: AppScannerClient) -> None:
        """Test that a 409 from the ledger surfaces as DataInconsistencyError."""
        with pytest.raises(DataInconsistencyError, match="NOPE"):
            await api.submit_deal(create_deal(make_opportunity(coin="NOPE")))
