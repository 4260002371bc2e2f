"""
Async HTTP client for the scanner API.

Implements the opportunity fetcher and ledger collaborators used by
the reconciliation store:
- Single pooled aiohttp session with keep-alive
- orjson for request and response bodies
- Network failures and non-2xx replies raised as TransportError
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
import orjson

from arbscanner.config.constants import (
    ENDPOINT_BALANCES,
    ENDPOINT_DASHBOARD,
    ENDPOINT_DASHBOARD_RESET,
    ENDPOINT_DEALS,
    ENDPOINT_SCANNER,
    HTTP_TIMEOUT,
)
from arbscanner.core.errors import DataInconsistencyError, TransportError
from arbscanner.core.types import Balances, Deal, FilterSpec, LedgerAck, QueryResult, SortSpec
from arbscanner.dashboard.schemas import (
    DashboardResponse,
    DealAckResponse,
    DealModel,
    ScannerResponse,
)


# FilterSpec attribute -> query parameter
_BOUND_PARAMS: tuple[tuple[str, str], ...] = (
    ("min_volume", "minVolume"),
    ("max_volume", "maxVolume"),
    ("min_profit", "minProfit"),
    ("max_profit", "maxProfit"),
    ("min_spread", "minSpread"),
    ("max_spread", "maxSpread"),
    ("min_commission", "minCommission"),
    ("max_commission", "maxCommission"),
)


def build_query_params(
    filters: FilterSpec,
    sort: SortSpec,
    page: int,
    limit: int,
) -> list[tuple[str, str]]:
    """
    Encode a query as URL parameters.

    Unset bounds are omitted; allow-lists become repeated keys.
    """
    params: list[tuple[str, str]] = [
        ("page", str(page)),
        ("limit", str(limit)),
        ("sort", sort.field),
        ("direction", sort.direction.value),
    ]
    for attr, name in _BOUND_PARAMS:
        value = getattr(filters, attr)
        if value is not None:
            params.append((name, repr(float(value))))

    for name, values in (
        ("buyExchanges", filters.buy_exchanges),
        ("sellExchanges", filters.sell_exchanges),
        ("currencies", filters.currencies),
    ):
        params.extend((name, v) for v in sorted(values))
    return params


class ScannerClient:
    """
    HTTP client for the scanner and ledger endpoints.

    Usable as an async context manager; the session is created lazily
    and closed on exit.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Server URL without trailing slash.
            timeout: Total timeout per request in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                json_serialize=lambda x: orjson.dumps(x).decode(),
            )
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "ScannerClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Context manager for making requests."""
        session = await self._get_session()
        try:
            yield session
        except aiohttp.ClientError as e:
            raise TransportError(f"Network error: {e}") from e
        except TimeoutError as e:
            raise TransportError("Request timed out") from e

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: list[tuple[str, str]] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an API request.

        Returns:
            Parsed JSON response.

        Raises:
            DataInconsistencyError: On a 409 reply.
            TransportError: On network errors or any other error reply.
        """
        url = f"{self._base_url}{endpoint}"
        async with self._request_context() as session:
            async with session.request(method, url, params=params, json=body) as response:
                return await self._handle_response(response)

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Any:
        """Parse and validate response."""
        text = await response.text()

        try:
            data = orjson.loads(text) if text else None
        except orjson.JSONDecodeError as e:
            raise TransportError(f"Invalid JSON response: {e}", response.status) from e

        if response.status >= 400:
            message = data.get("error", text) if isinstance(data, dict) else text
            if response.status == 409:
                raise DataInconsistencyError(message)
            raise TransportError(f"API error {response.status}: {message}", response.status)

        return data

    # =========================================================================
    # Opportunities
    # =========================================================================

    async def fetch_opportunities(
        self,
        filters: FilterSpec,
        sort: SortSpec,
        page: int,
        limit: int,
    ) -> QueryResult:
        """Fetch one page of opportunities."""
        params = build_query_params(filters, sort, page, limit)
        data = await self._request("GET", ENDPOINT_SCANNER, params=params)
        return ScannerResponse.model_validate(data).to_result()

    # =========================================================================
    # Ledger
    # =========================================================================

    async def submit_deal(self, deal: Deal) -> LedgerAck:
        """Submit a deal for settlement."""
        body = DealModel.from_deal(deal).model_dump(by_alias=True, mode="json")
        data = await self._request("POST", ENDPOINT_DEALS, body=body)
        return DealAckResponse.model_validate(data).to_ack()

    async def get_deals(self) -> list[Deal]:
        data = await self._request("GET", ENDPOINT_DEALS)
        return [DealModel.model_validate(d).to_deal() for d in data]

    async def get_balances(self) -> Balances:
        data = await self._request("GET", ENDPOINT_BALANCES)
        return {exchange: dict(amounts) for exchange, amounts in data.items()}

    async def get_dashboard(self) -> DashboardResponse:
        data = await self._request("GET", ENDPOINT_DASHBOARD)
        return DashboardResponse.model_validate(data)

    async def reset_dashboard(self) -> None:
        await self._request("POST", ENDPOINT_DASHBOARD_RESET)
