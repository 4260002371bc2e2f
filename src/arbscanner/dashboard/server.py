"""
FastAPI server for the arbitrage scanner.

Serves the opportunity query endpoint, the deal ledger and the live
price WebSocket. All mutable state (generator, ledger, broadcast
scheduler, metrics) is created by create_app and owned by the app
instance; there are no module-level singletons.
"""

import logging
import random
import uuid
from contextlib import asynccontextmanager
from typing import Annotated, Any

import orjson
from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from arbscanner import __version__
from arbscanner.config.constants import (
    DEFAULT_PAGE,
    DEFAULT_SORT_DIRECTION,
    DEFAULT_SORT_FIELD,
    ENDPOINT_BALANCES,
    ENDPOINT_DASHBOARD,
    ENDPOINT_DASHBOARD_RESET,
    ENDPOINT_DEALS,
    ENDPOINT_METRICS,
    ENDPOINT_SCANNER,
    ENDPOINT_WS,
    MESSAGE_ERROR,
    MESSAGE_SET_UPDATE_PERIOD,
    MESSAGE_UPDATE_PERIOD,
)
from arbscanner.config.settings import Settings, get_settings
from arbscanner.core.errors import DataInconsistencyError, InvalidQueryError
from arbscanner.core.types import FilterSpec, PriceUpdate, SortDirection, SortSpec
from arbscanner.dashboard.broadcaster import BroadcastScheduler
from arbscanner.dashboard.schemas import (
    DashboardResponse,
    DealAckResponse,
    DealModel,
    ErrorResponse,
    PortfolioMetricsModel,
    PriceUpdatesMessage,
    ProfitPointModel,
    ScannerResponse,
    SetUpdatePeriodMessage,
)
from arbscanner.execution.ledger import Ledger
from arbscanner.simulation.generator import OpportunityGenerator
from arbscanner.simulation.price_model import PriceModel
from arbscanner.strategy.query import query, validate_query
from arbscanner.telemetry.logger import ConnectionLogAdapter, setup_logging
from arbscanner.telemetry.metrics import MetricsCollector
from arbscanner.utils.time import LatencyTimer


logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    ledger: Ledger | None = None,
) -> FastAPI:
    """
    Build the API application and the state it owns.

    Args:
        settings: Configuration (default: cached environment settings).
        ledger: Ledger to serve (default: a fresh one).
    """
    settings = settings or get_settings()
    rng = random.Random(settings.random_seed)
    price_model = PriceModel(rng=rng)
    metrics = MetricsCollector()
    broadcaster = BroadcastScheduler(
        price_model,
        rng=rng,
        default_period=settings.default_update_period,
        min_period=settings.min_update_period,
        max_period=settings.max_update_period,
        metrics=metrics,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
        logger.info(f"Scanner API v{__version__} ready")
        yield
        await broadcaster.close_all()

    app = FastAPI(title="Arbitrage Scanner", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.price_model = price_model
    app.state.generator = OpportunityGenerator(price_model, rng=rng)
    app.state.ledger = ledger or Ledger(initial_quote_balance=settings.initial_quote_balance)
    app.state.broadcaster = broadcaster
    app.state.metrics = metrics

    app.add_exception_handler(InvalidQueryError, invalid_query_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DataInconsistencyError, data_inconsistency_handler)  # type: ignore[arg-type]

    app.get(ENDPOINT_SCANNER, response_model=ScannerResponse)(get_scanner)
    app.get(ENDPOINT_DEALS, response_model=list[DealModel])(list_deals)
    app.post(ENDPOINT_DEALS, response_model=DealAckResponse)(submit_deal)
    app.get(ENDPOINT_BALANCES)(get_balances)
    app.get(ENDPOINT_DASHBOARD, response_model=DashboardResponse)(get_dashboard)
    app.post(ENDPOINT_DASHBOARD_RESET)(reset_dashboard)
    app.get(ENDPOINT_METRICS)(get_metrics)
    app.websocket(ENDPOINT_WS)(websocket_endpoint)
    return app


# =============================================================================
# Error Handlers
# =============================================================================


async def invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
    request.app.state.metrics.increment_counter("rejected_queries")
    body = ErrorResponse(error=str(exc), param=exc.param)
    return JSONResponse(status_code=400, content=body.model_dump())


async def data_inconsistency_handler(
    request: Request, exc: DataInconsistencyError
) -> JSONResponse:
    logger.error(f"Data inconsistency on {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content=ErrorResponse(error=str(exc)).model_dump())


# =============================================================================
# Query Endpoint
# =============================================================================


async def get_scanner(
    request: Request,
    page: int = DEFAULT_PAGE,
    limit: int | None = None,
    min_volume: Annotated[float | None, Query(alias="minVolume")] = None,
    max_volume: Annotated[float | None, Query(alias="maxVolume")] = None,
    min_profit: Annotated[float | None, Query(alias="minProfit")] = None,
    max_profit: Annotated[float | None, Query(alias="maxProfit")] = None,
    min_spread: Annotated[float | None, Query(alias="minSpread")] = None,
    spread: float | None = None,
    max_spread: Annotated[float | None, Query(alias="maxSpread")] = None,
    min_commission: Annotated[float | None, Query(alias="minCommission")] = None,
    max_commission: Annotated[float | None, Query(alias="maxCommission")] = None,
    buy_exchanges: Annotated[list[str] | None, Query(alias="buyExchanges")] = None,
    sell_exchanges: Annotated[list[str] | None, Query(alias="sellExchanges")] = None,
    currencies: Annotated[list[str] | None, Query()] = None,
    sort: str = DEFAULT_SORT_FIELD,
    direction: str = DEFAULT_SORT_DIRECTION,
) -> ScannerResponse:
    state = request.app.state
    settings: Settings = state.settings
    limit = settings.default_page_limit if limit is None else limit

    filters = FilterSpec(
        min_volume=min_volume,
        max_volume=max_volume,
        min_profit=min_profit,
        max_profit=max_profit,
        # `spread` is the legacy name of minSpread
        min_spread=min_spread if min_spread is not None else spread,
        max_spread=max_spread,
        min_commission=min_commission,
        max_commission=max_commission,
        buy_exchanges=frozenset(buy_exchanges or ()),
        sell_exchanges=frozenset(sell_exchanges or ()),
        currencies=frozenset(currencies or ()),
    )
    try:
        sort_spec = SortSpec(field=sort, direction=SortDirection(direction.lower()))
    except ValueError:
        raise InvalidQueryError(f"Invalid sort direction: {direction}", "direction") from None

    # Reject bad input before generating anything
    validate_query(filters, sort_spec, page, limit, max_limit=settings.max_page_limit)

    with LatencyTimer() as timer:
        batch = state.generator.generate(settings.batch_size)
        result = query(batch, filters, sort_spec, page, limit)

    state.metrics.increment_counter("queries")
    state.metrics.record_latency("query", timer.latency_us)
    return ScannerResponse.from_result(result)


# =============================================================================
# Ledger Endpoints
# =============================================================================


async def submit_deal(request: Request, deal: DealModel) -> DealAckResponse:
    ack = request.app.state.ledger.submit(deal.to_deal())
    request.app.state.metrics.increment_counter(
        "deals_completed" if ack.success else "deals_failed"
    )
    return DealAckResponse.from_ack(ack)


async def list_deals(request: Request) -> list[DealModel]:
    return [DealModel.from_deal(d) for d in request.app.state.ledger.deals]


async def get_balances(request: Request) -> dict[str, dict[str, float]]:
    return request.app.state.ledger.balances()


async def get_dashboard(request: Request) -> DashboardResponse:
    ledger: Ledger = request.app.state.ledger
    return DashboardResponse(
        metrics=PortfolioMetricsModel.from_metrics(ledger.metrics()),
        profit_chart=[ProfitPointModel.from_point(p) for p in ledger.profit_chart()],
        recent_deals=[DealModel.from_deal(d) for d in ledger.recent_deals()],
        balances=ledger.balances(),
    )


async def reset_dashboard(request: Request) -> dict[str, Any]:
    request.app.state.ledger.reset()
    return {"success": True, "message": "Dashboard state has been reset"}


async def get_metrics(request: Request) -> dict[str, object]:
    return request.app.state.metrics.to_dict()


# =============================================================================
# Live Price Stream
# =============================================================================


async def _send_json(websocket: WebSocket, message: dict[str, Any]) -> None:
    await websocket.send_text(orjson.dumps(message).decode())


async def _handle_control_message(
    websocket: WebSocket,
    broadcaster: BroadcastScheduler,
    connection_id: str,
    raw: str,
    log: ConnectionLogAdapter,
) -> None:
    """Apply one client control message, replying with the outcome."""
    try:
        msg = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        log.warning(f"Invalid JSON: {e}")
        await _send_json(websocket, {"type": MESSAGE_ERROR, "data": {"message": "Invalid JSON"}})
        return

    if not isinstance(msg, dict) or msg.get("type") != MESSAGE_SET_UPDATE_PERIOD:
        msg_type = msg.get("type") if isinstance(msg, dict) else None
        await _send_json(
            websocket,
            {"type": MESSAGE_ERROR, "data": {"message": f"Unknown message type: {msg_type}"}},
        )
        return

    try:
        control = SetUpdatePeriodMessage.model_validate(msg)
        period = broadcaster.set_period(connection_id, control.period)
    except (InvalidQueryError, ValueError) as e:
        log.warning(f"Rejected period change: {e}")
        await _send_json(websocket, {"type": MESSAGE_ERROR, "data": {"message": str(e)}})
        return

    await _send_json(websocket, {"type": MESSAGE_UPDATE_PERIOD, "data": {"period": period}})


async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    broadcaster: BroadcastScheduler = websocket.app.state.broadcaster
    connection_id = uuid.uuid4().hex[:8]
    log = ConnectionLogAdapter(logger, connection_id)

    async def send_updates(updates: list[PriceUpdate]) -> None:
        message = PriceUpdatesMessage.from_updates(updates).model_dump(by_alias=True)
        await _send_json(websocket, message)

    broadcaster.open(connection_id, send_updates)
    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_control_message(websocket, broadcaster, connection_id, raw, log)
    except WebSocketDisconnect:
        log.info("Client disconnected")
    finally:
        # Errors and disconnects release the timer the same way
        broadcaster.close(connection_id)


def main(loop: str = "auto") -> None:
    """
    Run the API server with uvicorn.

    Args:
        loop: uvicorn event loop ("auto", "asyncio" or "uvloop").
    """
    import uvicorn

    settings = get_settings()
    async_logger = setup_logging(settings.log_level, settings.log_file)
    try:
        uvicorn.run(
            "arbscanner.dashboard.server:create_app",
            factory=True,
            loop=loop,
            host=settings.host,
            port=settings.port,
            reload=False,
            log_level="warning",
            log_config=None,
        )
    finally:
        async_logger.stop()
