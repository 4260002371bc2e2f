"""
Pydantic models for the HTTP and WebSocket wire formats.

The wire uses camelCase keys; the core dataclasses use snake_case.
Every model converts to and from its core counterpart so the server
and the client share one definition of the format.
"""

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

from arbscanner.config.constants import MESSAGE_PRICE_UPDATES, MESSAGE_SET_UPDATE_PERIOD
from arbscanner.core.types import (
    Deal,
    DealStatus,
    LedgerAck,
    Opportunity,
    Pagination,
    PriceUpdate,
    QueryResult,
    Summary,
)
from arbscanner.execution.ledger import PortfolioMetrics, ProfitPoint
from arbscanner.utils.time import iso_to_datetime


class OpportunityModel(BaseModel):
    """Opportunity as served by /api/scanner."""

    id: int
    coin: str
    buy_exchange: str = Field(alias="buyExchange")
    sell_exchange: str = Field(alias="sellExchange")
    buy_price: float = Field(alias="buyPrice")
    sell_price: float = Field(alias="sellPrice")
    volume: float
    spread: float
    profit: float
    last_update: str = Field(alias="lastUpdate")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_opportunity(cls, opportunity: Opportunity) -> "OpportunityModel":
        return cls(
            id=opportunity.id,
            coin=opportunity.coin,
            buy_exchange=opportunity.buy_exchange,
            sell_exchange=opportunity.sell_exchange,
            buy_price=opportunity.buy_price,
            sell_price=opportunity.sell_price,
            volume=opportunity.volume,
            spread=opportunity.spread,
            profit=opportunity.profit,
            last_update=opportunity.last_update,
        )

    def to_opportunity(self) -> Opportunity:
        return Opportunity(
            id=self.id,
            coin=self.coin,
            buy_exchange=self.buy_exchange,
            sell_exchange=self.sell_exchange,
            buy_price=self.buy_price,
            sell_price=self.sell_price,
            volume=self.volume,
            spread=self.spread,
            profit=self.profit,
            last_update=self.last_update,
        )


class SummaryModel(BaseModel):
    """Aggregate statistics over the filtered set."""

    total_opportunities: int = Field(alias="totalOpportunities")
    avg_spread: float = Field(alias="avgSpread")
    total_volume: float = Field(alias="totalVolume")
    last_update_time: str = Field(alias="lastUpdateTime")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_summary(cls, summary: Summary) -> "SummaryModel":
        return cls(
            total_opportunities=summary.total_opportunities,
            avg_spread=summary.avg_spread,
            total_volume=summary.total_volume,
            last_update_time=summary.last_update_time,
        )

    def to_summary(self) -> Summary:
        return Summary(
            total_opportunities=self.total_opportunities,
            avg_spread=self.avg_spread,
            total_volume=self.total_volume,
            last_update_time=self.last_update_time,
        )


class PaginationModel(BaseModel):
    """Offset pagination metadata."""

    page: int
    limit: int
    total: int


class ScannerResponse(BaseModel):
    """Response of GET /api/scanner."""

    results: list[OpportunityModel]
    summary: SummaryModel
    pagination: PaginationModel

    @classmethod
    def from_result(cls, result: QueryResult) -> "ScannerResponse":
        return cls(
            results=[OpportunityModel.from_opportunity(o) for o in result.results],
            summary=SummaryModel.from_summary(result.summary),
            pagination=PaginationModel(
                page=result.pagination.page,
                limit=result.pagination.limit,
                total=result.pagination.total,
            ),
        )

    def to_result(self) -> QueryResult:
        return QueryResult(
            results=[o.to_opportunity() for o in self.results],
            summary=self.summary.to_summary(),
            pagination=Pagination(
                page=self.pagination.page,
                limit=self.pagination.limit,
                total=self.pagination.total,
            ),
        )


# =============================================================================
# WebSocket Messages
# =============================================================================


class PriceUpdateModel(BaseModel):
    """One (coin, exchange) price; accepts the legacy `pair` key for coin."""

    coin: str = Field(validation_alias=AliasChoices("coin", "pair"))
    exchange: str
    price: float
    timestamp_ms: int = Field(alias="timestamp")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_update(cls, update: PriceUpdate) -> "PriceUpdateModel":
        return cls(
            coin=update.coin,
            exchange=update.exchange,
            price=update.price,
            timestamp_ms=update.timestamp_ms,
        )

    def to_update(self) -> PriceUpdate:
        return PriceUpdate(
            coin=self.coin,
            exchange=self.exchange,
            price=self.price,
            timestamp_ms=self.timestamp_ms,
        )


class PriceUpdatesMessage(BaseModel):
    """Server -> client price push."""

    type: Literal["price_updates"] = MESSAGE_PRICE_UPDATES
    data: list[PriceUpdateModel]

    @classmethod
    def from_updates(cls, updates: list[PriceUpdate]) -> "PriceUpdatesMessage":
        return cls(data=[PriceUpdateModel.from_update(u) for u in updates])


class SetUpdatePeriodMessage(BaseModel):
    """Client -> server period change. Period is validated by the scheduler."""

    type: Literal["set_update_period"] = MESSAGE_SET_UPDATE_PERIOD
    period: float | int | str


# =============================================================================
# Ledger
# =============================================================================


class DealModel(BaseModel):
    """Deal as submitted to and returned by /api/deals."""

    opportunity_id: int = Field(alias="opportunityId")
    coin: str
    buy_exchange: str = Field(alias="buyExchange")
    sell_exchange: str = Field(alias="sellExchange")
    buy_price: float = Field(alias="buyPrice", gt=0)
    sell_price: float = Field(alias="sellPrice", gt=0)
    volume: float = Field(gt=0)
    spread: float
    gross_profit: float = Field(alias="grossProfit")
    commission: float = Field(ge=0)
    profit: float
    status: DealStatus = DealStatus.PENDING
    executed_at: str = Field(alias="executedAt")
    last_update: str = Field(default="", alias="lastUpdate")

    model_config = {"populate_by_name": True}

    @field_validator("executed_at")
    @classmethod
    def validate_executed_at(cls, v: str) -> str:
        """Require an ISO-8601 timestamp with a UTC offset."""
        try:
            parsed = iso_to_datetime(v)
        except ValueError:
            raise ValueError("executedAt must be an ISO-8601 timestamp") from None
        if parsed.tzinfo is None:
            raise ValueError("executedAt must carry a UTC offset or Z suffix")
        return v

    @classmethod
    def from_deal(cls, deal: Deal) -> "DealModel":
        return cls(
            opportunity_id=deal.opportunity_id,
            coin=deal.coin,
            buy_exchange=deal.buy_exchange,
            sell_exchange=deal.sell_exchange,
            buy_price=deal.buy_price,
            sell_price=deal.sell_price,
            volume=deal.volume,
            spread=deal.spread,
            gross_profit=deal.gross_profit,
            commission=deal.commission,
            profit=deal.profit,
            status=deal.status,
            executed_at=deal.executed_at,
            last_update=deal.last_update,
        )

    def to_deal(self) -> Deal:
        return Deal(
            opportunity_id=self.opportunity_id,
            coin=self.coin,
            buy_exchange=self.buy_exchange,
            sell_exchange=self.sell_exchange,
            buy_price=self.buy_price,
            sell_price=self.sell_price,
            volume=self.volume,
            spread=self.spread,
            gross_profit=self.gross_profit,
            commission=self.commission,
            profit=self.profit,
            status=self.status,
            executed_at=self.executed_at,
            last_update=self.last_update,
        )


class DealAckResponse(BaseModel):
    """Ledger acknowledgement for a submitted deal."""

    success: bool
    deal: DealModel | None = None
    message: str = ""

    @classmethod
    def from_ack(cls, ack: LedgerAck) -> "DealAckResponse":
        return cls(
            success=ack.success,
            deal=DealModel.from_deal(ack.deal) if ack.deal else None,
            message=ack.message,
        )

    def to_ack(self) -> LedgerAck:
        return LedgerAck(
            success=self.success,
            deal=self.deal.to_deal() if self.deal else None,
            message=self.message,
        )


class PortfolioMetricsModel(BaseModel):
    """Portfolio metrics block of the dashboard."""

    total_profit: float = Field(alias="totalProfit")
    daily_profit: float = Field(alias="dailyProfit")
    total_commission: float = Field(alias="totalCommission")
    success_rate: float = Field(alias="successRate")
    total_deals: int = Field(alias="totalDeals")
    completed_deals: int = Field(alias="completedDeals")
    failed_deals: int = Field(alias="failedDeals")
    volume_24h: float = Field(alias="volume24h")
    avg_spread: float = Field(alias="avgSpread")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_metrics(cls, metrics: PortfolioMetrics) -> "PortfolioMetricsModel":
        return cls(
            total_profit=metrics.total_profit,
            daily_profit=metrics.daily_profit,
            total_commission=metrics.total_commission,
            success_rate=metrics.success_rate,
            total_deals=metrics.total_deals,
            completed_deals=metrics.completed_deals,
            failed_deals=metrics.failed_deals,
            volume_24h=metrics.volume_24h,
            avg_spread=metrics.avg_spread,
        )


class ProfitPointModel(BaseModel):
    date: str
    value: float

    @classmethod
    def from_point(cls, point: ProfitPoint) -> "ProfitPointModel":
        return cls(date=point.date, value=point.value)


class DashboardResponse(BaseModel):
    """Response of GET /api/dashboard."""

    metrics: PortfolioMetricsModel
    profit_chart: list[ProfitPointModel] = Field(alias="profitChart")
    recent_deals: list[DealModel] = Field(alias="recentDeals")
    balances: dict[str, dict[str, float]]

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Client or server error body."""

    error: str
    param: str | None = None
