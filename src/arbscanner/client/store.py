"""
Client-side working set of opportunities.

Holds the page returned by the last query and keeps it current between
queries by applying live price pushes. Patched records whose spread or
profit drifts below the active filter minimum (or whose legs cross) mark
the view stale and trigger a single background refetch.

Features:
- Last-write-wins price patching with derived-field recompute
- One in-flight refetch regardless of how many records drift
- Optimistic deal execution with rollback on ledger failure
- Session balance deltas across executed deals
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any

from pydantic import ValidationError

from arbscanner.config.constants import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_LIMIT,
    MESSAGE_ERROR,
    MESSAGE_PRICE_UPDATES,
    MESSAGE_UPDATE_PERIOD,
)
from arbscanner.core.errors import (
    DataInconsistencyError,
    OpportunityNotFoundError,
    TransportError,
)
from arbscanner.core.event_bus import Event, EventBus, EventType
from arbscanner.core.types import (
    Balances,
    Deal,
    DealStatus,
    FilterSpec,
    LedgerClient,
    Opportunity,
    OpportunityFetcher,
    PriceUpdate,
    QueryResult,
    SortSpec,
    Summary,
)
from arbscanner.dashboard.schemas import PriceUpdatesMessage
from arbscanner.execution.balances import SessionBalances
from arbscanner.execution.deals import create_deal
from arbscanner.strategy.calculator import refresh_derived_fields
from arbscanner.strategy.query import is_bound_set, sort_opportunities, summarize
from arbscanner.utils.time import ms_to_iso


logger = logging.getLogger(__name__)


class ReconciliationStore:
    """
    Reconciled view of one query page.

    Not thread-safe; all methods must run on the event loop that owns
    the store.
    """

    def __init__(
        self,
        fetcher: OpportunityFetcher,
        ledger: LedgerClient,
        filters: FilterSpec | None = None,
        sort: SortSpec | None = None,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_PAGE_LIMIT,
        event_bus: EventBus | None = None,
        session: SessionBalances | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            fetcher: Source of query pages.
            ledger: Deal ledger collaborator.
            filters: Active filter (default: unconstrained).
            sort: Active sort order (default: spread descending).
            page: Active page number.
            limit: Active page size.
            event_bus: Bus receiving store notifications.
            session: Session balance snapshot.
        """
        self._fetcher = fetcher
        self._ledger = ledger
        self._filters = filters or FilterSpec()
        self._sort = sort or SortSpec()
        self._page = page
        self._limit = limit
        self._bus = event_bus or EventBus()
        self._session = session or SessionBalances()

        self._opportunities: list[Opportunity] = []
        self._summary = Summary()
        self._total = 0
        self._stale = False
        self._balances: Balances = {}
        self._refetch_task: asyncio.Task[None] | None = None
        # Bumped whenever refresh() replaces the working set
        self._generation = 0

    # =========================================================================
    # State
    # =========================================================================

    @property
    def opportunities(self) -> list[Opportunity]:
        """Get the working set in display order."""
        return list(self._opportunities)

    @property
    def summary(self) -> Summary:
        return self._summary

    @property
    def total(self) -> int:
        """Total matches reported by the last query, adjusted for local removals."""
        return self._total

    @property
    def filters(self) -> FilterSpec:
        return self._filters

    @property
    def sort(self) -> SortSpec:
        return self._sort

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def refetch_pending(self) -> bool:
        return self._refetch_task is not None and not self._refetch_task.done()

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    def get(self, opportunity_id: int) -> Opportunity | None:
        for opportunity in self._opportunities:
            if opportunity.id == opportunity_id:
                return opportunity
        return None

    # =========================================================================
    # Query
    # =========================================================================

    async def refresh(self) -> QueryResult:
        """
        Run the active query and replace the working set.

        Raises:
            TransportError: If the fetcher fails; local state is unchanged.
        """
        result = await self._fetcher.fetch_opportunities(
            self._filters, self._sort, self._page, self._limit
        )
        self._opportunities = list(result.results)
        self._generation += 1
        self._summary = result.summary
        self._total = result.pagination.total
        self._stale = False

        logger.debug(
            f"Working set refreshed: {len(self._opportunities)} shown of {self._total}"
        )
        await self._bus.publish(
            Event(EventType.OPPORTUNITIES_REFRESHED, result, source="store")
        )
        return result

    async def set_query(
        self,
        filters: FilterSpec | None = None,
        sort: SortSpec | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> QueryResult:
        """Change any part of the active query and refresh."""
        if filters is not None:
            self._filters = filters
        if sort is not None:
            self._sort = sort
        if page is not None:
            self._page = page
        if limit is not None:
            self._limit = limit
        return await self.refresh()

    # =========================================================================
    # Price Reconciliation
    # =========================================================================

    def apply_updates(self, updates: Sequence[PriceUpdate]) -> int:
        """
        Patch the working set with a batch of price updates.

        Updates apply in order, so a later update for the same
        (coin, exchange) overwrites an earlier one.

        Returns:
            Number of opportunities patched.
        """
        if not updates:
            return 0

        patched: set[int] = set()
        for update in updates:
            stamp = ms_to_iso(update.timestamp_ms)
            for opportunity in self._opportunities:
                if opportunity.coin != update.coin:
                    continue
                touched = False
                if opportunity.buy_exchange == update.exchange:
                    opportunity.buy_price = update.price
                    touched = True
                if opportunity.sell_exchange == update.exchange:
                    opportunity.sell_price = update.price
                    touched = True
                if touched:
                    opportunity.last_update = stamp
                    patched.add(opportunity.id)

        if not patched:
            return 0

        kept: list[Opportunity] = []
        dropped: list[Opportunity] = []
        drifted: list[Opportunity] = []
        for opportunity in self._opportunities:
            if opportunity.id in patched:
                refresh_derived_fields(opportunity)
                if not opportunity.is_consistent:
                    dropped.append(opportunity)
                    continue
                if self._below_minimum(opportunity):
                    drifted.append(opportunity)
            kept.append(opportunity)

        self._opportunities = sort_opportunities(kept, self._sort)
        self._summary = summarize(self._opportunities)
        self._total = max(self._total - len(dropped), 0)

        self._bus.publish_sync(
            Event(EventType.PRICES_RECONCILED, len(patched), source="store")
        )

        if dropped or drifted:
            self._stale = True
            logger.info(
                f"Drift detected: {len(drifted)} below filter, {len(dropped)} stale dropped"
            )
            self._bus.publish_sync(
                Event(EventType.DRIFT_DETECTED, drifted + dropped, source="store")
            )
            self._schedule_refetch()

        return len(patched)

    def _below_minimum(self, opportunity: Opportunity) -> bool:
        """Check the patched values against the active minimums."""
        min_spread = self._filters.min_spread
        min_profit = self._filters.min_profit
        if is_bound_set(min_spread) and opportunity.spread < min_spread:  # type: ignore[operator]
            return True
        return is_bound_set(min_profit) and opportunity.profit < min_profit  # type: ignore[operator]

    def _schedule_refetch(self) -> None:
        if self.refetch_pending:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, refetch deferred to next refresh()")
            return
        self._refetch_task = loop.create_task(self._refetch(), name="store-refetch")

    async def _refetch(self) -> None:
        try:
            await self.refresh()
        except TransportError as e:
            # Patched records stay visible and the view stays stale
            logger.warning(f"Refetch failed: {e}")
            await self._bus.publish(Event(EventType.REFETCH_FAILED, e, source="store"))
        except DataInconsistencyError as e:
            logger.error(f"Refetch rejected by server: {e}")
            await self._bus.publish(Event(EventType.REFETCH_FAILED, e, source="store"))

    async def wait_for_refetch(self) -> None:
        """Wait for the in-flight refetch, if any."""
        if self._refetch_task is not None:
            await asyncio.shield(self._refetch_task)

    def handle_message(self, message: Mapping[str, Any]) -> int:
        """
        Dispatch one decoded server push.

        Returns:
            Number of opportunities patched (0 for non-price messages).
        """
        msg_type = message.get("type")

        if msg_type == MESSAGE_PRICE_UPDATES:
            try:
                parsed = PriceUpdatesMessage.model_validate(message)
            except ValidationError as e:
                logger.warning(f"Malformed price push ignored: {e.error_count()} errors")
                return 0
            return self.apply_updates([u.to_update() for u in parsed.data])

        if msg_type == MESSAGE_UPDATE_PERIOD:
            logger.info(f"Server update period is now {message.get('data', {}).get('period')}s")
        elif msg_type == MESSAGE_ERROR:
            logger.warning(f"Server error: {message.get('data', {}).get('message')}")
        else:
            logger.debug(f"Ignoring message type: {msg_type}")
        return 0

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(self, opportunity_id: int) -> Deal:
        """
        Execute an opportunity against the ledger.

        The opportunity leaves the working set immediately. If the ledger
        rejects the deal or cannot be reached, it is put back in sort
        order (unless a refresh replaced the working set meanwhile) and
        the returned deal is marked failed.

        Raises:
            OpportunityNotFoundError: If the id is not in the working set.
        """
        opportunity = self.get(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFoundError(opportunity_id)

        self._remove(opportunity)
        deal = create_deal(opportunity)
        generation = self._generation

        try:
            ack = await self._ledger.submit_deal(deal)
        except TransportError as e:
            return await self._rollback(opportunity, deal, str(e), generation)

        if not ack.success:
            return await self._rollback(
                opportunity, ack.deal or deal, ack.message, generation
            )

        completed = ack.deal or replace(deal, status=DealStatus.COMPLETED)
        logger.info(
            f"Executed {completed.coin} {completed.buy_exchange}->{completed.sell_exchange} "
            f"net={completed.profit:.2f}"
        )
        await self._bus.publish(Event(EventType.DEAL_EXECUTED, completed, source="store"))
        return completed

    def _remove(self, opportunity: Opportunity) -> None:
        self._opportunities = [o for o in self._opportunities if o.id != opportunity.id]
        self._summary = summarize(self._opportunities)
        self._total = max(self._total - 1, 0)

    async def _rollback(
        self, opportunity: Opportunity, deal: Deal, reason: str, generation: int
    ) -> Deal:
        # A refresh during submission already reflects the server state
        if generation == self._generation and self.get(opportunity.id) is None:
            self._opportunities = sort_opportunities(
                [*self._opportunities, opportunity], self._sort
            )
            self._summary = summarize(self._opportunities)
            self._total += 1
        else:
            logger.debug(
                f"Working set replaced during submission, opportunity {opportunity.id} not restored"
            )

        failed = replace(deal, status=DealStatus.FAILED)
        logger.warning(f"Deal for opportunity {opportunity.id} failed: {reason}")
        await self._bus.publish(Event(EventType.DEAL_FAILED, failed, source="store"))
        return failed

    # =========================================================================
    # Balances
    # =========================================================================

    async def load_balances(self) -> Balances:
        """
        Load current balances; the first load of the session is snapshotted.

        Raises:
            TransportError: If the ledger cannot be reached.
        """
        self._balances = await self._ledger.get_balances()
        self._session.initialize(self._balances)
        return {exchange: dict(amounts) for exchange, amounts in self._balances.items()}

    def balance_deltas(self) -> Balances:
        """
        Change of every loaded balance since the session snapshot.

        Raises:
            ScannerError: If balances were never loaded.
        """
        return self._session.deltas(self._balances)

    def reset_session(self) -> None:
        """Forget the session snapshot; the next load takes a new one."""
        self._session.reset()
