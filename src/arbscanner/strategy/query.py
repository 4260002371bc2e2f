"""
Filter, sort and paginate engine.

Pure functions over a batch of opportunities: the same batch and query
always produce the same page and summary (apart from the summary
timestamp).
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from arbscanner.config.constants import SPREAD_PRECISION
from arbscanner.core.errors import InvalidQueryError
from arbscanner.core.types import (
    FilterSpec,
    Opportunity,
    Pagination,
    QueryResult,
    SortSpec,
    Summary,
)
from arbscanner.strategy.calculator import calculate_commission
from arbscanner.utils.math import safe_divide
from arbscanner.utils.time import utc_now_iso


logger = logging.getLogger(__name__)


SORT_KEYS: dict[str, Callable[[Opportunity], Any]] = {
    "id": lambda o: o.id,
    "coin": lambda o: o.coin,
    "buyExchange": lambda o: o.buy_exchange,
    "sellExchange": lambda o: o.sell_exchange,
    "buyPrice": lambda o: o.buy_price,
    "sellPrice": lambda o: o.sell_price,
    "volume": lambda o: o.volume,
    "spread": lambda o: o.spread,
    "profit": lambda o: o.profit,
    "commission": lambda o: calculate_commission(o.volume),
    "lastUpdate": lambda o: o.last_update,
}

# Numeric bounds as (min attribute, max attribute, query parameter stem)
_BOUNDS = (
    ("min_volume", "max_volume", "Volume"),
    ("min_profit", "max_profit", "Profit"),
    ("min_spread", "max_spread", "Spread"),
    ("min_commission", "max_commission", "Commission"),
)


def is_bound_set(bound: float | None) -> bool:
    """
    Check whether a filter bound constrains anything.

    None and 0 both mean unconstrained.
    """
    return bound is not None and bound > 0


def validate_query(
    filters: FilterSpec,
    sort: SortSpec,
    page: int,
    limit: int,
    max_limit: int | None = None,
) -> None:
    """
    Reject malformed query input.

    Raises:
        InvalidQueryError: On non-positive page/limit, negative or
            inverted bounds, or an unknown sort field.
    """
    if page <= 0:
        raise InvalidQueryError(f"page must be a positive integer, got {page}", "page")
    if limit <= 0:
        raise InvalidQueryError(f"limit must be a positive integer, got {limit}", "limit")
    if max_limit is not None and limit > max_limit:
        raise InvalidQueryError(f"limit must not exceed {max_limit}, got {limit}", "limit")

    for min_attr, max_attr, stem in _BOUNDS:
        lower = getattr(filters, min_attr)
        upper = getattr(filters, max_attr)
        if lower is not None and lower < 0:
            raise InvalidQueryError(f"min{stem} must not be negative", f"min{stem}")
        if upper is not None and upper < 0:
            raise InvalidQueryError(f"max{stem} must not be negative", f"max{stem}")
        if is_bound_set(lower) and is_bound_set(upper) and lower > upper:
            raise InvalidQueryError(f"min{stem} must not exceed max{stem}", f"min{stem}")

    if sort.field not in SORT_KEYS:
        raise InvalidQueryError(f"Unknown sort field: {sort.field}", "sort")


def matches(opportunity: Opportunity, filters: FilterSpec) -> bool:
    """Check one opportunity against every active predicate."""
    values = {
        "Volume": opportunity.volume,
        "Profit": opportunity.profit,
        "Spread": opportunity.spread,
        "Commission": calculate_commission(opportunity.volume),
    }
    for min_attr, max_attr, stem in _BOUNDS:
        lower = getattr(filters, min_attr)
        upper = getattr(filters, max_attr)
        if is_bound_set(lower) and values[stem] < lower:
            return False
        if is_bound_set(upper) and values[stem] > upper:
            return False

    if filters.buy_exchanges and opportunity.buy_exchange not in filters.buy_exchanges:
        return False
    if filters.sell_exchanges and opportunity.sell_exchange not in filters.sell_exchanges:
        return False
    if filters.currencies and opportunity.coin not in filters.currencies:
        return False
    return True


def apply_filters(batch: Iterable[Opportunity], filters: FilterSpec) -> list[Opportunity]:
    """Return the opportunities that satisfy the filter, in input order."""
    return [o for o in batch if matches(o, filters)]


def sort_opportunities(opportunities: Sequence[Opportunity], sort: SortSpec) -> list[Opportunity]:
    """
    Stable single-field sort.

    Equal keys keep their input order in both directions.
    """
    try:
        key = SORT_KEYS[sort.field]
    except KeyError:
        raise InvalidQueryError(f"Unknown sort field: {sort.field}", "sort") from None
    return sorted(opportunities, key=key, reverse=sort.descending)


def paginate(opportunities: Sequence[Opportunity], page: int, limit: int) -> list[Opportunity]:
    """Slice one page using offset pagination."""
    skip = (page - 1) * limit
    return list(opportunities[skip : skip + limit])


def summarize(opportunities: Sequence[Opportunity]) -> Summary:
    """Compute aggregate statistics over a set of opportunities."""
    count = len(opportunities)
    avg_spread = safe_divide(sum(o.spread for o in opportunities), count)
    return Summary(
        total_opportunities=count,
        avg_spread=round(avg_spread, SPREAD_PRECISION),
        total_volume=sum(o.volume for o in opportunities),
        last_update_time=utc_now_iso(),
    )


def query(
    batch: Iterable[Opportunity],
    filters: FilterSpec,
    sort: SortSpec,
    page: int,
    limit: int,
) -> QueryResult:
    """
    Filter, sort and paginate a batch.

    Args:
        batch: Candidate opportunities.
        filters: Active filter.
        sort: Sort order.
        page: 1-based page number.
        limit: Page size.

    Returns:
        The requested page, a summary over the whole filtered set,
        and pagination metadata.

    Raises:
        InvalidQueryError: If the query is malformed.
    """
    validate_query(filters, sort, page, limit)

    filtered = sort_opportunities(apply_filters(batch, filters), sort)
    results = paginate(filtered, page, limit)

    logger.debug(f"Query matched {len(filtered)} opportunities, page {page} has {len(results)}")
    return QueryResult(
        results=results,
        summary=summarize(filtered),
        pagination=Pagination(page=page, limit=limit, total=len(filtered)),
    )
