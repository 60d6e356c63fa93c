"""
Position Aggregation

Groups lot records by ticker and derives share counts, cost basis, market
value and realized/unrealized P&L.
"""

from typing import Dict, List, Mapping, Optional, Sequence
import logging

from .transaction_models import (
    PortfolioTotals,
    PositionSummary,
    TransactionRecord,
    normalize_ticker,
)

logger = logging.getLogger(__name__)


def _resolve_current_price(
    ticker: str,
    records: List[TransactionRecord],
    current_prices: Mapping[str, float],
) -> float:
    """
    Pick the price used to value a ticker.

    Order: supplied quote, then the last price stored on any record, then
    the buy price of the most recent lot.
    """
    quoted = current_prices.get(ticker)
    if quoted is not None:
        return float(quoted)

    stored = [r.current_price for r in records if r.current_price is not None]
    if stored:
        return stored[-1]

    latest_lot = max(
        enumerate(records), key=lambda item: (item[1].buy_date, item[0])
    )[1]
    return latest_lot.buy_price


def summarize_positions(
    records: Sequence[TransactionRecord],
    current_prices: Optional[Mapping[str, float]] = None,
) -> List[PositionSummary]:
    """
    Aggregate records into one PositionSummary per ticker.

    Args:
        records: Lot records
        current_prices: Optional ticker -> price map; keys are normalized

    Returns:
        list: Summaries sorted by market value, largest first
    """
    prices: Dict[str, float] = {
        normalize_ticker(t): p
        for t, p in (current_prices or {}).items()
        if p is not None
    }

    groups: Dict[str, List[TransactionRecord]] = {}
    for record in records:
        groups.setdefault(normalize_ticker(record.ticker), []).append(record)

    summaries = []
    for ticker, group in groups.items():
        total_shares = 0
        total_cost = 0.0
        realized_pl = 0.0
        name = ""

        for record in group:
            if not name and record.name:
                name = record.name

            if record.sold_qty > 0 and record.sell_price is not None:
                realized_pl += (record.sell_price - record.buy_price) * record.sold_qty

            remaining = record.remaining_qty
            if remaining > 0:
                total_shares += remaining
                total_cost += remaining * record.buy_price

        current_price = _resolve_current_price(ticker, group, prices)

        if total_shares > 0:
            avg_cost = total_cost / total_shares
            market_value = total_shares * current_price
        else:
            avg_cost = 0.0
            market_value = 0.0

        summaries.append(PositionSummary(
            ticker=ticker,
            name=name,
            total_shares=total_shares,
            total_cost=total_cost,
            avg_cost=avg_cost,
            current_price=current_price,
            market_value=market_value,
            unrealized_pl=market_value - total_cost,
            realized_pl=realized_pl,
            record_count=len(group),
        ))

    summaries.sort(key=lambda s: s.market_value, reverse=True)

    logger.debug(f"Summarized {len(records)} records into {len(summaries)} positions")
    return summaries


def compute_portfolio_totals(summaries: Sequence[PositionSummary]) -> PortfolioTotals:
    """Sum cost, value and P&L over all positions."""
    return PortfolioTotals(
        total_cost=sum(s.total_cost for s in summaries),
        market_value=sum(s.market_value for s in summaries),
        unrealized_pl=sum(s.unrealized_pl for s in summaries),
        realized_pl=sum(s.realized_pl for s in summaries),
        position_count=sum(1 for s in summaries if s.total_shares > 0),
    )
