"""
Reporting

Renders position summaries, sells and record lists as Markdown, and merges
AI valuation overlays into the rows at presentation time.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from .fifo import SellOutcome
from .transaction_models import (
    PortfolioTotals,
    PositionSummary,
    TransactionRecord,
    ValuationOverlay,
    normalize_ticker,
)

logger = logging.getLogger(__name__)


def _signed(value: float) -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}${abs(value):,.2f}"


def _index_overlays(
    overlays: Optional[Iterable[ValuationOverlay]],
) -> Dict[str, ValuationOverlay]:
    return {normalize_ticker(o.ticker): o for o in (overlays or [])}


def _valuation_zone(price: float, overlay: ValuationOverlay) -> Optional[str]:
    """Place a price against the cheap/fair/expensive bands."""
    if overlay.cheap_price is not None and price <= overlay.cheap_price:
        return "cheap"
    if overlay.expensive_price is not None and price >= overlay.expensive_price:
        return "expensive"
    if overlay.fair_price is not None:
        return "fair"
    return None


def merge_valuation_overlay(
    summaries: Sequence[PositionSummary],
    overlays: Optional[Iterable[ValuationOverlay]] = None,
) -> List[Dict[str, Any]]:
    """
    Combine summaries with AI valuation estimates for display.

    Summaries are not modified; tickers without an overlay get None
    valuation fields.

    Returns:
        list: One dict per summary with summary fields plus cheap_price,
            fair_price, expensive_price, target_price and valuation_zone
    """
    by_ticker = _index_overlays(overlays)

    rows = []
    for summary in summaries:
        row = summary.model_dump()
        row["unrealized_pl_percent"] = summary.unrealized_pl_percent

        overlay = by_ticker.get(summary.ticker)
        row["cheap_price"] = overlay.cheap_price if overlay else None
        row["fair_price"] = overlay.fair_price if overlay else None
        row["expensive_price"] = overlay.expensive_price if overlay else None
        row["target_price"] = overlay.target_price if overlay else None
        row["valuation_zone"] = _valuation_zone(summary.current_price, overlay) if overlay else None
        rows.append(row)

    return rows


def format_portfolio_report(
    summaries: Sequence[PositionSummary],
    totals: PortfolioTotals,
    overlays: Optional[Iterable[ValuationOverlay]] = None,
) -> str:
    """
    Converts position summaries into a Markdown report.

    Args:
        summaries: Output of LotLedger.summarize()
        totals: Portfolio totals for the same summaries
        overlays: Optional AI valuation estimates keyed by ticker

    Returns:
        str: A multi-line string in Markdown format
    """
    if not summaries:
        return "📭 No transactions recorded yet."

    rows = merge_valuation_overlay(summaries, overlays)
    has_overlay = any(row["valuation_zone"] for row in rows)

    lines = ["# 📊 Portfolio Summary", ""]
    lines.append(f"**Total Cost:** ${totals.total_cost:,.2f}")
    lines.append(f"**Market Value:** ${totals.market_value:,.2f}")

    unrealized_emoji = "📈" if totals.unrealized_pl >= 0 else "📉"
    lines.append(f"**Unrealized P&L:** {unrealized_emoji} {_signed(totals.unrealized_pl)}")
    lines.append(f"**Realized P&L:** {_signed(totals.realized_pl)}")
    lines.append(f"**Open Positions:** {totals.position_count}")
    lines.append("")

    header = "| Ticker | Name | Shares | Avg Cost | Price | Market Value | Unrealized | Realized |"
    divider = "|---|---|---:|---:|---:|---:|---:|---:|"
    if has_overlay:
        header += " Valuation |"
        divider += "---|"
    lines.append(header)
    lines.append(divider)

    for row in rows:
        line = (
            f"| {row['ticker']} | {row['name'] or '-'} | {row['total_shares']:,} "
            f"| {row['avg_cost']:,.2f} | {row['current_price']:,.2f} "
            f"| {row['market_value']:,.2f} "
            f"| {_signed(row['unrealized_pl'])} ({row['unrealized_pl_percent']:+.2f}%) "
            f"| {_signed(row['realized_pl'])} |"
        )
        if has_overlay:
            line += f" {row['valuation_zone'] or '-'} |"
        lines.append(line)

    return "\n".join(lines)


def format_sell_outcome(outcome: SellOutcome) -> str:
    """Describe a completed FIFO sell lot by lot."""
    lines = [
        f"✅ Sold {outcome.quantity:,} {outcome.ticker} @ {outcome.sell_price:,.2f} on {outcome.sell_date.isoformat()}",
        f"**Realized P&L:** {_signed(outcome.realized_pl)}",
        "",
        "Lots consumed (FIFO):",
    ]
    for i, fill in enumerate(outcome.fills, 1):
        split_note = f" (split into {fill.split_record_id})" if fill.split_record_id else ""
        lines.append(
            f"{i}. {fill.quantity:,} shares bought {fill.buy_date.isoformat()} @ {fill.buy_price:,.2f}"
            f" -> {_signed(fill.realized_pl)}{split_note}"
        )
    return "\n".join(lines)


def format_records(records: Sequence[TransactionRecord]) -> str:
    """List records with their id, lot size and sell state."""
    if not records:
        return "📭 No matching records."

    lines = ["| ID | Ticker | Buy Date | Buy Price | Qty | Sold | Sell Price | Sell Date | Status |"]
    lines.append("|---|---|---|---:|---:|---:|---:|---|---|")
    for r in records:
        sell_price = f"{r.sell_price:,.2f}" if r.sell_price is not None else "-"
        sell_date = r.sell_date.isoformat() if r.sell_date else "-"
        lines.append(
            f"| {r.id} | {r.ticker} | {r.buy_date.isoformat()} | {r.buy_price:,.2f} "
            f"| {r.buy_qty:,} | {r.sold_qty:,} | {sell_price} | {sell_date} | {r.status} |"
        )
    return "\n".join(lines)
