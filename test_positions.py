"""
Tests for position aggregation and portfolio totals.
"""

import pytest

from smartstock.positions import compute_portfolio_totals, summarize_positions
from smartstock.transaction_models import TransactionRecord


def lot(record_id, ticker, buy_date, price, qty, **extra):
    return TransactionRecord(
        id=record_id, ticker=ticker, buy_date=buy_date, buy_price=price, buy_qty=qty, **extra
    )


def test_empty_records():
    assert summarize_positions([]) == []
    totals = compute_portfolio_totals([])
    assert totals.market_value == 0
    assert totals.position_count == 0


def test_quote_overrides_stored_price():
    """Supplied quotes win over stored prices; keys are normalized."""
    records = [lot("a", "AAPL", "2024-01-01", 100, 10, current_price=105)]

    summary = summarize_positions(records, {" aapl ": 150})[0]

    assert summary.current_price == 150
    assert summary.market_value == pytest.approx(1500)
    assert summary.unrealized_pl == pytest.approx(500)
    assert summary.unrealized_pl_percent == pytest.approx(50)


def test_last_stored_price_used_without_quote():
    records = [
        lot("a", "AAPL", "2024-01-01", 100, 10, current_price=101),
        lot("b", "AAPL", "2024-02-01", 110, 10),
        lot("c", "AAPL", "2023-12-01", 90, 10, current_price=107),
    ]

    summary = summarize_positions(records, {"MSFT": 999})[0]

    assert summary.current_price == 107


def test_latest_buy_price_is_last_resort():
    """With no quote or stored price, the newest lot's buy price values the position."""
    records = [
        lot("mar", "AAPL", "2024-03-01", 120, 10),
        lot("jan", "AAPL", "2024-01-01", 100, 10),
    ]

    summary = summarize_positions(records)[0]

    assert summary.current_price == 120
    assert summary.market_value == pytest.approx(2400)
    print("✓ Price fallback chain verified")


def test_closed_position_still_reported():
    """A fully sold ticker keeps its realized P&L with zero open value."""
    records = [
        lot("a", "AMD", "2024-01-01", 100, 10, sell_qty=10, sell_price=130, sell_date="2024-02-01"),
    ]

    summary = summarize_positions(records, {"AMD": 200})[0]

    assert summary.total_shares == 0
    assert summary.avg_cost == 0
    assert summary.market_value == 0
    assert summary.unrealized_pl == 0
    assert summary.realized_pl == pytest.approx(300)
    assert summary.unrealized_pl_percent == 0


def test_sold_quantity_without_price_not_realized():
    records = [lot("a", "AMD", "2024-01-01", 100, 10, sell_qty=4)]

    summary = summarize_positions(records)[0]

    assert summary.realized_pl == 0
    assert summary.total_shares == 6


def test_sorted_by_market_value():
    records = [
        lot("a", "SMALL", "2024-01-01", 10, 10),
        lot("b", "BIG", "2024-01-01", 500, 10),
        lot("c", "MID", "2024-01-01", 50, 10),
    ]

    tickers = [s.ticker for s in summarize_positions(records)]

    assert tickers == ["BIG", "MID", "SMALL"]


def test_first_non_empty_name_and_record_count():
    records = [
        lot("a", "2330.TW", "2024-01-01", 500, 10),
        lot("b", "2330.tw", "2024-01-02", 500, 10, name="TSMC"),
        lot("c", "2330.TW", "2024-01-03", 500, 10, name="Taiwan Semi"),
    ]

    summary = summarize_positions(records)[0]

    assert summary.name == "TSMC"
    assert summary.record_count == 3


def test_portfolio_totals():
    records = [
        lot("a", "AAPL", "2024-01-01", 100, 10),
        lot("b", "MSFT", "2024-01-01", 300, 5),
        lot("c", "AMD", "2024-01-01", 100, 10, sell_qty=10, sell_price=90, sell_date="2024-02-01"),
    ]
    summaries = summarize_positions(records, {"AAPL": 120, "MSFT": 280})

    totals = compute_portfolio_totals(summaries)

    assert totals.total_cost == pytest.approx(1000 + 1500)
    assert totals.market_value == pytest.approx(1200 + 1400)
    assert totals.unrealized_pl == pytest.approx(200 - 100)
    assert totals.realized_pl == pytest.approx(-100)
    assert totals.position_count == 2
    print("✓ Totals verified")
