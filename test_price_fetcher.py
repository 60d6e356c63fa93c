"""
Tests for the Yahoo Finance price fetcher.

yfinance is patched out; no network access is needed.
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from smartstock import price_fetcher
from smartstock.price_fetcher import fetch_prices, is_valid_price, normalize_symbol


def fake_ticker(prices):
    """Build a yf.Ticker replacement serving `prices` by symbol."""
    requested = []

    def factory(symbol):
        requested.append(symbol)
        value = prices.get(symbol)
        if isinstance(value, Exception):
            raise value
        stock = MagicMock()
        stock.fast_info.last_price = value
        stock.history.return_value = MagicMock(empty=True)
        return stock

    return factory, requested


def test_normalize_symbol():
    assert normalize_symbol(" 2330 ") == "2330.TW"
    assert normalize_symbol("6488", ".TWO") == "6488.TWO"
    assert normalize_symbol("2330.tw") == "2330.TW"
    assert normalize_symbol("aapl") == "AAPL"
    assert normalize_symbol("00878") == "00878"


def test_is_valid_price():
    print("\n🧪 Test: Price sanity checks")
    assert is_valid_price(43.0, "AAPL")
    assert is_valid_price(612.5, "2330.TW")

    assert not is_valid_price(None, "AAPL")
    assert not is_valid_price(0, "AAPL")
    assert not is_valid_price(-3.2, "AAPL")
    assert not is_valid_price(float("nan"), "AAPL")
    assert not is_valid_price(150000, "AAPL")
    # date-shaped integers
    assert not is_valid_price(20241113, "AAPL", max_price=1e9)
    # ticker code glued to the price
    assert not is_valid_price(130143.5, "1301.TW", max_price=1e9)
    # year in the value
    assert not is_valid_price(float(f"{date.today().year}.5"), "AAPL")
    assert not is_valid_price(float(f"{date.today().year - 1}.25"), "AAPL")
    print("   ✅ Implausible prices rejected")


def test_fetch_prices_per_ticker_isolation():
    """A failing ticker is omitted; the others are still returned."""
    print("\n🧪 Test: Per-ticker failure isolation")
    factory, requested = fake_ticker({
        "2330.TW": 612.0,
        "AAPL": RuntimeError("rate limited"),
        "MSFT": 410.5,
    })

    with patch.object(price_fetcher.yf, "Ticker", side_effect=factory):
        prices = fetch_prices(["2330", "aapl", "MSFT", "msft "])

    assert prices == {"2330": 612.0, "MSFT": 410.5}
    assert requested == ["2330.TW", "AAPL", "MSFT"]
    print("   ✅ Failure isolated")


def test_fetch_prices_uses_history_fallback():
    stock = MagicMock()
    stock.fast_info.last_price = None
    history = MagicMock(empty=False)
    history.__getitem__.return_value.iloc.__getitem__.return_value = 98.75
    stock.history.return_value = history

    with patch.object(price_fetcher.yf, "Ticker", return_value=stock):
        prices = fetch_prices(["AMD"])

    assert prices == {"AMD": 98.75}
    stock.history.assert_called_once_with(period="5d")


def test_fetch_prices_drops_missing_and_implausible_quotes():
    factory, _ = fake_ticker({"AAPL": None, "MSFT": 250000.0, "NVDA": 120.0})

    with patch.object(price_fetcher.yf, "Ticker", side_effect=factory):
        prices = fetch_prices(["AAPL", "MSFT", "NVDA"])

    assert prices == {"NVDA": 120.0}


def test_fetch_prices_empty_input():
    with patch.object(price_fetcher.yf, "Ticker") as ticker:
        assert fetch_prices([]) == {}
        assert fetch_prices(["  "]) == {}
    ticker.assert_not_called()


@pytest.mark.parametrize("suffix, expected", [(".TW", "6488.TW"), (".TWO", "6488.TWO")])
def test_fetch_prices_default_suffix(suffix, expected):
    factory, requested = fake_ticker({expected: 480.0})

    with patch.object(price_fetcher.yf, "Ticker", side_effect=factory):
        prices = fetch_prices(["6488"], default_suffix=suffix)

    assert requested == [expected]
    assert prices == {"6488": 480.0}
