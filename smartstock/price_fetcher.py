"""
Market Price Fetcher

Fetches latest prices for a batch of tickers from Yahoo Finance via the
yfinance library. Each ticker is fetched on its own: a failure or an
implausible quote drops that ticker from the result, never the batch.
"""

import logging
import math
import re
from datetime import date
from typing import Dict, Iterable, Optional

import yfinance as yf

from .transaction_models import normalize_ticker

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".TW"
DEFAULT_MAX_PRICE = 100000.0

_BARE_CODE = re.compile(r"^\d{4}$")


def normalize_symbol(ticker: str, default_suffix: str = DEFAULT_SUFFIX) -> str:
    """
    Map a ticker to the symbol Yahoo Finance expects.

    Bare four-digit codes (Taiwan listings) get the default exchange suffix.

    Example:
        >>> normalize_symbol(" 2330 ")
        '2330.TW'
        >>> normalize_symbol("aapl")
        'AAPL'
    """
    clean = normalize_ticker(ticker)
    if _BARE_CODE.match(clean):
        return f"{clean}{default_suffix}"
    return clean


def _price_text(price: float) -> str:
    if float(price).is_integer():
        return str(int(price))
    return repr(float(price))


def is_valid_price(price: Optional[float], ticker: str, max_price: float = DEFAULT_MAX_PRICE) -> bool:
    """
    Reject quotes that are obviously wrong.

    Catches non-positive or NaN values, prices above `max_price`, 8+ digit
    integers that look like dates (20241113), the ticker code glued to more
    digits, and values containing the current or previous year.
    """
    if price is None:
        return False
    try:
        price = float(price)
    except (TypeError, ValueError):
        return False
    if not math.isfinite(price) or price <= 0:
        return False
    if price > max_price:
        return False

    text = _price_text(price)
    ticker_base = normalize_ticker(ticker).split(".")[0]

    if len(text) >= 8 and "." not in text:
        return False

    if ticker_base and text.startswith(ticker_base) and len(text) > len(ticker_base) + 2 and price > 5000:
        return False

    this_year = date.today().year
    for year in (str(this_year), str(this_year - 1)):
        if year in text and len(text) > 5:
            return False

    return True


def fetch_price(symbol: str) -> Optional[float]:
    """
    Fetch the latest price for one Yahoo Finance symbol.

    Returns:
        float or None: Last traded price, or None if Yahoo has none

    Raises:
        Exception: If the yfinance request fails
    """
    stock = yf.Ticker(symbol)

    price = stock.fast_info.last_price
    if price is not None and math.isfinite(price):
        return float(price)

    # fast_info can be empty outside trading hours; use the last daily close
    history = stock.history(period="5d")
    if history is None or history.empty:
        return None
    return float(history["Close"].iloc[-1])


def fetch_prices(
    tickers: Iterable[str],
    default_suffix: str = DEFAULT_SUFFIX,
    max_price: float = DEFAULT_MAX_PRICE,
) -> Dict[str, float]:
    """
    Fetch latest prices for a set of tickers.

    Args:
        tickers: Tickers as stored on records
        default_suffix: Suffix for bare four-digit codes
        max_price: Upper bound for a plausible quote

    Returns:
        dict: Normalized ticker -> price, only for tickers that succeeded
    """
    unique = []
    for ticker in tickers:
        clean = normalize_ticker(ticker)
        if clean and clean not in unique:
            unique.append(clean)

    if not unique:
        return {}

    logger.info(f"Fetching prices for {len(unique)} tickers from Yahoo Finance...")

    prices: Dict[str, float] = {}
    for ticker in unique:
        symbol = normalize_symbol(ticker, default_suffix)
        try:
            price = fetch_price(symbol)
        except Exception as e:
            logger.warning(f"Price fetch failed for {ticker} ({symbol}): {e}")
            continue

        if not is_valid_price(price, ticker, max_price):
            logger.warning(f"Discarding implausible price for {ticker} ({symbol}): {price}")
            continue

        prices[ticker] = price
        logger.debug(f"{ticker}: {price}")

    logger.info(f"Fetched {len(prices)}/{len(unique)} prices")
    return prices
