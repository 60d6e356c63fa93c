"""
Main Entry Point for the SmartStock Ledger MCP server

Defines the fastmcp tools that record trades, value the portfolio and
request AI analyses. Each tool works on a process-wide ledger per user,
loaded once from storage and saved after every mutation.
"""

import logging
from typing import Dict, Optional

from fastmcp import FastMCP

from . import analysis
from . import config
from . import price_fetcher
from . import reporting
from . import storage
from .errors import InsufficientSharesError, ValidationError
from .ledger import LotLedger
from .storage_backend import StorageError
from .transaction_models import ValuationOverlay

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

mcp = FastMCP("SmartStock Ledger")

# In-memory ledgers are authoritative; storage is written after each change
_ledgers: Dict[str, LotLedger] = {}
_unsaved: Dict[str, bool] = {}

STORAGE_READ_FAILED = "❌ Could not read your stored portfolio, so nothing was changed. Try again shortly.\n{error}"


def _get_ledger(user_id: Optional[str] = None) -> LotLedger:
    """Cached ledger for the user. A failed load raises StorageError and caches nothing."""
    user_id = user_id or config.get_user_id()
    if user_id not in _ledgers:
        _ledgers[user_id] = storage.load_ledger(user_id)
        logger.info(f"Loaded ledger for {user_id}: {len(_ledgers[user_id])} records")
    return _ledgers[user_id]


def _persist(user_id: Optional[str] = None) -> str:
    """Save the user's ledger; returns a note to append to tool output."""
    user_id = user_id or config.get_user_id()
    ledger = _get_ledger(user_id)

    if storage.save_records(user_id, ledger.records):
        _unsaved[user_id] = False
        return ""

    _unsaved[user_id] = True
    logger.error(f"Ledger for {user_id} changed in memory but could not be saved")
    return "\n\n⚠️ Storage write failed. The change is kept in memory; run sync_portfolio to retry."


def _current_prices(ledger: LotLedger) -> Dict[str, float]:
    cfg = config.get_config()
    return price_fetcher.fetch_prices(
        ledger.open_tickers(),
        default_suffix=cfg.prices.default_suffix,
        max_price=cfg.prices.max_price,
    )


@mcp.tool()
def record_buy(
    ticker: str,
    date: str,
    price: float,
    quantity: int,
    name: str = "",
    reason: str = "",
) -> str:
    """
    Record a stock purchase as a new lot.

    Args:
        ticker: Ticker symbol, e.g. "2330.TW" or "AAPL"
        date: Trade date (YYYY-MM-DD)
        price: Price per share
        quantity: Number of shares
        name: Display name
        reason: Why you bought

    Returns:
        str: Confirmation message
    """
    try:
        ledger = _get_ledger()
        record = ledger.record_buy(ticker, name, date, price, quantity, reason)
        note = _persist()
        return (
            f"✅ Bought {record.buy_qty:,} {record.ticker} @ {record.buy_price:,.2f} "
            f"on {record.buy_date.isoformat()} (record {record.id})" + note
        )
    except ValidationError as e:
        return f"❌ Invalid buy: {e}"
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to record buy: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def record_sell(ticker: str, date: str, price: float, quantity: int) -> str:
    """
    Record a sale. Shares are taken from the oldest lots first (FIFO).

    Args:
        ticker: Ticker symbol
        date: Trade date (YYYY-MM-DD)
        price: Price per share received
        quantity: Number of shares sold

    Returns:
        str: Lot-by-lot breakdown with realized P&L
    """
    try:
        ledger = _get_ledger()
        outcome = ledger.record_sell(ticker, date, price, quantity)
        note = _persist()
        return reporting.format_sell_outcome(outcome) + note
    except InsufficientSharesError as e:
        return f"❌ Sell rejected.\n{e}"
    except ValidationError as e:
        return f"❌ Invalid sell: {e}"
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to record sell: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def remove_record(record_id: str) -> str:
    """
    Delete one record by id to correct a data-entry mistake.

    Args:
        record_id: Id shown by list_records

    Returns:
        str: Result message
    """
    try:
        ledger = _get_ledger()
        if not ledger.remove_record(record_id):
            return f"Record {record_id} not found (already removed?)."
        note = _persist()
        return f"🗑️ Removed record {record_id}" + note
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to remove record: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def list_records(ticker: Optional[str] = None) -> str:
    """
    List transaction records, optionally for one ticker.

    Returns:
        str: Markdown table of records
    """
    try:
        ledger = _get_ledger()
        records = ledger.records_for(ticker) if ticker else ledger.records
        return reporting.format_records(records)
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to list records: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def get_portfolio_summary(live_prices: bool = False) -> str:
    """
    Get per-ticker positions with cost basis and P&L.

    Args:
        live_prices: Fetch current quotes first instead of using stored prices

    Returns:
        str: Markdown portfolio report
    """
    try:
        user_id = config.get_user_id()
        ledger = _get_ledger(user_id)
        prices = _current_prices(ledger) if live_prices else {}

        summaries = ledger.summarize(prices)
        totals = ledger.totals(prices)
        try:
            overlays = storage.load_valuation_overlays(user_id)
        except StorageError as e:
            logger.warning(f"Valuations unavailable, report shown without them: {e}")
            overlays = []
        return reporting.format_portfolio_report(summaries, totals, overlays)
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to get portfolio summary: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def refresh_prices() -> str:
    """
    Fetch current quotes for open positions and store them on the records.

    Returns:
        str: How many tickers and records were updated
    """
    try:
        ledger = _get_ledger()
        tickers = ledger.open_tickers()
        if not tickers:
            return "No open positions to refresh."

        prices = _current_prices(ledger)
        updated = ledger.apply_prices(prices)
        missing = [t for t in tickers if t not in prices]

        note = _persist() if updated else ""
        message = f"🔄 Updated prices for {len(prices)}/{len(tickers)} tickers ({updated} records)."
        if missing:
            message += f"\nNo quote for: {', '.join(missing)}"
        return message + note
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to refresh prices: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def analyze_portfolio(prompt: Optional[str] = None, model: Optional[str] = None) -> str:
    """
    Ask the AI for a portfolio health check.

    Uses the saved prompt/model (see save_analysis_settings) unless given.

    Returns:
        str: Markdown analysis
    """
    try:
        cfg = config.get_config()
        user_id = cfg.user_id
        settings = storage.load_portfolio_settings(user_id)

        ledger = _get_ledger(user_id)
        return analysis.analyze_portfolio(
            ledger.summarize(),
            prompt_template=prompt or settings["prompt"] or cfg.ai.portfolio_prompt,
            model=model or settings["model"] or config.get_ai_model(),
            timeout=cfg.ai.timeout,
        )
    except analysis.AnalysisError as e:
        return f"❌ {e}\nCheck your network connection or try again later."
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to analyze portfolio: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def save_analysis_settings(prompt: Optional[str] = None, model: Optional[str] = None) -> str:
    """
    Save the prompt and model used by analyze_portfolio.

    Passing nothing resets both to the configured defaults.
    """
    try:
        if storage.save_portfolio_settings(config.get_user_id(), prompt, model):
            return "✅ Analysis settings saved."
        return "❌ Failed to save analysis settings."
    except Exception as e:
        error_msg = f"Failed to save analysis settings: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def set_valuation(
    ticker: str,
    cheap_price: Optional[float] = None,
    fair_price: Optional[float] = None,
    expensive_price: Optional[float] = None,
    target_price: Optional[float] = None,
) -> str:
    """
    Store an AI-estimated valuation band for a ticker.

    Shown beside the position in get_portfolio_summary; never used for P&L.
    """
    try:
        overlay = ValuationOverlay(
            ticker=ticker,
            cheap_price=cheap_price,
            fair_price=fair_price,
            expensive_price=expensive_price,
            target_price=target_price,
        )
        if storage.save_valuation_overlay(config.get_user_id(), overlay):
            return f"✅ Valuation saved for {overlay.ticker}."
        return f"❌ Failed to save valuation for {overlay.ticker}."
    except Exception as e:
        error_msg = f"Failed to set valuation: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg


@mcp.tool()
def sync_portfolio() -> str:
    """
    Retry saving the in-memory ledger to storage.

    Returns:
        str: Sync result with storage status
    """
    try:
        user_id = config.get_user_id()
        if not _unsaved.get(user_id):
            return "Portfolio already in sync."
        note = _persist(user_id)
        if note:
            return "❌ Sync failed again." + note
        status = storage.get_storage_status()
        return f"✅ Portfolio synced ({status.get('backend_type', 'unknown')})."
    except StorageError as e:
        return STORAGE_READ_FAILED.format(error=e)
    except Exception as e:
        error_msg = f"Failed to sync portfolio: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return error_msg
