"""
Lot Ledger

Owns the list of transaction records and exposes the buy, sell, remove and
summarize operations. The ledger performs no I/O; callers load it from
storage, mutate it and persist `to_documents()` afterwards.
"""

from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
import logging

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .fifo import SellOutcome, apply_fifo_sell, new_record_id
from .positions import compute_portfolio_totals, summarize_positions
from .transaction_models import (
    BuyOrder,
    PortfolioTotals,
    PositionSummary,
    SellOrder,
    TransactionRecord,
    normalize_ticker,
)

logger = logging.getLogger(__name__)

DateLike = Union[str, date]


def _to_validation_error(error: PydanticValidationError) -> ValidationError:
    """Convert the first pydantic error into a ledger ValidationError."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(error))
    return ValidationError(f"Invalid {field or 'input'}: {message}", field=field)


def quote_matches(record_ticker: str, quote_symbol: str) -> bool:
    """
    Decide whether a quote symbol belongs to a record's ticker.

    Matches exact symbols, a bare code against its ".TW" listing in either
    direction, and equal base codes (the part before ".") of at least four
    characters, so "4523.TW" also picks up a "4523.TWO" quote.
    """
    ticker = normalize_ticker(record_ticker)
    symbol = normalize_ticker(quote_symbol)
    if not ticker or not symbol:
        return False

    if symbol == ticker:
        return True
    if symbol == f"{ticker}.TW" or ticker == f"{symbol}.TW":
        return True

    ticker_base = ticker.split(".")[0]
    symbol_base = symbol.split(".")[0]
    return ticker_base == symbol_base and len(ticker_base) >= 4


class LotLedger:
    """
    In-memory ledger of buy lots with FIFO sell matching.

    Single-writer: one owner mutates an instance at a time.
    """

    def __init__(
        self,
        records: Optional[Iterable[TransactionRecord]] = None,
        id_factory: Callable[[], str] = new_record_id,
    ):
        self._records: List[TransactionRecord] = list(records or [])
        self._id_factory = id_factory

    @classmethod
    def from_documents(
        cls,
        documents: Iterable[Dict[str, Any]],
        id_factory: Callable[[], str] = new_record_id,
    ) -> "LotLedger":
        """
        Build a ledger from stored record documents.

        Raises:
            ValidationError: If a document is not a valid record
        """
        records = []
        for document in documents:
            try:
                records.append(TransactionRecord.model_validate(document))
            except PydanticValidationError as e:
                raise _to_validation_error(e) from e
        return cls(records, id_factory=id_factory)

    @property
    def records(self) -> List[TransactionRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def to_documents(self) -> List[Dict[str, Any]]:
        return [record.to_document() for record in self._records]

    def get_record(self, record_id: str) -> Optional[TransactionRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def records_for(self, ticker: str) -> List[TransactionRecord]:
        ticker = normalize_ticker(ticker)
        return [r for r in self._records if r.ticker == ticker]

    def available_quantity(self, ticker: str) -> int:
        """Shares of `ticker` still open across all lots."""
        return sum(r.remaining_qty for r in self.records_for(ticker))

    def open_tickers(self) -> List[str]:
        """Tickers with at least one open share, in first-seen order."""
        tickers: List[str] = []
        for record in self._records:
            if record.remaining_qty > 0 and record.ticker not in tickers:
                tickers.append(record.ticker)
        return tickers

    def record_buy(
        self,
        ticker: str,
        name: str,
        date: DateLike,
        price: float,
        quantity: int,
        reason: str = "",
    ) -> TransactionRecord:
        """
        Append a new open lot.

        Returns:
            TransactionRecord: The created record

        Raises:
            ValidationError: On empty ticker, non-positive quantity or negative price
        """
        try:
            order = BuyOrder(
                ticker=ticker,
                name=name,
                trade_date=date,
                price=price,
                quantity=quantity,
                reason=reason,
            )
        except PydanticValidationError as e:
            raise _to_validation_error(e) from e

        record = TransactionRecord(
            id=self._id_factory(),
            ticker=order.ticker,
            name=order.name,
            buy_date=order.trade_date,
            buy_price=order.price,
            buy_qty=order.quantity,
            reason=order.reason,
            current_price=order.price,
        )
        self._records.append(record)

        logger.info(
            f"Recorded buy: {order.quantity} {order.ticker} @ {order.price} on {order.trade_date}"
        )
        return record

    def record_sell(
        self,
        ticker: str,
        date: DateLike,
        price: float,
        quantity: int,
    ) -> SellOutcome:
        """
        Sell shares FIFO against open lots. All-or-nothing.

        Raises:
            ValidationError: On empty ticker, non-positive quantity or negative price
            InsufficientSharesError: If fewer than `quantity` shares are open
        """
        try:
            order = SellOrder(ticker=ticker, trade_date=date, price=price, quantity=quantity)
        except PydanticValidationError as e:
            raise _to_validation_error(e) from e

        outcome = apply_fifo_sell(
            self._records,
            order.ticker,
            order.trade_date,
            order.price,
            order.quantity,
            id_factory=self._id_factory,
        )
        self._records = outcome.records
        return outcome

    def remove_record(self, record_id: str) -> bool:
        """
        Delete a record by id, whatever its state.

        Returns:
            bool: True if a record was removed, False for an unknown id
        """
        remaining = [r for r in self._records if r.id != record_id]
        if len(remaining) == len(self._records):
            logger.debug(f"remove_record: no record with id {record_id}")
            return False

        self._records = remaining
        logger.info(f"Removed record {record_id}")
        return True

    def apply_prices(self, prices: Mapping[str, float]) -> int:
        """
        Store fetched quotes on matching records' current_price.

        Returns:
            int: Number of records updated
        """
        quotes = [(symbol, price) for symbol, price in prices.items() if price]
        if not quotes:
            return 0

        updated = 0
        for index, record in enumerate(self._records):
            for symbol, price in quotes:
                if quote_matches(record.ticker, symbol):
                    self._records[index] = record.model_copy(
                        update={"current_price": float(price)}
                    )
                    updated += 1
                    break

        logger.info(f"Applied {len(quotes)} quotes to {updated} records")
        return updated

    def summarize(
        self, current_prices: Optional[Mapping[str, float]] = None
    ) -> List[PositionSummary]:
        """Per-ticker positions, largest market value first."""
        return summarize_positions(self._records, current_prices)

    def totals(
        self, current_prices: Optional[Mapping[str, float]] = None
    ) -> PortfolioTotals:
        return compute_portfolio_totals(self.summarize(current_prices))
