"""
FIFO Lot Consumption

Applies a sell against the open lots of a ticker, oldest buy first.
Pure: the input list and its records are never mutated.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Sequence
import logging
import math
import uuid

from .errors import InsufficientSharesError, ValidationError
from .transaction_models import TransactionRecord, normalize_ticker

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    """Generate a fresh record identifier."""
    return uuid.uuid4().hex


@dataclass
class LotFill:
    """Shares taken from one lot by a sell."""
    record_id: str
    quantity: int
    buy_date: date
    buy_price: float
    sell_price: float
    split_record_id: Optional[str] = None

    @property
    def realized_pl(self) -> float:
        return (self.sell_price - self.buy_price) * self.quantity


@dataclass
class SellOutcome:
    """Result of a successful FIFO sell."""
    ticker: str
    quantity: int
    sell_price: float
    sell_date: date
    records: List[TransactionRecord]
    fills: List[LotFill] = field(default_factory=list)

    @property
    def realized_pl(self) -> float:
        return sum(fill.realized_pl for fill in self.fills)

    @property
    def cost_basis(self) -> float:
        return sum(fill.buy_price * fill.quantity for fill in self.fills)


def open_quantity(records: Sequence[TransactionRecord], ticker: str) -> int:
    """Sum of unsold shares across a ticker's records."""
    ticker = normalize_ticker(ticker)
    return sum(r.remaining_qty for r in records if r.ticker == ticker)


def apply_fifo_sell(
    records: Sequence[TransactionRecord],
    ticker: str,
    sell_date: date,
    sell_price: float,
    quantity: int,
    id_factory: Callable[[], str] = new_record_id,
) -> SellOutcome:
    """
    Consume `quantity` shares of `ticker` from its open lots, earliest buy first.

    A lot whose whole remainder is taken and that had never been sold is
    closed in place. Any other consumption splits the lot: the original
    record keeps the leftover (its buy_qty shrinks by the amount taken) and
    a new closed record holding the sold shares is appended. Lots sharing a
    buy date are consumed in list order.

    Args:
        records: Current record list
        ticker: Ticker to sell (normalized here)
        sell_date: Date of the sell
        sell_price: Price per share received
        quantity: Shares to sell, positive

    Returns:
        SellOutcome holding the new record list and the per-lot fills

    Raises:
        ValidationError: If `quantity` is not positive, `sell_price` is
            negative or not finite, or `ticker` is empty
        InsufficientSharesError: If open shares are fewer than `quantity`
    """
    ticker = normalize_ticker(ticker)

    if not ticker:
        raise ValidationError("Invalid ticker: Ticker cannot be empty", field="ticker")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(
            f"Invalid quantity: must be a positive whole number, got {quantity!r}",
            field="quantity",
        )
    if sell_price is None or not math.isfinite(sell_price) or sell_price < 0:
        raise ValidationError(
            f"Invalid price: must be a non-negative number, got {sell_price!r}",
            field="price",
        )

    candidates = [
        (index, record)
        for index, record in enumerate(records)
        if record.ticker == ticker and record.remaining_qty > 0
    ]
    available = sum(record.remaining_qty for _, record in candidates)

    if available < quantity:
        logger.warning(
            f"Rejected sell of {quantity} {ticker}: only {available} shares open"
        )
        raise InsufficientSharesError(ticker, quantity, available)

    # sorted() is stable, so equal buy dates keep insertion order
    candidates = sorted(candidates, key=lambda item: item[1].buy_date)

    new_records = list(records)
    appended: List[TransactionRecord] = []
    fills: List[LotFill] = []
    left = quantity

    for index, lot in candidates:
        if left <= 0:
            break

        available_qty = lot.remaining_qty
        take = min(available_qty, left)

        if take == available_qty and not lot.sell_qty:
            new_records[index] = lot.model_copy(update={
                "sell_qty": lot.buy_qty,
                "sell_price": sell_price,
                "sell_date": sell_date,
            })
            fills.append(LotFill(
                record_id=lot.id,
                quantity=take,
                buy_date=lot.buy_date,
                buy_price=lot.buy_price,
                sell_price=sell_price,
            ))
        else:
            sold_part = lot.model_copy(update={
                "id": id_factory(),
                "buy_qty": take,
                "sell_qty": take,
                "sell_price": sell_price,
                "sell_date": sell_date,
            })
            new_records[index] = lot.model_copy(update={"buy_qty": lot.buy_qty - take})
            appended.append(sold_part)
            fills.append(LotFill(
                record_id=lot.id,
                quantity=take,
                buy_date=lot.buy_date,
                buy_price=lot.buy_price,
                sell_price=sell_price,
                split_record_id=sold_part.id,
            ))

        logger.debug(f"FIFO: took {take} {ticker} from lot {lot.id} bought {lot.buy_date}")
        left -= take

    new_records.extend(appended)

    outcome = SellOutcome(
        ticker=ticker,
        quantity=quantity,
        sell_price=sell_price,
        sell_date=sell_date,
        records=new_records,
        fills=fills,
    )
    logger.info(
        f"Sold {quantity} {ticker} @ {sell_price} across {len(fills)} lot(s), "
        f"realized P&L {outcome.realized_pl:,.2f}"
    )
    return outcome
