"""
Transaction Data Models

Defines data structures for lot records, buy/sell orders and the derived
per-ticker position views.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def normalize_ticker(ticker: str) -> str:
    """Trim and upper-case a ticker symbol."""
    return (ticker or "").strip().upper()


def _parse_iso_date(v):
    """Accept ISO dates and ISO timestamps (time part is dropped)."""
    if isinstance(v, str):
        v = v.strip()
        if "T" in v:
            v = v.split("T", 1)[0]
    return v


class TransactionRecord(BaseModel):
    """
    One buy lot, possibly partially or fully consumed by later sells.

    Stored documents use camelCase keys (buyDate, sellQty, ...); both the
    alias and the field name are accepted when loading.

    Attributes:
        id: Opaque unique identifier, never reused
        ticker: Security identifier, trimmed and upper-cased
        name: Display name (may be empty)
        buy_date: Date of the buy leg
        buy_price: Price per share paid
        buy_qty: Shares this record represents
        reason: Free-text rationale, not used in computation
        sell_date: Date of the sell leg (present once sold)
        sell_price: Price per share received
        sell_qty: Shares of this record that have been sold
        current_price: Latest known market price
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str
    ticker: str
    name: str = ""
    buy_date: date
    buy_price: float = Field(ge=0, allow_inf_nan=False)
    buy_qty: int = Field(gt=0)
    reason: str = ""
    sell_date: Optional[date] = None
    sell_price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    sell_qty: Optional[int] = Field(default=None, ge=0)
    current_price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, v):
        """Normalize ticker and ensure it is not empty."""
        v = normalize_ticker(v)
        if not v:
            raise ValueError("Ticker cannot be empty")
        return v

    @field_validator("buy_date", "sell_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        return _parse_iso_date(v)

    @field_validator("name", "reason", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @model_validator(mode="after")
    def check_sell_qty(self):
        """Sold quantity can never exceed the lot size."""
        if self.sell_qty is not None and self.sell_qty > self.buy_qty:
            raise ValueError(
                f"sell_qty ({self.sell_qty}) cannot exceed buy_qty ({self.buy_qty})"
            )
        return self

    @property
    def sold_qty(self) -> int:
        return self.sell_qty or 0

    @property
    def remaining_qty(self) -> int:
        return self.buy_qty - self.sold_qty

    @property
    def status(self) -> Literal["open", "partial", "closed"]:
        if self.sold_qty == 0:
            return "open"
        if self.sold_qty == self.buy_qty:
            return "closed"
        return "partial"

    def to_document(self) -> dict:
        """Serialize to the camelCase document stored by the persistence layer."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class BuyOrder(BaseModel):
    """
    A validated request to buy shares.

    Attributes:
        ticker: Security identifier (normalized)
        name: Display name
        trade_date: Trade date
        price: Price per share
        quantity: Number of shares, positive integer
        reason: Free-text rationale
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    ticker: str
    name: str = ""
    trade_date: date
    price: float = Field(ge=0, allow_inf_nan=False)
    quantity: int = Field(gt=0)
    reason: str = ""

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, v):
        """Normalize ticker and ensure it is not empty."""
        v = normalize_ticker(v)
        if not v:
            raise ValueError("Ticker cannot be empty")
        return v

    @field_validator("trade_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        return _parse_iso_date(v)

    @field_validator("name", "reason", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class SellOrder(BaseModel):
    """A validated request to sell shares (FIFO against open lots)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    ticker: str
    trade_date: date
    price: float = Field(ge=0, allow_inf_nan=False)
    quantity: int = Field(gt=0)

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, v):
        """Normalize ticker and ensure it is not empty."""
        v = normalize_ticker(v)
        if not v:
            raise ValueError("Ticker cannot be empty")
        return v

    @field_validator("trade_date", mode="before")
    @classmethod
    def parse_date(cls, v):
        return _parse_iso_date(v)


class PositionSummary(BaseModel):
    """
    Aggregated position for one ticker, derived from its records.

    Never stored; recomputed from the record list on every request.
    """

    ticker: str
    name: str = ""
    total_shares: int = 0
    total_cost: float = 0.0
    avg_cost: float = 0.0
    current_price: float = 0.0
    market_value: float = 0.0
    unrealized_pl: float = 0.0
    realized_pl: float = 0.0
    record_count: int = 0

    @property
    def unrealized_pl_percent(self) -> float:
        if self.total_cost <= 0:
            return 0.0
        return self.unrealized_pl / self.total_cost * 100


class PortfolioTotals(BaseModel):
    """Portfolio-wide sums over all position summaries."""

    total_cost: float = 0.0
    market_value: float = 0.0
    unrealized_pl: float = 0.0
    realized_pl: float = 0.0
    position_count: int = 0


class ValuationOverlay(BaseModel):
    """
    AI-estimated valuation for a ticker.

    Kept outside the ledger; merged with position summaries only when a
    report is rendered.
    """

    ticker: str
    cheap_price: Optional[float] = None
    fair_price: Optional[float] = None
    expensive_price: Optional[float] = None
    target_price: Optional[float] = None
    updated_at: Optional[str] = None

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, v):
        return normalize_ticker(v)
