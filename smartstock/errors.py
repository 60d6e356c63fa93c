"""
Ledger Exceptions

Errors raised by the lot ledger. Both leave the ledger exactly as it was
before the failing call.
"""


class LedgerError(Exception):
    """Base class for ledger errors."""


class ValidationError(LedgerError, ValueError):
    """Raised when a buy or sell request carries invalid input."""

    def __init__(self, message: str, field: str = ""):
        self.field = field
        super().__init__(message)


class InsufficientSharesError(LedgerError):
    """Raised when a sell asks for more shares than are currently open."""

    def __init__(self, ticker: str, requested: int, available: int):
        self.ticker = ticker
        self.requested = requested
        self.available = available
        super().__init__(self._format_error_message())

    @property
    def shortfall(self) -> int:
        return self.requested - self.available

    def _format_error_message(self) -> str:
        """Format error message with the exact shortfall."""
        lines = [
            f"Insufficient shares of {self.ticker}",
            f"   Requested: {self.requested} shares",
            f"   Available: {self.available} shares",
            f"   Short by:  {self.shortfall} shares",
        ]
        return "\n".join(lines)
