"""
SmartStock Ledger

FIFO lot tracking and cost-basis P&L for a personal stock portfolio.
"""

__version__ = "0.1.0"
