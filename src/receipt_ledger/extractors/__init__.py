"""
Receipt parse strategies and the confidence-scored selector.

Provides:
- ConfidenceSelector / parse_receipt: runs every strategy over every text
  candidate and picks the best parse
- ReceiptLineParser: conventional till receipts
- InvoiceLineParser: multi-column invoices and menu-style bills
- coalesce_summary: conservative subtotal / tax / total inference

Strategies share the money-token grammar in .money and are pluggable.
"""

from .base import LineScanStrategy, ParseStrategy
from .invoice_parser import InvoiceLineParser
from .receipt_parser import ReceiptLineParser
from .router import (
    ConfidenceSelector,
    ParseAttempt,
    ParseFailure,
    ParseOutcome,
    default_strategies,
    parse_receipt,
)
from .summary import coalesce_summary

__all__ = [
    "ConfidenceSelector",
    "InvoiceLineParser",
    "LineScanStrategy",
    "ParseAttempt",
    "ParseFailure",
    "ParseOutcome",
    "ParseStrategy",
    "ReceiptLineParser",
    "coalesce_summary",
    "default_strategies",
    "parse_receipt",
]
