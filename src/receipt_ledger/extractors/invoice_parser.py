"""
Invoice-style strategy.

Targets multi-column invoices and menu-style bills where prices may be bare
integers ("Tom Yum Kung 265"), carry a currency glyph, or be followed by a
currency code. Header/meta rows and date-dominated rows are never items.
"""

import re
from decimal import Decimal
from typing import Optional

from ..schemas.receipt import ReceiptItem
from .base import LineScanStrategy
from .money import (
    LENIENT_MONEY,
    LENIENT_MONEY_RE,
    SUBTOTAL_RE,
    clean_description,
    last_amount,
    last_money,
    parse_money,
)

TRAIL_TOKEN = r"(?:\s+(?:USD|THB|EUR|[A-Za-z0-9%§]{1,4})){0,2}"
END_PUNCT = r"[)\]>»】）]*"
TRAILER = re.compile(rf"^{TRAIL_TOKEN}\s*{END_PUNCT}\s*$", re.IGNORECASE)

# Header labels that must never be considered items
NOT_ITEM_HEADERS = re.compile(
    r"\b(ISSUED\s+TO|BILL\s+TO|SHIP\s+TO|PAY\s+TO|INVOICE\s*NO\.?|INVOICE\s+#|PO\.?|P\.O\."
    r"|RECEIPT\s*(NO|#)?|DATE|DUE\s+DATE|ACCOUNT|BANK|DESCRIPTION\s*UNIT\s*PRICE"
    r"|DESCRIPTION\b|UNIT\s*PRICE|QTY|AMOUNT|TERMS|CONDITIONS)\b",
    re.IGNORECASE,
)

# Date tokens like 11.02.2030 or 26/02/2019
DMY_DOT = re.compile(r"\b\d{1,2}\.\d{1,2}\.\d{2,4}\b")
DMY_SLASH = re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b")
DATE_CONTINUATION = re.compile(r"^\s*\.\d{2,4}\b")

SUMMARY_WORDS = re.compile(r"\b(SUBTOTAL|TOTAL|TAX|VAT|GST)\b", re.IGNORECASE)
TAX_LINE = re.compile(r"\b(TAX|VAT|GST|SALES\s+TAX)\b", re.IGNORECASE)
TOTAL_LONG_FORMS = re.compile(
    r"(GRAND\s+TOTAL|INVOICE\s+TOTAL|TOTAL\s+DUE|AMOUNT\s+DUE|BALANCE\s+DUE|PAY\s+THIS\s+AMOUNT)",
    re.IGNORECASE,
)
TOTAL_SHORT_FORM = re.compile(r"\bTOTAL\b(?!\s*TAX|\s*PURCHASE)", re.IGNORECASE)


def price_near_end(line: str) -> bool:
    """True when the last money token ends the line, allowing a short trailer.

    Examples:
        >>> price_near_end("Pad Thai 180")
        True
        >>> price_near_end("Consulting 1,200.00 USD")
        True
        >>> price_near_end("Due Date 11.02.2030")
        False
    """
    if NOT_ITEM_HEADERS.search(line):
        return False
    if DMY_DOT.search(line) or DMY_SLASH.search(line):
        return False

    last = last_money(line, LENIENT_MONEY_RE)
    if not last:
        return False

    after = line[last.end():]
    if DATE_CONTINUATION.match(after):
        return False
    if not after.strip():
        return True
    if TRAILER.match(after):
        return True
    return len(after.strip()) <= 20 and not LENIENT_MONEY_RE.search(after)


def is_sale_total(line: str) -> bool:
    if TOTAL_LONG_FORMS.search(line):
        return True
    return TOTAL_SHORT_FORM.search(line) is not None


class InvoiceLineParser(LineScanStrategy):
    """Parses invoice rows where the right-most amount is the line total."""

    money = LENIENT_MONEY

    @property
    def name(self) -> str:
        return "invoice"

    def is_item_line(self, line: str) -> bool:
        return price_near_end(line) and not SUMMARY_WORDS.search(line)

    def parse_item(self, line: str) -> Optional[ReceiptItem]:
        last = last_money(line, LENIENT_MONEY_RE)
        if not last:
            return None
        description = clean_description(line[: last.start()] + line[last.end():], max_flag=4)
        if not description:
            return None
        return ReceiptItem(description, parse_money(last.group(0)))

    def parse_tax(self, line: str) -> Optional[Decimal]:
        if not TAX_LINE.search(line):
            return None
        return last_amount(line, LENIENT_MONEY_RE)

    def parse_total(self, line: str) -> Optional[Decimal]:
        if SUBTOTAL_RE.search(line) or not is_sale_total(line):
            return None
        return last_amount(line, LENIENT_MONEY_RE)
