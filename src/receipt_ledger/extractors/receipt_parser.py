"""
Line-item receipt strategy.

Targets conventional till receipts:

    F 0041234567 WHOLE MILK GAL   3.49 N
    BREAD                         2.99
    SUBTOTAL                      6.48
    TAX                           0.45
    TOTAL                         6.93

Prices must carry decimals here; bare integers are left to the invoice strategy.
"""

import re
from decimal import Decimal
from typing import Optional

from ..schemas.receipt import ReceiptItem
from .base import LineScanStrategy
from .money import (
    STRICT_MONEY,
    STRICT_MONEY_RE,
    SUBTOTAL_RE,
    SUMMARY_KEYWORD_RE,
    TRAIL_FLAG,
    clean_description,
    last_amount,
    parse_money,
)

MONEY_AT_END_WITH_FLAG = re.compile(rf"({STRICT_MONEY}){TRAIL_FLAG}$", re.IGNORECASE)

# [flag letter] [5+ digit SKU] description price [flag]
ITEM_FORMAT = re.compile(
    rf"^(?:[A-Z]\s+)?(?:[0-9]{{5,}}\s+)?(.+?)\s+({STRICT_MONEY}){TRAIL_FLAG}$",
    re.IGNORECASE,
)

TAX_LINE = re.compile(r"\bTAX\b", re.IGNORECASE)
GRAND_TOTAL = re.compile(rf"\bTOTAL\b(?!\s*TAX)\s+({STRICT_MONEY})\s*$", re.IGNORECASE)


def is_price_line(line: str) -> bool:
    return MONEY_AT_END_WITH_FLAG.search(line) is not None


class ReceiptLineParser(LineScanStrategy):
    """Parses SKU/flag-prefixed receipt rows with a trailing decimal price."""

    money = STRICT_MONEY

    @property
    def name(self) -> str:
        return "receipt"

    def is_item_line(self, line: str) -> bool:
        return is_price_line(line) and not SUMMARY_KEYWORD_RE.search(line)

    def parse_item(self, line: str) -> Optional[ReceiptItem]:
        m = ITEM_FORMAT.match(line)
        if m:
            return ReceiptItem(clean_description(m.group(1)), parse_money(m.group(2)))

        # Looser fallback: anything followed by a trailing money token
        last = MONEY_AT_END_WITH_FLAG.search(line)
        if not last:
            return None
        description = clean_description(line[: last.start()])
        if not description or SUMMARY_KEYWORD_RE.search(description):
            return None
        return ReceiptItem(description, parse_money(last.group(1)))

    def parse_tax(self, line: str) -> Optional[Decimal]:
        if not TAX_LINE.search(line):
            return None
        return last_amount(line, STRICT_MONEY_RE)

    def parse_total(self, line: str) -> Optional[Decimal]:
        # "SUB-TOTAL" has a word boundary before TOTAL
        if SUBTOTAL_RE.search(line):
            return None
        m = GRAND_TOTAL.search(line)
        return parse_money(m.group(1)) if m else None
