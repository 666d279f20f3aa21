"""
Base parse-strategy interface and the shared line-scan algorithm.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from ..schemas.receipt import ReceiptData, ReceiptItem, SectionRange
from .money import SUMMARY_START_RE, split_lines, subtotal_amount


class ParseStrategy(ABC):
    """
    Base class for all receipt parse strategies.

    Each strategy turns ONE text candidate into a ReceiptData:
    - Line-item receipts (supermarket style)
    - Multi-column invoices
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name for logging and provenance."""
        pass

    @abstractmethod
    def parse(self, text: str) -> Optional[ReceiptData]:
        """
        Parse one text candidate.

        Returns:
            ReceiptData (possibly without items), or None if the text has no lines
        """
        pass


class LineScanStrategy(ParseStrategy):
    """
    Three-phase scan shared by the built-in strategies.

    1. Items block: from the first item-shaped line until the first summary
       row (SUBTOTAL, or TAX/TOTAL when the receipt prints no subtotal)
    2. Summary block: from that row until the grand TOTAL
    3. Single-pass fallback when phase 1 produced no items

    Subclasses supply the line predicates and extractors.
    """

    # Regex source for a money token; used for the SUBTOTAL amount
    money: str = ""

    @abstractmethod
    def is_item_line(self, line: str) -> bool:
        """Line carries a price near its end and is not a summary row."""
        pass

    @abstractmethod
    def parse_item(self, line: str) -> Optional[ReceiptItem]:
        pass

    @abstractmethod
    def parse_tax(self, line: str) -> Optional[Decimal]:
        pass

    @abstractmethod
    def parse_total(self, line: str) -> Optional[Decimal]:
        """Grand total on this line, if it is a grand-total line."""
        pass

    def find_items_start(self, lines: list[str]) -> int:
        for i, line in enumerate(lines):
            if self.is_item_line(line):
                return i
        return -1

    def parse(self, text: str) -> Optional[ReceiptData]:
        lines = split_lines(text or "")
        if not lines:
            return None

        items: list[ReceiptItem] = []
        subtotal: Optional[Decimal] = None
        tax: Optional[Decimal] = None
        total: Optional[Decimal] = None

        items_start = self.find_items_start(lines)
        items_end = summary_start = summary_end = -1

        if items_start != -1:
            for i in range(items_start, len(lines)):
                line = lines[i]
                if SUMMARY_START_RE.search(line):
                    items_end = i - 1
                    summary_start = i
                    break
                if self.is_item_line(line):
                    item = self.parse_item(line)
                    if item:
                        items.append(item)

        if summary_start != -1:
            for i in range(summary_start, len(lines)):
                line = lines[i]
                found = subtotal_amount(line, self.money)
                if found is not None:
                    subtotal = found
                line_tax = self.parse_tax(line)
                if line_tax is not None:
                    tax = line_tax
                line_total = self.parse_total(line)
                if line_total is not None:
                    total = line_total
                    summary_end = i
                    break

        if not items:
            items, subtotal, tax, total = self._single_pass(lines, subtotal, tax, total)

        section = None
        if items_start != -1:
            summary_start_final = summary_start if summary_start != -1 else items_start
            section = SectionRange(
                items_start=items_start,
                items_end=items_end if items_end != -1 else items_start,
                summary_start=summary_start_final,
                summary_end=summary_end if summary_end != -1 else summary_start_final,
            )

        return ReceiptData(
            items=items,
            subtotal=subtotal,
            tax=tax,
            total=total,
            raw_lines=lines,
            section=section,
        )

    def _single_pass(
        self,
        lines: list[str],
        subtotal: Optional[Decimal],
        tax: Optional[Decimal],
        total: Optional[Decimal],
    ) -> tuple[list[ReceiptItem], Optional[Decimal], Optional[Decimal], Optional[Decimal]]:
        """Everything before the first summary keyword is an item candidate, the rest summary."""
        items: list[ReceiptItem] = []
        reached_summary = False
        for line in lines:
            if not reached_summary and SUMMARY_START_RE.search(line):
                reached_summary = True
            if not reached_summary:
                if self.is_item_line(line):
                    item = self.parse_item(line)
                    if item:
                        items.append(item)
            else:
                found = subtotal_amount(line, self.money)
                if found is not None:
                    subtotal = found
                line_tax = self.parse_tax(line)
                if line_tax is not None:
                    tax = line_tax
                if total is None:
                    total = self.parse_total(line)
        return items, subtotal, tax, total
