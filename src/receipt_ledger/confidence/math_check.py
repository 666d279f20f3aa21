"""
Receipt math validation.

Reports, never fixes: correction belongs to the posting builder.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from ..schemas.receipt import ReceiptData, ReceiptItem, quantize_money

DEFAULT_THRESHOLD = Decimal("0.05")

# Item descriptions that are really summary/tender rows
NON_ITEM_MARKERS = ("SUBTOTAL", "TAX", "TOTAL", "DEBIT TEND", "CHANGE DUE")


@dataclass
class ReceiptMathValidation:
    """Outcome of checking the items / subtotal / tax / total relations."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    items_sum: Decimal = Decimal("0.00")
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    total: Optional[Decimal] = None
    expected_total: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    threshold: Decimal = DEFAULT_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        def fmt(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "items_sum": str(self.items_sum),
            "subtotal": fmt(self.subtotal),
            "tax": fmt(self.tax),
            "total": fmt(self.total),
            "expected_total": fmt(self.expected_total),
            "difference": fmt(self.difference),
            "threshold": str(self.threshold),
        }


def is_summary_item(item: ReceiptItem) -> bool:
    description = item.description.upper()
    return any(marker in description for marker in NON_ITEM_MARKERS)


def _find_in_items(items: list[ReceiptItem], keyword: str) -> Optional[Decimal]:
    for item in items:
        if keyword in item.description.upper():
            return item.price
    return None


def validate_receipt_math(
    data: ReceiptData,
    threshold: Decimal | float = DEFAULT_THRESHOLD,
) -> ReceiptMathValidation:
    """Check item sum against subtotal and subtotal + tax against total.

    Summary fields missing from the structured data fall back to items whose
    description names the field (an OCR row the parser mistook for an item);
    tax defaults to zero.
    """
    threshold = Decimal(str(threshold))
    items_sum = quantize_money(
        sum((i.price for i in data.items if not is_summary_item(i)), Decimal("0"))
    )

    subtotal = data.subtotal if data.subtotal is not None else _find_in_items(data.items, "SUBTOTAL")
    tax = data.tax if data.tax is not None else _find_in_items(data.items, "TAX")
    if tax is None:
        tax = Decimal("0.00")
    total = data.total if data.total is not None else _find_in_items(data.items, "TOTAL")

    errors: list[str] = []
    expected_total: Optional[Decimal] = None
    difference: Optional[Decimal] = None

    if subtotal is not None and abs(items_sum - subtotal) > threshold:
        errors.append(f"Item sum ({items_sum:.2f}) ≠ subtotal ({subtotal:.2f})")

    if subtotal is not None and total is not None:
        expected_total = quantize_money(subtotal + tax)
        if abs(expected_total - total) > threshold:
            difference = quantize_money(expected_total - total)
            errors.append(f"Subtotal + tax ({expected_total:.2f}) ≠ total ({total:.2f})")

    return ReceiptMathValidation(
        is_valid=not errors,
        errors=errors,
        items_sum=items_sum,
        subtotal=subtotal,
        tax=tax,
        total=total,
        expected_total=expected_total,
        difference=difference,
        threshold=threshold,
    )
