"""
Canonical structured-receipt schema (SSOT).

Every parse strategy produces a ReceiptData; every downstream stage
(coalescer, validator, scorer, posting builder) consumes one.

Amount convention:
- Item prices are non-negative at parse time
- Signs are applied later by the posting builder
- All amounts are Decimal quantized to CURRENCY_PRECISION with ROUND_HALF_UP
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

# Rounding precision for currency amounts
CURRENCY_PRECISION = Decimal("0.01")


def quantize_money(value: Decimal | float | int | str) -> Decimal:
    """Convert to Decimal and round half-up to two places."""
    if isinstance(value, float):
        value = Decimal(str(value))
    elif not isinstance(value, Decimal):
        value = Decimal(str(value).strip())
    return value.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ReceiptItem:
    """A single purchased line."""

    description: str
    price: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"description": self.description, "price": str(self.price)}


@dataclass(frozen=True)
class SectionRange:
    """Line indices of the item and summary blocks (for debugging parses)."""

    items_start: int
    items_end: int
    summary_start: int
    summary_end: int

    def to_dict(self) -> dict[str, int]:
        return {
            "items_start": self.items_start,
            "items_end": self.items_end,
            "summary_start": self.summary_start,
            "summary_end": self.summary_end,
        }


@dataclass
class ReceiptData:
    """Items plus summary fields recovered from one text candidate.

    Once coalesced, if subtotal, tax and total are all present then
    subtotal + tax == total within tolerance. This is checked by the
    math validator, never assumed.
    """

    items: list[ReceiptItem] = field(default_factory=list)
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    total: Decimal | None = None
    raw_lines: list[str] = field(default_factory=list)
    section: SectionRange | None = None

    @property
    def items_sum(self) -> Decimal:
        return sum((item.price for item in self.items), Decimal("0"))

    def with_summary(
        self,
        *,
        subtotal: Decimal | None,
        tax: Decimal | None,
        total: Decimal | None,
    ) -> ReceiptData:
        """Return a copy with replaced summary fields."""
        return replace(self, subtotal=subtotal, tax=tax, total=total)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "subtotal": str(self.subtotal) if self.subtotal is not None else None,
            "tax": str(self.tax) if self.tax is not None else None,
            "total": str(self.total) if self.total is not None else None,
            "raw_lines": list(self.raw_lines),
            "section": self.section.to_dict() if self.section else None,
        }
