"""
Summary coalescer.

Fills in exactly one missing field of the subtotal / tax / total triangle
from the other two, inside sanity bounds. Out-of-bounds values leave the
field unset.
"""

import logging
from decimal import Decimal

from ..schemas.receipt import ReceiptData, quantize_money

logger = logging.getLogger(__name__)

# Slack for OCR rounding when checking the tax bound
_SLACK = Decimal("0.01")


def coalesce_summary(
    data: ReceiptData,
    *,
    max_tax_rate: float = 0.35,
    min_subtotal_ratio: float = 0.80,
) -> ReceiptData:
    """Return a copy of data with at most one inferred summary field.

    Rules:
    - subtotal + total, no tax: tax = total - subtotal, only when the implied
      rate is within [0, max_tax_rate] of subtotal
    - total + tax, no subtotal: subtotal = total - tax, only when it is not
      below min_subtotal_ratio of the item sum
    - subtotal + tax, no total: total = subtotal + tax (always)

    Running this twice yields the same result as running it once.
    """
    subtotal, tax, total = data.subtotal, data.tax, data.total

    if subtotal is not None and total is not None and tax is None:
        diff = quantize_money(total - subtotal)
        max_tax = subtotal * Decimal(str(max_tax_rate))
        if -_SLACK <= diff <= max_tax + _SLACK:
            tax = max(diff, Decimal("0.00"))
            logger.debug("Inferred tax %s from total - subtotal", tax)
        else:
            logger.debug("Rejected inferred tax %s (subtotal %s)", diff, subtotal)

    elif total is not None and tax is not None and subtotal is None:
        candidate = quantize_money(total - tax)
        floor = data.items_sum * Decimal(str(min_subtotal_ratio))
        if candidate >= 0 and candidate >= floor:
            subtotal = candidate
            logger.debug("Inferred subtotal %s from total - tax", subtotal)

    elif subtotal is not None and tax is not None and total is None:
        total = quantize_money(subtotal + tax)
        logger.debug("Inferred total %s from subtotal + tax", total)

    if (subtotal, tax, total) == (data.subtotal, data.tax, data.total):
        return data
    return data.with_summary(subtotal=subtotal, tax=tax, total=total)
