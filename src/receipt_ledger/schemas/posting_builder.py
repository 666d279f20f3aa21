"""
Posting builder and auto-balancer (SSOT).

This module provides the SINGLE canonical implementation for turning a
structured receipt into double-entry postings, and for forcing a
free-form posting list to net to zero.

Core Invariants:
- sum(postings.amount) == 0 within the balance epsilon for every returned list
- Posting order follows item order, regardless of resolver completion order
- Corrections only ever change amounts, never which accounts appear
- Corrections are deterministic: the smallest-magnitude item or tax posting
  absorbs any residual (first one wins on ties), never simply the last line

Sign Convention (SSOT):
- expense / asset / liability / transfer: items positive, payment negative
- income: payment positive, items negative
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from .receipt import CURRENCY_PRECISION, ReceiptData, quantize_money

logger = logging.getLogger(__name__)

# Maximum |sum| accepted as balanced
BALANCE_EPSILON = Decimal("0.005")

DEFAULT_PAYMENT_ACCOUNT = "Assets:Cash"
MISC_ACCOUNT = "Expenses:Misc"

OPENING_BALANCE_MARKERS = ("opening", "initial", "starting")


class TransactionType(str, Enum):
    """Direction of a receipt-derived transaction."""

    EXPENSE = "expense"
    INCOME = "income"
    ASSET = "asset"
    LIABILITY = "liability"
    TRANSFER = "transfer"
    OPENING_BALANCE = "opening_balance"
    INITIAL_BALANCE = "initial_balance"


class PostingBalanceError(Exception):
    """Raised when a posting set cannot be balanced."""

    pass


@dataclass(frozen=True)
class Posting:
    """One signed line of a double-entry transaction."""

    account: str
    amount: Decimal
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return {"account": self.account, "amount": str(self.amount), "currency": self.currency}


@dataclass(frozen=True)
class DraftPosting:
    """A posting whose amount may still be unknown (None)."""

    account: str
    amount: Decimal | None
    currency: str


# resolver(description, vendor=..., business=..., price=..., transaction_type=...)
CategoryResolver = Callable[..., Union[str, Awaitable[str]]]


def postings_sum(postings: Sequence[Posting]) -> Decimal:
    """Signed sum of posting amounts."""
    return sum((p.amount for p in postings), Decimal("0"))


def is_balanced(postings: Sequence[Posting], epsilon: Decimal = BALANCE_EPSILON) -> bool:
    return abs(postings_sum(postings)) <= epsilon


def map_payment_method_to_account(payment: str | None, business: str = "Personal") -> str:
    """Turn a free-text payment method into an account path.

    Account paths (anything containing ':') are returned unchanged.

    Examples:
        >>> map_payment_method_to_account("credit card", "MyBrick")
        'Liabilities:MyBrick:Debt:CreditCard'
        >>> map_payment_method_to_account("Assets:Bank:Kasikorn:Personal")
        'Assets:Bank:Kasikorn:Personal'
    """
    if not payment:
        return DEFAULT_PAYMENT_ACCOUNT
    if ":" in payment:
        return payment.strip()

    method = payment.lower()
    # Credit card first; "card" alone is treated as credit
    if "credit" in method or "card" in method:
        return f"Liabilities:{business}:Debt:CreditCard"
    if "bank" in method or "kasikorn" in method or "kbank" in method:
        bank = "Kasikorn" if ("kasikorn" in method or "kbank" in method) else "Bank"
        return f"Assets:Bank:{bank}:{business}"
    return DEFAULT_PAYMENT_ACCOUNT


def is_opening_balance(receipt: ReceiptData) -> bool:
    """True if any item description looks like an opening balance."""
    return any(
        marker in item.description.lower()
        for item in receipt.items
        for marker in OPENING_BALANCE_MARKERS
    )


async def _resolve(resolver: CategoryResolver, description: str, **context: Any) -> str:
    result = resolver(description, **context)
    if inspect.isawaitable(result):
        result = await result
    return result


def _correct_balance(
    postings: list[Posting],
    line_indices: list[int],
    currency: str,
    epsilon: Decimal = BALANCE_EPSILON,
) -> list[Posting]:
    """Push any residual into the smallest-magnitude item or tax posting.

    The payment posting never absorbs the residual.
    """
    residual = postings_sum(postings)
    if abs(residual) <= epsilon:
        return postings

    if not line_indices:
        logger.debug("No item or tax postings to absorb %s, adding %s", residual, MISC_ACCOUNT)
        postings.append(Posting(MISC_ACCOUNT, quantize_money(-residual), currency))
        return postings

    # min() returns the first minimum, keeping ties deterministic
    target = min(line_indices, key=lambda i: abs(postings[i].amount))
    adjusted = (postings[target].amount - residual).quantize(CURRENCY_PRECISION)
    logger.debug(
        "Balancing residual %s absorbed by %s (%s -> %s)",
        residual,
        postings[target].account,
        postings[target].amount,
        adjusted,
    )
    postings[target] = replace(postings[target], amount=adjusted)
    return postings


async def build_postings(
    receipt: ReceiptData,
    resolver: CategoryResolver,
    payment_account: str | None = DEFAULT_PAYMENT_ACCOUNT,
    currency: str = "THB",
    *,
    vendor: str | None = None,
    business: str = "Personal",
    include_tax_line: bool = False,
    transaction_type: TransactionType | str = TransactionType.EXPENSE,
    epsilon: Decimal = BALANCE_EPSILON,
) -> list[Posting]:
    """Build balanced postings from a structured receipt.

    Items are resolved concurrently; output order always matches item order.

    Args:
        receipt: Parsed (and ideally coalesced) receipt
        resolver: Category resolver, sync or async, returning an account path
        payment_account: Account path or free-text payment method
        currency: 3-letter currency code for every posting
        vendor: Vendor context passed to the resolver
        business: Business context passed to the resolver and payment mapping
        include_tax_line: Split the tax into its own posting when present
        transaction_type: Sign convention (see module docstring)
        epsilon: Residual tolerated without correction

    Returns:
        Postings whose amounts sum to zero within epsilon
    """
    tx_type = TransactionType(transaction_type)
    payment = map_payment_method_to_account(payment_account, business)

    if is_opening_balance(receipt) and tx_type in (
        TransactionType.ASSET,
        TransactionType.OPENING_BALANCE,
        TransactionType.INITIAL_BALANCE,
    ):
        total = quantize_money(receipt.total or receipt.subtotal or 0)
        logger.info("Opening balance detected, total %s", total)
        return [
            Posting(payment, total, currency),
            Posting(f"Equity:{business}:Opening-Balances", -total, currency),
        ]

    context = {"vendor": vendor, "business": business, "transaction_type": tx_type.value}
    accounts = await asyncio.gather(
        *(
            _resolve(resolver, item.description, price=item.price, **context)
            for item in receipt.items
        )
    )
    lines = [
        Posting(account, quantize_money(item.price), currency)
        for account, item in zip(accounts, receipt.items)
    ]

    if include_tax_line and receipt.tax is not None and receipt.tax > 0:
        tax_account = await _resolve(resolver, "tax", price=receipt.tax, **context)
        lines.append(Posting(tax_account, quantize_money(receipt.tax), currency))

    lines_sum = postings_sum(lines)
    total = quantize_money(
        receipt.total if receipt.total is not None
        else receipt.subtotal if receipt.subtotal is not None
        else lines_sum
    )

    if tx_type == TransactionType.INCOME:
        postings = [Posting(payment, total, currency)]
        postings.extend(replace(p, amount=-p.amount) for p in lines)
        line_indices = list(range(1, 1 + len(lines)))
    else:
        postings = list(lines)
        postings.append(Posting(payment, -total, currency))
        line_indices = list(range(len(lines)))

    return _correct_balance(postings, line_indices, currency, epsilon)


def auto_balance(
    postings: Sequence[DraftPosting | Posting],
    *,
    epsilon: Decimal = BALANCE_EPSILON,
) -> list[Posting]:
    """Force a posting list with at most one unknown amount to net to zero.

    - One unknown amount: it becomes the negative of the sum of the others
    - No unknown amount and |sum| > epsilon: the final line absorbs the residual

    Raises:
        PostingBalanceError: If the list is empty or has more than one unknown
    """
    if not postings:
        raise PostingBalanceError("Cannot balance an empty posting list")

    known_sum = sum(
        (quantize_money(p.amount) for p in postings if p.amount is not None),
        Decimal("0"),
    )
    unknown = [i for i, p in enumerate(postings) if p.amount is None]

    if len(unknown) > 1:
        raise PostingBalanceError(
            f"Cannot balance entry with {len(unknown)} unknown amounts "
            f"(current total {known_sum})"
        )

    result = [
        Posting(p.account, quantize_money(p.amount) if p.amount is not None else Decimal("0"), p.currency)
        for p in postings
    ]

    if unknown:
        idx = unknown[0]
        result[idx] = replace(result[idx], amount=quantize_money(-known_sum))
        return result

    if abs(known_sum) > epsilon:
        last = result[-1]
        result[-1] = replace(last, amount=quantize_money(last.amount - known_sum))
        logger.debug("Adjusted final posting %s by %s", last.account, -known_sum)

    return result
