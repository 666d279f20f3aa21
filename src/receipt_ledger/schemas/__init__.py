"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .mappings import (
    AccountPattern,
    AccountType,
    AccountTypePattern,
    BusinessContext,
    MappingResult,
    MappingSource,
    PatternType,
    Tag,
    UserMapping,
    VendorMapping,
)
from .posting_builder import (
    BALANCE_EPSILON,
    CategoryResolver,
    DraftPosting,
    Posting,
    PostingBalanceError,
    TransactionType,
    auto_balance,
    build_postings,
    is_balanced,
    map_payment_method_to_account,
    postings_sum,
)
from .receipt import CURRENCY_PRECISION, ReceiptData, ReceiptItem, SectionRange, quantize_money

__all__ = [
    # Structured receipt (parser output)
    "ReceiptData",
    "ReceiptItem",
    "SectionRange",
    "CURRENCY_PRECISION",
    "quantize_money",
    # Account mappings
    "AccountPattern",
    "AccountType",
    "AccountTypePattern",
    "BusinessContext",
    "MappingResult",
    "MappingSource",
    "PatternType",
    "Tag",
    "UserMapping",
    "VendorMapping",
    # Postings (SSOT for balancing)
    "BALANCE_EPSILON",
    "CategoryResolver",
    "DraftPosting",
    "Posting",
    "PostingBalanceError",
    "TransactionType",
    "auto_balance",
    "build_postings",
    "is_balanced",
    "map_payment_method_to_account",
    "postings_sum",
]
