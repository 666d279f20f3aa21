"""
Auto-tagging rule tables.

Thresholds and weights live in receipt_ledger.config.TaggingConfig; this
module only holds the word-level rule data, which is edited far less often.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ContextMismatch:
    """A tag that does not fit an account keyword, with its capped relevance."""

    account: str
    tag: str
    relevance: float
    reason: str


@dataclass(frozen=True)
class RedundantPattern:
    """A tag that only repeats what the account path already says."""

    account: str
    tag: str
    reason: str


CONTEXT_MISMATCHES: tuple[ContextMismatch, ...] = (
    # Food
    ContextMismatch("pantry", "street-food", 0.0, "Pantry items are not street food"),
    ContextMismatch("pantry", "food-court", 0.0, "Pantry items are not from food courts"),
    ContextMismatch("coffee", "street-food", 0.0, "Coffee beans are not street food"),
    ContextMismatch("coffee", "food-court", 0.0, "Coffee beans are not from food courts"),
    ContextMismatch("restaurant", "pantry", 0.1, "Restaurant meals are not pantry items"),
    ContextMismatch("grocery", "street-food", 0.1, "Grocery stores are not street food"),
    ContextMismatch("cafe", "pantry", 0.1, "Cafe items are not pantry items"),
    ContextMismatch("takeout", "pantry", 0.1, "Takeout items are not pantry items"),
    # Location
    ContextMismatch("online", "local", 0.1, "Online purchases are not local"),
    ContextMismatch("local", "online", 0.1, "Local purchases are not online"),
    ContextMismatch("delivery", "local", 0.2, "Delivery may not be local"),
    # Quality
    ContextMismatch("premium", "budget", 0.2, "Premium items are not budget"),
    ContextMismatch("budget", "premium", 0.2, "Budget items are not premium"),
    ContextMismatch("organic", "conventional", 0.2, "Organic items are not conventional"),
    # Business
    ContextMismatch("personal", "business", 0.1, "Personal expenses are not business"),
    ContextMismatch("business", "personal", 0.1, "Business expenses are not personal"),
    # Time of day
    ContextMismatch("breakfast", "dinner", 0.3, "Breakfast items are not dinner"),
    ContextMismatch("lunch", "breakfast", 0.3, "Lunch items are not breakfast"),
    ContextMismatch("dinner", "breakfast", 0.3, "Dinner items are not breakfast"),
    # Misc accounts stay conservative
    ContextMismatch("misc", "coffee", 0.2, "Misc expenses are unlikely to be coffee"),
    ContextMismatch("misc", "condo-fees", 0.2, "Misc expenses are unlikely to be condo fees"),
)

REDUNDANT_PATTERNS: tuple[RedundantPattern, ...] = tuple(
    RedundantPattern(word, word, f"Account path already indicates {word}")
    for word in (
        "pantry",
        "restaurant",
        "grocery",
        "coffee",
        "online",
        "local",
        "cafe",
        "takeout",
        "delivery",
        "premium",
        "budget",
        "organic",
        "conventional",
        "personal",
        "business",
        "breakfast",
        "lunch",
        "dinner",
    )
) + (RedundantPattern("misc", "miscellaneous", "Account path already indicates miscellaneous"),)

STOPWORDS = frozenset(
    {"the", "and", "or", "for", "with", "from", "to", "in", "on", "at", "by", "of", "a", "an"}
)

# Account segments that carry no tagging signal
GENERIC_SEGMENTS = frozenset(
    {"expenses", "personal", "business", "assets", "liabilities", "income", "equity"}
)

# Keywords kept per text
MAX_KEYWORDS = 20
MIN_KEYWORD_LENGTH = 3
