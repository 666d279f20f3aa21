"""
Business-name normalization for account paths.

"my brick", "MyBrick" and "Keha Srisuk Co., Ltd" must each yield one stable
account segment, otherwise the same tenant ends up split across ledgers.
"""

import re
from collections.abc import Iterable

DEFAULT_BUSINESS = "Personal"

_COMPANY_SUFFIX = re.compile(
    r"[\s,]+(co\.?,?\s*ltd\.?|company(\s+limited)?|co\.?|ltd\.?|inc\.?|llc|corp\.?)$",
    re.IGNORECASE,
)
_NON_WORD = re.compile(r"[^0-9A-Za-z]+")


def to_account_segment(name: str) -> str:
    """
    PascalCase a free-text business name into one account segment.

    Examples:
        >>> to_account_segment("keha srisuk co., ltd")
        'KehaSrisuk'
        >>> to_account_segment("MyBrick")
        'MyBrick'
    """
    stripped = _COMPANY_SUFFIX.sub("", name.strip())
    words = [w for w in _NON_WORD.split(stripped) if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def normalize_business_name(
    name: str | None,
    known_contexts: Iterable[str] = (),
) -> str:
    """Return the canonical business segment for name.

    Known business contexts win (case- and spacing-insensitive); anything
    else is PascalCased. Empty input maps to the default business.
    """
    if not name or not name.strip():
        return DEFAULT_BUSINESS

    key = _NON_WORD.sub("", name).lower()
    for known in known_contexts:
        if _NON_WORD.sub("", known).lower() == key:
            return known

    return to_account_segment(name) or DEFAULT_BUSINESS
