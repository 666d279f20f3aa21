"""
Account resolution: description/vendor/business -> ledger account path.
"""

from .business import DEFAULT_BUSINESS, normalize_business_name, to_account_segment
from .cache import TTLCache
from .resolver import BROAD_CATEGORIES, AccountResolver, is_broad_account, splice_business
from .static_rules import build_account_from_category, map_account_static
from .tag_rules import TagRule, generate_tag_rules, match_tag_rule

__all__ = [
    "AccountResolver",
    "BROAD_CATEGORIES",
    "DEFAULT_BUSINESS",
    "TTLCache",
    "TagRule",
    "build_account_from_category",
    "generate_tag_rules",
    "is_broad_account",
    "map_account_static",
    "match_tag_rule",
    "normalize_business_name",
    "splice_business",
    "to_account_segment",
]
