"""
Dynamic description rules derived from the tag table.

Each active tag becomes a whole-word rule; the tag's category decides
the account category it maps to. Rules are ranked by tag priority.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from ..schemas.mappings import Tag
from .business import to_account_segment

# Food tags are routed into a sub-category by name fragment
_FOOD_SUBTYPES: list[tuple[tuple[str, ...], str]] = [
    (("dairy", "milk", "cheese"), "Food:Dairy"),
    (("meat", "beef", "chicken"), "Food:Meat"),
    (("grain", "bread", "rice"), "Food:Grains"),
    (("fruit", "apple", "banana"), "Food:Fruit"),
    (("vegetable", "tomato", "carrot"), "Food:Vegetables"),
    (("pantry", "jam", "oil"), "Food:Pantry"),
]

_CATEGORY_PREFIXES = {
    "transportation": "Transport",
    "business": "Business",
    "health": "Health",
    "entertainment": "Entertainment",
    "shopping": "Shopping",
    "home": "Home",
    "utilities": "Utilities",
}


@dataclass(frozen=True)
class TagRule:
    """Whole-word tag match -> bare account category."""

    pattern: re.Pattern[str]
    category: str
    priority: int
    tag_name: str


def category_for_tag(tag: Tag) -> str:
    """
    Account category for a tag.

    Examples:
        food / "cheese"       -> Food:Dairy:Cheese
        food / "street-food"  -> Food:StreetFood
        transportation / "bts" -> Transport:Bts
    """
    segment = to_account_segment(tag.name)
    group = (tag.category or "").lower()
    name = tag.name.lower()

    if group == "food":
        for fragments, prefix in _FOOD_SUBTYPES:
            if any(fragment in name for fragment in fragments):
                return f"{prefix}:{segment}"
        return f"Food:{segment}"

    prefix = _CATEGORY_PREFIXES.get(group)
    return f"{prefix}:{segment}" if prefix else segment


def generate_tag_rules(tags: Iterable[Tag]) -> list[TagRule]:
    """Build rules for active tags, highest priority first (stable on ties)."""
    rules = [
        TagRule(
            pattern=re.compile(rf"\b({re.escape(tag.name)})\b", re.IGNORECASE),
            category=category_for_tag(tag),
            priority=tag.priority or 0,
            tag_name=tag.name,
        )
        for tag in tags
        if tag.is_active and tag.name.strip()
    ]
    rules.sort(key=lambda r: -r.priority)
    return rules


def match_tag_rule(description: str, rules: Iterable[TagRule]) -> Optional[TagRule]:
    for rule in rules:
        if rule.pattern.search(description):
            return rule
    return None
