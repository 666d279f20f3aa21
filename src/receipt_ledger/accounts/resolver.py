"""
Multi-tier account resolver.

Tiers are tried in order and the first hit wins:

1. user      - the user's own description regexes          (0.95)
2. pattern   - stored patterns, static seed rules, tag rules (0.8)
3. vendor    - stored vendor names/regexes, static vendors  (0.7)
4. business  - <Business>:Misc when the business is known   (0.5)
5. fallback  - Expenses:Misc                                 (0.3)

Store reads run in a worker thread and are cached per lookup key. A store
error degrades to the next tier; it never fails the resolution.
"""

import asyncio
import logging
import re
import sqlite3
from collections.abc import Callable, MutableMapping
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from ..config import ResolverConfig
from ..schemas.mappings import (
    AccountPattern,
    AccountType,
    MappingResult,
    MappingSource,
    PatternType,
    UserMapping,
    VendorMapping,
)
from ..schemas.posting_builder import MISC_ACCOUNT
from ..state_store import StateStore
from .business import normalize_business_name
from .cache import Clock, TTLCache
from .static_rules import (
    account_root,
    build_account_from_category,
    find_description_category,
    find_vendor_category,
)
from .tag_rules import TagRule, generate_tag_rules, match_tag_rule

if TYPE_CHECKING:
    from ..spark_ai.service import CategoryEnhancer

logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_CONFIDENCE = 0.95
PATTERN_CONFIDENCE = 0.8
VENDOR_CONFIDENCE = 0.7
BUSINESS_DEFAULT_CONFIDENCE = 0.5
FALLBACK_CONFIDENCE = 0.3
DEFAULT_TYPE_CONFIDENCE = 0.5

# Categories too coarse to be useful on their own
BROAD_CATEGORIES = (
    "Fruit",
    "Vegetables",
    "Meat",
    "Electronics",
    "Clothing",
    "Supplies",
    "Software",
    "Entertainment",
)


def is_broad_account(account: str) -> bool:
    return any(account.endswith(f":{broad}") for broad in BROAD_CATEGORIES)


def splice_business(account: str, business: str) -> str:
    """
    Insert the business segment right after "Expenses".

    Examples:
        >>> splice_business("Expenses:Food:Coffee", "MyBrick")
        'Expenses:MyBrick:Food:Coffee'
        >>> splice_business("Expenses:Taxes:Sales", "MyBrick")
        'Expenses:Taxes:Sales'
    """
    parts = account.split(":")
    if len(parts) < 2 or parts[0] != "Expenses":
        return account
    if parts[1] in (business, "Taxes"):
        return account
    return ":".join([parts[0], business, *parts[1:]])


def _search(pattern: str, text: str, what: str) -> bool:
    """Case-insensitive regex search; an invalid stored pattern never matches."""
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error as e:
        logger.warning("Invalid %s pattern %r skipped: %s", what, pattern, e)
        return False


def _pattern_matches(row: AccountPattern, description: str) -> bool:
    if row.pattern_type == PatternType.EXACT:
        return description == row.pattern.lower().strip()
    if row.pattern_type == PatternType.CONTAINS:
        return row.pattern.lower() in description
    return _search(row.pattern, description, "account")


class AccountResolver:
    """
    Resolves item descriptions to account paths.

    Args:
        store: Mapping tables (read only from here)
        config: Resolver settings (cache TTL, default business)
        enhancer: Optional broad-category enhancer
        clock: Monotonic clock shared by the lookup cache (tests inject one)
    """

    def __init__(
        self,
        store: StateStore,
        config: Optional[ResolverConfig] = None,
        enhancer: Optional["CategoryEnhancer"] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.config = config or ResolverConfig()
        self.enhancer = enhancer
        self._cache: TTLCache[Any] = TTLCache(self.config.cache_ttl_seconds, clock=clock)

    # Cached store access

    async def _cached(self, key: str, load: Callable[[], T], what: str) -> Optional[T]:
        """Run load() in a worker thread, caching by key.

        Returns None (uncached) when the store fails.
        """
        hit, value = self._cache.lookup(key)
        if hit:
            logger.debug("Resolver cache hit: %s", key)
            return value
        try:
            value = await asyncio.to_thread(load)
        except sqlite3.Error as e:
            logger.warning("Failed to read %s, skipping tier: %s", what, e)
            return None
        self._cache.set(key, value)
        return value

    async def known_businesses(self) -> list[str]:
        contexts = await self._cached(
            "business_contexts", self.store.list_business_contexts, "business contexts"
        )
        return [c.business_name for c in contexts or []]

    async def normalize_business(self, business_context: Optional[str]) -> str:
        if not business_context:
            return self.config.default_business
        return normalize_business_name(business_context, await self.known_businesses())

    # Tiers

    async def find_user_mapping(
        self, description: str, business: str, user_id: str
    ) -> Optional[UserMapping]:
        def load() -> Optional[UserMapping]:
            for row in self.store.list_user_mappings(user_id, business):
                if _search(row.description_pattern, description, "user mapping"):
                    return row
            return None

        return await self._cached(
            f"user_mapping:{user_id}:{description}:{business}", load, "user mappings"
        )

    async def find_pattern_mapping(
        self, description: str, business: str
    ) -> Optional[AccountPattern]:
        def load() -> Optional[AccountPattern]:
            for row in self.store.list_account_patterns(business):
                if _pattern_matches(row, description):
                    return row
            return None

        return await self._cached(
            f"pattern_mapping:{description}:{business}", load, "account patterns"
        )

    async def find_vendor_mapping(self, vendor: str, business: str) -> Optional[VendorMapping]:
        def load() -> Optional[VendorMapping]:
            rows = self.store.list_vendor_mappings(business)
            for row in rows:
                if row.vendor_name.lower().strip() == vendor:
                    return row
            for row in rows:
                if row.vendor_pattern and _search(row.vendor_pattern, vendor, "vendor"):
                    return row
            return None

        return await self._cached(
            f"vendor_mapping:{vendor}:{business}", load, "vendor mappings"
        )

    async def business_default_type(self, business: str) -> Optional[AccountType]:
        def load() -> Optional[AccountType]:
            context = self.store.get_business_context(business)
            return context.default_account_type if context else None

        return await self._cached(f"business_default:{business}", load, "business contexts")

    async def tag_rules(self) -> list[TagRule]:
        def load() -> list[TagRule]:
            return generate_tag_rules(self.store.list_active_tags())

        return await self._cached("tag_rules", load, "tags") or []

    # Resolution

    def _from_row(
        self,
        row: AccountPattern | VendorMapping | UserMapping,
        confidence: float,
        source: MappingSource,
        business: str,
    ) -> MappingResult:
        account = row.account_path
        if not row.business_context:
            account = splice_business(account, business)
        return MappingResult(
            account=account,
            account_type=row.account_type,
            confidence=confidence,
            source=source,
            business_context=row.business_context or business,
        )

    def _from_category(
        self, category: str, confidence: float, source: MappingSource, business: str
    ) -> MappingResult:
        return MappingResult(
            account=build_account_from_category(category, business),
            account_type=AccountType.EXPENSE,
            confidence=confidence,
            source=source,
            business_context=business,
        )

    async def _resolve_tiers(
        self,
        description: str,
        vendor: Optional[str],
        business: str,
        user_id: Optional[str],
    ) -> MappingResult:
        if user_id:
            user_row = await self.find_user_mapping(description, business, user_id)
            if user_row:
                return self._from_row(user_row, USER_CONFIDENCE, MappingSource.USER, business)

        pattern_row = await self.find_pattern_mapping(description, business)
        if pattern_row:
            return self._from_row(
                pattern_row, PATTERN_CONFIDENCE, MappingSource.PATTERN, business
            )

        category = find_description_category(description)
        if category is None and self.config.use_tag_rules:
            rule = match_tag_rule(description, await self.tag_rules())
            category = rule.category if rule else None
        if category is not None:
            return self._from_category(
                category, PATTERN_CONFIDENCE, MappingSource.PATTERN, business
            )

        if vendor:
            vendor_row = await self.find_vendor_mapping(vendor, business)
            if vendor_row:
                return self._from_row(
                    vendor_row, VENDOR_CONFIDENCE, MappingSource.VENDOR, business
                )
            category = find_vendor_category(vendor)
            if category is not None:
                return self._from_category(
                    category, VENDOR_CONFIDENCE, MappingSource.VENDOR, business
                )

        default_type = await self.business_default_type(business)
        if default_type is not None:
            return MappingResult(
                account=f"Expenses:{business}:Misc",
                account_type=default_type,
                confidence=BUSINESS_DEFAULT_CONFIDENCE,
                source=MappingSource.BUSINESS_DEFAULT,
                business_context=business,
            )

        return MappingResult(
            account=MISC_ACCOUNT,
            account_type=AccountType.EXPENSE,
            confidence=FALLBACK_CONFIDENCE,
            source=MappingSource.STATIC_FALLBACK,
        )

    async def _enhance(
        self,
        result: MappingResult,
        description: str,
        vendor: Optional[str],
        business: str,
    ) -> MappingResult:
        prefix = f"Expenses:{business}:"
        if not result.account.startswith(prefix):
            return result
        current = result.account[len(prefix):]

        suggestion = await self.enhancer.enhance(description, current, vendor, business)
        if suggestion is None:
            return result
        return MappingResult(
            account=build_account_from_category(suggestion.category, business),
            account_type=result.account_type,
            confidence=result.confidence,
            source=result.source,
            business_context=result.business_context,
            enhanced=True,
        )

    async def resolve_account(
        self,
        description: str,
        vendor: Optional[str] = None,
        business_context: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> MappingResult:
        """
        Resolve one description to an account.

        Args:
            description: Item description (matched lowercased and trimmed)
            vendor: Optional vendor name for the vendor tier
            business_context: Business label; normalized before use
            user_id: Enables the user-mapping tier

        Returns:
            MappingResult from the first tier that matches (never raises for
            store or enhancement failures)
        """
        normalized = description.lower().strip()
        normalized_vendor = vendor.lower().strip() if vendor else None
        business = await self.normalize_business(business_context)

        result = await self._resolve_tiers(normalized, normalized_vendor, business, user_id)

        if (
            self.enhancer is not None
            and self.enhancer.is_enabled
            and result.source != MappingSource.USER
            and is_broad_account(result.account)
        ):
            result = await self._enhance(result, description.strip(), vendor, business)

        logger.debug(
            "Resolved item via %s tier -> %s (%.2f)",
            result.source.value,
            result.account,
            result.confidence,
        )
        return result

    async def detect_account_type(self, description: str) -> tuple[AccountType, float, Optional[str]]:
        """(account_type, confidence, matched pattern); expense at 0.5 by default."""
        patterns = await self._cached(
            "account_type_patterns",
            self.store.list_account_type_patterns,
            "account type patterns",
        )
        normalized = description.lower().strip()
        for row in patterns or []:
            if row.is_active and _search(row.pattern, normalized, "account type"):
                return row.account_type, row.confidence, row.pattern
        return AccountType.EXPENSE, DEFAULT_TYPE_CONFIDENCE, None

    def as_category_resolver(
        self,
        user_id: Optional[str] = None,
        results: Optional[MutableMapping[str, MappingResult]] = None,
    ) -> Callable[..., Any]:
        """
        Adapt resolve_account to the posting builder's resolver signature.

        For non-expense transaction types, resolved Expenses paths (other than
        taxes and user mappings) are re-rooted, e.g. Income:<Business>:...
        If results is given, each MappingResult is recorded by description.
        """

        async def resolve(
            description: str,
            *,
            vendor: Optional[str] = None,
            business: Optional[str] = None,
            transaction_type: str = "expense",
            **_: Any,
        ) -> str:
            result = await self.resolve_account(description, vendor, business, user_id)
            if results is not None:
                results[description] = result
            account = result.account
            root = account_root(transaction_type)
            if (
                root != "Expenses"
                and result.source != MappingSource.USER
                and account.startswith("Expenses:")
                and not account.startswith("Expenses:Taxes:")
            ):
                account = root + account[len("Expenses"):]
            return account

        return resolve

    def invalidate_cache(self) -> None:
        """Drop cached lookups (call after administrative writes)."""
        self._cache.clear()

    def cache_stats(self) -> dict[str, int]:
        return self._cache.stats()

