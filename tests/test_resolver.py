"""Tests for the multi-tier account resolver."""

import asyncio
import logging
import sqlite3
from unittest.mock import patch

import pytest

from receipt_ledger.accounts import AccountResolver, is_broad_account, splice_business
from receipt_ledger.config import ResolverConfig
from receipt_ledger.schemas import AccountType, MappingSource
from receipt_ledger.spark_ai import CategorySuggestion


class FakeEnhancer:
    """Records calls and returns a fixed suggestion."""

    is_enabled = True

    def __init__(self, category=None):
        self.category = category
        self.calls = []

    async def enhance(self, description, current_category, vendor=None, business=None):
        self.calls.append((description, current_category, vendor, business))
        if self.category is None:
            return None
        return CategorySuggestion(self.category, 0.9, "more specific", "test-model")


@pytest.fixture
def resolver(store, clock):
    return AccountResolver(store, clock=clock)


def resolve(resolver, description, **kwargs):
    return asyncio.run(resolver.resolve_account(description, **kwargs))


class TestHelpers:
    """Tests for path helpers."""

    def test_splice_business(self):
        """Business goes after Expenses unless already there or a tax path."""
        assert splice_business("Expenses:Food:Coffee", "MyBrick") == "Expenses:MyBrick:Food:Coffee"
        assert splice_business("Expenses:MyBrick:Food", "MyBrick") == "Expenses:MyBrick:Food"
        assert splice_business("Expenses:Taxes:Sales", "MyBrick") == "Expenses:Taxes:Sales"
        assert splice_business("Assets:Cash", "MyBrick") == "Assets:Cash"

    def test_is_broad_account(self):
        """Only the final segment counts."""
        assert is_broad_account("Expenses:Personal:Food:Fruit")
        assert not is_broad_account("Expenses:Personal:Food:Fruit:Bananas")


class TestTierPrecedence:
    """Tests for the order of resolution tiers."""

    def test_user_mapping_beats_global_pattern(self, store, resolver):
        """A user's own mapping wins over a matching global pattern."""
        store.add_user_mapping("u1", r"latte", "Expenses:Food:Coffee")
        store.add_account_pattern("latte", "Expenses:Food:Drinks", "contains")

        result = resolve(resolver, "Iced Latte", user_id="u1")

        assert result.source == MappingSource.USER
        assert result.confidence == 0.95
        assert result.account == "Expenses:Personal:Food:Coffee"

    def test_pattern_without_user(self, store, resolver):
        """Without a user id the stored pattern applies."""
        store.add_user_mapping("u1", r"latte", "Expenses:Food:Coffee")
        store.add_account_pattern("latte", "Expenses:Food:Drinks", "contains")

        result = resolve(resolver, "Iced Latte")

        assert result.source == MappingSource.PATTERN
        assert result.confidence == 0.8
        assert result.account == "Expenses:Personal:Food:Drinks"

    def test_other_users_mappings_ignored(self, store, resolver):
        """User mappings are scoped to their owner."""
        store.add_user_mapping("u1", r"latte", "Expenses:Food:Coffee")

        result = resolve(resolver, "Iced Latte", user_id="u2")

        assert result.source != MappingSource.USER

    def test_exact_pattern(self, store, resolver):
        """Exact patterns compare against the trimmed, lowercased description."""
        store.add_account_pattern("Tom Yum Kung", "Expenses:Food:Soup", "exact")

        assert resolve(resolver, "  TOM YUM KUNG ").account == "Expenses:Personal:Food:Soup"

    def test_business_scoped_pattern_not_spliced(self, store, resolver):
        """Rows bound to a business keep their account path as stored."""
        store.upsert_business_context("MyBrick")
        store.add_account_pattern(
            "cement", "Expenses:MyBrick:Materials:Cement", "contains", business_context="MyBrick"
        )

        result = resolve(resolver, "Cement 50kg", business_context="my brick")

        assert result.account == "Expenses:MyBrick:Materials:Cement"
        assert result.business_context == "MyBrick"

    def test_static_description_rule(self, resolver):
        """Seed rules apply at pattern confidence with the business spliced in."""
        result = resolve(resolver, "WHOLE MILK")

        assert result.account == "Expenses:Personal:Food:Dairy:Milk"
        assert result.source == MappingSource.PATTERN
        assert result.confidence == 0.8

    def test_known_business_normalized(self, store, resolver):
        """A free-text business label resolves to the known context."""
        store.upsert_business_context("MyBrick")

        result = resolve(resolver, "WHOLE MILK", business_context="my brick")

        assert result.account == "Expenses:MyBrick:Food:Dairy:Milk"

    def test_tag_rule(self, store, resolver):
        """Tags act as description rules after the seed rules."""
        store.create_tag("kombucha", "food", priority=5)

        result = resolve(resolver, "Organic Kombucha")

        assert result.account == "Expenses:Personal:Food:Kombucha"
        assert result.source == MappingSource.PATTERN

    def test_tag_rules_disabled(self, store, clock):
        """Tag rules can be switched off."""
        store.create_tag("kombucha", "food", priority=5)
        resolver = AccountResolver(store, ResolverConfig(use_tag_rules=False), clock=clock)

        assert resolve(resolver, "Organic Kombucha").source == MappingSource.STATIC_FALLBACK

    def test_vendor_name(self, store, resolver):
        """A stored vendor name matches exactly, ignoring case."""
        store.add_vendor_mapping("Villa Market", "Expenses:Food:Groceries")

        result = resolve(resolver, "Item 42", vendor="VILLA MARKET")

        assert result.source == MappingSource.VENDOR
        assert result.confidence == 0.7
        assert result.account == "Expenses:Personal:Food:Groceries"

    def test_vendor_pattern(self, store, resolver):
        """Vendor regexes are tried after exact names."""
        store.add_vendor_mapping("Tops", "Expenses:Food:Groceries", vendor_pattern=r"tops\s+(market|daily)")

        result = resolve(resolver, "Item 42", vendor="Tops Daily Silom")

        assert result.account == "Expenses:Personal:Food:Groceries"

    def test_static_vendor(self, resolver):
        """Seed vendor tables apply when no stored vendor matches."""
        result = resolve(resolver, "Item 42", vendor="Starbucks Reserve")

        assert result.account == "Expenses:Personal:Food:Coffee"
        assert result.source == MappingSource.VENDOR

    def test_business_default(self, store, resolver):
        """Known businesses get <Business>:Misc with their default type."""
        store.upsert_business_context("MyBrick", "asset")

        result = resolve(resolver, "mystery widget", business_context="MyBrick")

        assert result.account == "Expenses:MyBrick:Misc"
        assert result.account_type == AccountType.ASSET
        assert result.confidence == 0.5
        assert result.source == MappingSource.BUSINESS_DEFAULT

    def test_static_fallback(self, resolver):
        """Nothing matches: Expenses:Misc at 0.3."""
        result = resolve(resolver, "mystery widget")

        assert result.account == "Expenses:Misc"
        assert result.confidence == 0.3
        assert result.source == MappingSource.STATIC_FALLBACK


class TestCaching:
    """Tests for the lookup cache."""

    def test_cached_until_expiry(self, store, resolver, clock):
        """New rows are invisible until the cached miss expires."""
        assert resolve(resolver, "mystery widget").account == "Expenses:Misc"
        store.add_account_pattern("mystery", "Expenses:Oddities", "contains")

        assert resolve(resolver, "mystery widget").account == "Expenses:Misc"

        clock.advance(301)
        assert resolve(resolver, "mystery widget").account == "Expenses:Personal:Oddities"

    def test_invalidate_cache(self, store, resolver):
        """Invalidation makes new rows visible immediately."""
        resolve(resolver, "mystery widget")
        store.add_account_pattern("mystery", "Expenses:Oddities", "contains")

        resolver.invalidate_cache()

        assert resolve(resolver, "mystery widget").account == "Expenses:Personal:Oddities"

    def test_cache_stats(self, resolver):
        """Every store lookup leaves one cache entry."""
        resolve(resolver, "mystery widget")
        stats = resolver.cache_stats()

        assert stats["total_entries"] > 0
        assert stats["expired_entries"] == 0


class TestDegradation:
    """Store errors and bad rows never fail a resolution."""

    def test_store_error_skips_tier(self, store, resolver, caplog):
        """A failing table read falls through to the next tier."""
        store.add_account_pattern("milk", "Expenses:Food:Special", "contains")

        with patch.object(
            store,
            "list_account_patterns",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            with caplog.at_level(logging.WARNING):
                result = resolve(resolver, "whole milk")

        assert result.account == "Expenses:Personal:Food:Dairy:Milk"
        assert "database is locked" in caplog.text

    def test_store_error_not_cached(self, store, resolver):
        """The next call retries the failed read."""
        store.add_account_pattern("milk", "Expenses:Food:Special", "contains")

        with patch.object(
            store,
            "list_account_patterns",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            resolve(resolver, "whole milk")

        assert resolve(resolver, "whole milk").account == "Expenses:Personal:Food:Special"

    def test_invalid_user_regex_skipped(self, store, resolver, caplog):
        """A malformed stored regex never matches; later rows still apply."""
        store.add_user_mapping("u1", "([unclosed", "Expenses:Broken", priority=10)
        store.add_user_mapping("u1", r"latte", "Expenses:Food:Coffee")

        with caplog.at_level(logging.WARNING):
            result = resolve(resolver, "latte", user_id="u1")

        assert result.account == "Expenses:Personal:Food:Coffee"
        assert "Invalid user mapping pattern" in caplog.text


class TestAccountType:
    """Tests for detect_account_type."""

    def test_pattern_match(self, store, resolver):
        """The highest-confidence matching pattern wins."""
        store.add_account_type_pattern(r"salary|payroll", "income", 0.9)

        assert asyncio.run(resolver.detect_account_type("March Salary")) == (
            AccountType.INCOME,
            0.9,
            r"salary|payroll",
        )

    def test_default_is_expense(self, resolver):
        """No pattern: expense at 0.5."""
        assert asyncio.run(resolver.detect_account_type("groceries")) == (
            AccountType.EXPENSE,
            0.5,
            None,
        )


class TestEnhancement:
    """Tests for broad-category enhancement."""

    def test_broad_account_enhanced(self, store, clock):
        """A broad category is replaced by the suggestion."""
        enhancer = FakeEnhancer("Food:Fruit:Apples")
        resolver = AccountResolver(store, enhancer=enhancer, clock=clock)

        result = resolve(resolver, "Apples", vendor="Lotus")

        assert result.account == "Expenses:Personal:Food:Fruit:Apples"
        assert result.enhanced
        assert result.source == MappingSource.PATTERN
        assert enhancer.calls == [("Apples", "Food:Fruit", "Lotus", "Personal")]

    def test_no_suggestion_keeps_result(self, store, clock):
        """A declined enhancement leaves the resolution untouched."""
        resolver = AccountResolver(store, enhancer=FakeEnhancer(None), clock=clock)

        result = resolve(resolver, "Apples")

        assert result.account == "Expenses:Personal:Food:Fruit"
        assert not result.enhanced

    def test_specific_account_not_enhanced(self, store, clock):
        """Specific categories never reach the enhancer."""
        enhancer = FakeEnhancer("Food:Dairy:Milk:Whole")
        resolver = AccountResolver(store, enhancer=enhancer, clock=clock)

        resolve(resolver, "whole milk")

        assert enhancer.calls == []

    def test_user_mapping_not_enhanced(self, store, clock):
        """A user's explicit choice is final."""
        store.add_user_mapping("u1", r"apples", "Expenses:Food:Fruit")
        enhancer = FakeEnhancer("Food:Fruit:Apples")
        resolver = AccountResolver(store, enhancer=enhancer, clock=clock)

        result = resolve(resolver, "Apples", user_id="u1")

        assert result.account == "Expenses:Personal:Food:Fruit"
        assert enhancer.calls == []


class TestCategoryResolverAdapter:
    """Tests for as_category_resolver."""

    def test_records_results(self, resolver):
        """Each resolution is recorded by description."""
        results = {}
        resolve_fn = resolver.as_category_resolver(results=results)

        account = asyncio.run(resolve_fn("WHOLE MILK", vendor=None, business="Personal"))

        assert account == "Expenses:Personal:Food:Dairy:Milk"
        assert results["WHOLE MILK"].source == MappingSource.PATTERN

    def test_income_reroots(self, resolver):
        """Income transactions move resolved paths under Income."""
        resolve_fn = resolver.as_category_resolver()

        account = asyncio.run(
            resolve_fn("Freelance work", business="Studio", transaction_type="income")
        )

        assert account == "Income:Studio:Freelance:Services"

    def test_taxes_stay_expenses(self, resolver):
        """Tax paths are never re-rooted."""
        resolve_fn = resolver.as_category_resolver()

        assert asyncio.run(resolve_fn("tax", transaction_type="income")) == "Expenses:Taxes:Sales"
