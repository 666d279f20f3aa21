"""
Account mapping schemas (SSOT).

Rows read from the mapping tables and the transient MappingResult produced
by the account resolver. Rows are long-lived and read-only to the resolver;
MappingResult is created fresh per resolution (subject to caching).
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AccountType(str, Enum):
    """Top-level ledger account classes."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class PatternType(str, Enum):
    """How an account pattern is matched against a normalized description."""

    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"


class MappingSource(str, Enum):
    """Which resolver tier produced a mapping."""

    USER = "user"
    VENDOR = "vendor"
    PATTERN = "pattern"
    BUSINESS_DEFAULT = "business_default"
    STATIC_FALLBACK = "static_fallback"


@dataclass
class AccountPattern:
    """Global (or business-scoped) description pattern."""

    id: int | None
    pattern: str
    pattern_type: PatternType
    account_path: str
    account_type: AccountType = AccountType.EXPENSE
    priority: int = 0
    business_context: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AccountPattern":
        """Create from database row."""
        return cls(
            id=row["id"],
            pattern=row["pattern"],
            pattern_type=PatternType(row["pattern_type"]),
            account_path=row["account_path"],
            account_type=AccountType(row["account_type"]),
            priority=row["priority"],
            business_context=row["business_context"],
            is_active=bool(row["is_active"]),
        )


@dataclass
class VendorMapping:
    """Vendor name (exact) or vendor regex mapped to an account."""

    id: int | None
    vendor_name: str
    account_path: str
    vendor_pattern: str | None = None
    account_type: AccountType = AccountType.EXPENSE
    priority: int = 0
    business_context: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "VendorMapping":
        """Create from database row."""
        return cls(
            id=row["id"],
            vendor_name=row["vendor_name"],
            vendor_pattern=row["vendor_pattern"],
            account_path=row["account_path"],
            account_type=AccountType(row["account_type"]),
            priority=row["priority"],
            business_context=row["business_context"],
            is_active=bool(row["is_active"]),
        )


@dataclass
class UserMapping:
    """Per-user description regex override. Owned by exactly one user."""

    id: int | None
    user_id: str
    description_pattern: str
    account_path: str
    account_type: AccountType = AccountType.EXPENSE
    priority: int = 0
    business_context: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "UserMapping":
        """Create from database row."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            description_pattern=row["description_pattern"],
            account_path=row["account_path"],
            account_type=AccountType(row["account_type"]),
            priority=row["priority"],
            business_context=row["business_context"],
            is_active=bool(row["is_active"]),
        )


@dataclass
class BusinessContext:
    """A ledger tenant label with its default account type."""

    business_name: str
    default_account_type: AccountType = AccountType.EXPENSE
    is_active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "BusinessContext":
        """Create from database row."""
        return cls(
            business_name=row["business_name"],
            default_account_type=AccountType(row["default_account_type"]),
            is_active=bool(row["is_active"]),
        )


@dataclass
class AccountTypePattern:
    """Regex used to guess the account type of a free-text description."""

    pattern: str
    account_type: AccountType
    confidence: float = 0.8
    is_active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AccountTypePattern":
        """Create from database row."""
        return cls(
            pattern=row["pattern"],
            account_type=AccountType(row["account_type"]),
            confidence=row["confidence"],
            is_active=bool(row["is_active"]),
        )


@dataclass
class Tag:
    """A global tag. Only usage_count changes as a side effect of tagging."""

    id: int
    name: str
    category: str | None = None
    priority: int = 0
    usage_count: int = 0
    description: str | None = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Tag":
        """Create from database row."""
        return cls(
            id=row["id"],
            name=row["name"],
            category=row["category"],
            priority=row["priority"],
            usage_count=row["usage_count"],
            description=row["description"],
            is_active=bool(row["is_active"]),
        )


@dataclass(frozen=True)
class MappingResult:
    """Outcome of resolving one description to an account path."""

    account: str
    account_type: AccountType
    confidence: float
    source: MappingSource
    business_context: str | None = None
    enhanced: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "account_type": self.account_type.value,
            "confidence": self.confidence,
            "source": self.source.value,
            "business_context": self.business_context,
            "enhanced": self.enhanced,
        }
