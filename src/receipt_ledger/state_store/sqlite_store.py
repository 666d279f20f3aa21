"""
SQLite-based state store implementation.

Tables:
- account_patterns: Global / business-scoped description patterns
- vendor_mappings: Vendor name or vendor regex -> account
- user_mappings: Per-user description regex overrides
- business_contexts: Ledger tenants with their default account type
- account_type_patterns: Regexes that guess an account type
- tags: Global tag table (usage_count updated by tagging)
- entry_tags / posting_tags: Applied tag links
"""

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..schemas.mappings import (
    AccountPattern,
    AccountType,
    AccountTypePattern,
    BusinessContext,
    PatternType,
    Tag,
    UserMapping,
    VendorMapping,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class StateStore:
    """
    SQLite-based store for the mapping tables and tag links.

    The resolver only reads from it; writes are append/update only
    (new mapping rows, tag links, usage counters). Nothing in the pipeline
    deletes rows.

    Thread-safe for single-writer scenarios: every call opens its own
    connection, so it can be used from asyncio.to_thread.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS account_patterns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    pattern TEXT NOT NULL,
                    pattern_type TEXT NOT NULL DEFAULT 'contains',
                    account_path TEXT NOT NULL,
                    account_type TEXT NOT NULL DEFAULT 'expense',
                    priority INTEGER NOT NULL DEFAULT 0,
                    business_context TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS vendor_mappings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    vendor_name TEXT NOT NULL,
                    vendor_pattern TEXT,
                    account_path TEXT NOT NULL,
                    account_type TEXT NOT NULL DEFAULT 'expense',
                    priority INTEGER NOT NULL DEFAULT 0,
                    business_context TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_mappings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    description_pattern TEXT NOT NULL,
                    account_path TEXT NOT NULL,
                    account_type TEXT NOT NULL DEFAULT 'expense',
                    priority INTEGER NOT NULL DEFAULT 0,
                    business_context TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS business_contexts (
                    business_name TEXT PRIMARY KEY,
                    default_account_type TEXT NOT NULL DEFAULT 'expense',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS account_type_patterns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    pattern TEXT NOT NULL,
                    account_type TEXT NOT NULL,
                    confidence REAL NOT NULL DEFAULT 0.8,
                    is_active INTEGER NOT NULL DEFAULT 1
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tags (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    category TEXT,
                    priority INTEGER NOT NULL DEFAULT 0,
                    usage_count INTEGER NOT NULL DEFAULT 0,
                    description TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS entry_tags (
                    entry_id INTEGER NOT NULL,
                    tag_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (entry_id, tag_id),
                    FOREIGN KEY (tag_id) REFERENCES tags(id)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS posting_tags (
                    posting_id INTEGER NOT NULL,
                    tag_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (posting_id, tag_id),
                    FOREIGN KEY (tag_id) REFERENCES tags(id)
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_account_patterns_priority "
                "ON account_patterns(is_active, priority DESC)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_user_mappings_user "
                "ON user_mappings(user_id, is_active, priority DESC)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_vendor_mappings_name "
                "ON vendor_mappings(vendor_name)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tags_priority "
                "ON tags(is_active, priority DESC, usage_count DESC)"
            )

            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

    # Account pattern methods

    def add_account_pattern(
        self,
        pattern: str,
        account_path: str,
        pattern_type: PatternType | str = PatternType.CONTAINS,
        account_type: AccountType | str = AccountType.EXPENSE,
        priority: int = 0,
        business_context: str | None = None,
        is_active: bool = True,
    ) -> int:
        """Insert an account pattern. Returns the new row id."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO account_patterns
                (pattern, pattern_type, account_path, account_type, priority,
                 business_context, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    pattern,
                    PatternType(pattern_type).value,
                    account_path,
                    AccountType(account_type).value,
                    priority,
                    business_context,
                    int(is_active),
                    _now(),
                ),
            )
            return cursor.lastrowid

    def list_account_patterns(self, business_context: str | None = None) -> list[AccountPattern]:
        """Active patterns that are global or scoped to business_context, highest priority first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM account_patterns
                WHERE is_active = 1
                  AND (business_context IS NULL OR business_context = ?)
                ORDER BY priority DESC, id ASC
            """,
                (business_context,),
            ).fetchall()
            return [AccountPattern.from_row(row) for row in rows]

    # Vendor mapping methods

    def add_vendor_mapping(
        self,
        vendor_name: str,
        account_path: str,
        vendor_pattern: str | None = None,
        account_type: AccountType | str = AccountType.EXPENSE,
        priority: int = 0,
        business_context: str | None = None,
        is_active: bool = True,
    ) -> int:
        """Insert a vendor mapping. Returns the new row id."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO vendor_mappings
                (vendor_name, vendor_pattern, account_path, account_type, priority,
                 business_context, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    vendor_name,
                    vendor_pattern,
                    account_path,
                    AccountType(account_type).value,
                    priority,
                    business_context,
                    int(is_active),
                    _now(),
                ),
            )
            return cursor.lastrowid

    def list_vendor_mappings(self, business_context: str | None = None) -> list[VendorMapping]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM vendor_mappings
                WHERE is_active = 1
                  AND (business_context IS NULL OR business_context = ?)
                ORDER BY priority DESC, id ASC
            """,
                (business_context,),
            ).fetchall()
            return [VendorMapping.from_row(row) for row in rows]

    # User mapping methods

    def add_user_mapping(
        self,
        user_id: str,
        description_pattern: str,
        account_path: str,
        account_type: AccountType | str = AccountType.EXPENSE,
        priority: int = 0,
        business_context: str | None = None,
        is_active: bool = True,
    ) -> int:
        """Insert a per-user mapping. Returns the new row id."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO user_mappings
                (user_id, description_pattern, account_path, account_type, priority,
                 business_context, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    user_id,
                    description_pattern,
                    account_path,
                    AccountType(account_type).value,
                    priority,
                    business_context,
                    int(is_active),
                    _now(),
                ),
            )
            return cursor.lastrowid

    def list_user_mappings(
        self, user_id: str, business_context: str | None = None
    ) -> list[UserMapping]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM user_mappings
                WHERE user_id = ? AND is_active = 1
                  AND (business_context IS NULL OR business_context = ?)
                ORDER BY priority DESC, id ASC
            """,
                (user_id, business_context),
            ).fetchall()
            return [UserMapping.from_row(row) for row in rows]

    # Business context methods

    def upsert_business_context(
        self,
        business_name: str,
        default_account_type: AccountType | str = AccountType.EXPENSE,
        is_active: bool = True,
    ) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO business_contexts
                (business_name, default_account_type, is_active, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(business_name) DO UPDATE SET
                    default_account_type = excluded.default_account_type,
                    is_active = excluded.is_active
            """,
                (business_name, AccountType(default_account_type).value, int(is_active), _now()),
            )

    def get_business_context(self, business_name: str) -> BusinessContext | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM business_contexts WHERE business_name = ? AND is_active = 1",
                (business_name,),
            ).fetchone()
            return BusinessContext.from_row(row) if row else None

    def list_business_contexts(self) -> list[BusinessContext]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM business_contexts WHERE is_active = 1 ORDER BY business_name"
            ).fetchall()
            return [BusinessContext.from_row(row) for row in rows]

    # Account type pattern methods

    def add_account_type_pattern(
        self,
        pattern: str,
        account_type: AccountType | str,
        confidence: float = 0.8,
    ) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO account_type_patterns (pattern, account_type, confidence)
                VALUES (?, ?, ?)
            """,
                (pattern, AccountType(account_type).value, confidence),
            )
            return cursor.lastrowid

    def list_account_type_patterns(self) -> list[AccountTypePattern]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM account_type_patterns
                WHERE is_active = 1
                ORDER BY confidence DESC, id ASC
            """
            ).fetchall()
            return [AccountTypePattern.from_row(row) for row in rows]

    # Tag methods

    def create_tag(
        self,
        name: str,
        category: str | None = None,
        priority: int = 0,
        description: str | None = None,
        is_active: bool = True,
    ) -> int:
        """Insert a tag. Returns the new tag id."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tags (name, category, priority, description, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (name, category, priority, description, int(is_active), _now()),
            )
            return cursor.lastrowid

    def get_tag(self, tag_id: int) -> Tag | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
            return Tag.from_row(row) if row else None

    def list_active_tags(self) -> list[Tag]:
        """Active tags, highest priority first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tags
                WHERE is_active = 1
                ORDER BY priority DESC, usage_count DESC, id ASC
            """
            ).fetchall()
            return [Tag.from_row(row) for row in rows]

    def find_tags_by_keywords(self, keywords: Iterable[str]) -> list[Tag]:
        """Active tags whose name contains any keyword (case-insensitive).

        Ordered by priority, then usage count, both descending.
        """
        keywords = [k for k in keywords if k]
        if not keywords:
            return []

        clause = " OR ".join("name LIKE ? ESCAPE '\\'" for _ in keywords)
        params = [f"%{_like_escape(k)}%" for k in keywords]
        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM tags
                WHERE is_active = 1 AND ({clause})
                ORDER BY priority DESC, usage_count DESC, id ASC
            """,
                params,
            ).fetchall()
            return [Tag.from_row(row) for row in rows]

    def add_entry_tags(self, entry_id: int, tag_ids: Iterable[int]) -> int:
        """Link tags to an entry. Existing links are kept. Returns rows inserted."""
        now = _now()
        with self._transaction() as conn:
            cursor = conn.executemany(
                "INSERT OR IGNORE INTO entry_tags (entry_id, tag_id, created_at) VALUES (?, ?, ?)",
                [(entry_id, tag_id, now) for tag_id in tag_ids],
            )
            return cursor.rowcount

    def add_posting_tags(self, posting_id: int, tag_ids: Iterable[int]) -> int:
        """Link tags to a posting. Existing links are kept. Returns rows inserted."""
        now = _now()
        with self._transaction() as conn:
            cursor = conn.executemany(
                "INSERT OR IGNORE INTO posting_tags (posting_id, tag_id, created_at) VALUES (?, ?, ?)",
                [(posting_id, tag_id, now) for tag_id in tag_ids],
            )
            return cursor.rowcount

    def get_entry_tag_ids(self, entry_id: int) -> list[int]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT tag_id FROM entry_tags WHERE entry_id = ? ORDER BY tag_id", (entry_id,)
            ).fetchall()
            return [row["tag_id"] for row in rows]

    def get_posting_tag_ids(self, posting_id: int) -> list[int]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT tag_id FROM posting_tags WHERE posting_id = ? ORDER BY tag_id",
                (posting_id,),
            ).fetchall()
            return [row["tag_id"] for row in rows]

    def increment_tag_usage(self, tag_ids: Iterable[int]) -> None:
        """Bump usage_count once per id occurrence."""
        with self._transaction() as conn:
            conn.executemany(
                "UPDATE tags SET usage_count = usage_count + 1 WHERE id = ?",
                [(tag_id,) for tag_id in tag_ids],
            )

    def get_stats(self) -> dict[str, Any]:
        """Row counts per table."""
        tables = (
            "account_patterns",
            "vendor_mappings",
            "user_mappings",
            "business_contexts",
            "account_type_patterns",
            "tags",
            "entry_tags",
            "posting_tags",
        )
        with self._transaction() as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in tables
            }
