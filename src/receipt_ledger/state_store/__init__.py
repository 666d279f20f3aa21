"""
State Store (SQLite-based).

Lightweight persistent DB for:
- Account patterns, vendor mappings and per-user mappings
- Business contexts and account-type patterns
- Tags and their entry / posting links

Read by the account resolver and the auto-tagger.
"""

from .sqlite_store import StateStore

__all__ = [
    "StateStore",
]
