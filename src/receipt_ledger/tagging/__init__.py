"""
Contextual auto-tagging for ledger entries and postings.
"""

from .tagger import (
    AutoTagger,
    AutoTagResult,
    TagMatch,
    entry_relevance,
    extract_account_keywords,
    extract_keywords,
    posting_relevance,
)

__all__ = [
    "AutoTagResult",
    "AutoTagger",
    "TagMatch",
    "entry_relevance",
    "extract_account_keywords",
    "extract_keywords",
    "posting_relevance",
]
