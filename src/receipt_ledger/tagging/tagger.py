"""
Contextual auto-tagger for ledger entries and postings.

Entry-level keywords come from the description, memo and business name;
posting-level keywords come from the most specific segment of the posting's
account path. Candidate tags are scored by keyword confidence, contextual
relevance and tag priority, then filtered so pantry purchases don't end up
tagged "street-food".

Scoring never writes. apply_auto_tags is the separate, best-effort write
step and never raises.
"""

import logging
import re
import sqlite3
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import TaggingConfig
from ..schemas.mappings import Tag
from ..schemas.posting_builder import Posting
from ..state_store import StateStore
from .config import (
    CONTEXT_MISMATCHES,
    GENERIC_SEGMENTS,
    MAX_KEYWORDS,
    MIN_KEYWORD_LENGTH,
    REDUNDANT_PATTERNS,
    STOPWORDS,
)

logger = logging.getLogger(__name__)

# Relevance when there is no account to compare against
NEUTRAL_RELEVANCE = 0.5
REDUNDANT_POSTING_RELEVANCE = 1.0
REDUNDANT_ENTRY_RELEVANCE = 0.1

_WORD_SPLIT = re.compile(r"[\s,.:_/-]+")
_CAMEL_WORDS = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_NON_ALNUM = re.compile(r"[^0-9a-z]+")


@dataclass
class TagMatch:
    """A scored candidate tag. confidence is 0-100, relevance 0-1."""

    tag_id: int
    name: str
    category: str
    priority: int
    confidence: float
    relevance: float
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag_id": self.tag_id,
            "name": self.name,
            "category": self.category,
            "priority": self.priority,
            "confidence": round(self.confidence, 1),
            "relevance": round(self.relevance, 2),
            "score": round(self.score, 3),
        }


@dataclass
class AutoTagResult:
    """Tags selected for an entry and for each of its postings (by posting id)."""

    entry_tags: list[TagMatch] = field(default_factory=list)
    posting_tags: dict[int, list[TagMatch]] = field(default_factory=dict)

    def tag_ids(self) -> list[int]:
        """Every applied tag id, once per application."""
        ids = [t.tag_id for t in self.entry_tags]
        for tags in self.posting_tags.values():
            ids.extend(t.tag_id for t in tags)
        return ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_tags": [t.to_dict() for t in self.entry_tags],
            "posting_tags": {
                str(pid): [t.to_dict() for t in tags] for pid, tags in self.posting_tags.items()
            },
        }


def extract_keywords(text: Optional[str]) -> list[str]:
    """Lowercased words longer than two characters, stop words removed."""
    if not text:
        return []
    keywords: list[str] = []
    for word in _WORD_SPLIT.split(text.lower()):
        word = word.strip()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOPWORDS and word not in keywords:
            keywords.append(word)
    return keywords[:MAX_KEYWORDS]


def segment_words(segment: str) -> list[str]:
    """
    Split one account segment into lowercase words.

    Examples:
        >>> segment_words("BubbleTea")
        ['bubble', 'tea']
        >>> segment_words("Opening-Balances")
        ['opening', 'balances']
    """
    return [
        word.lower()
        for part in _WORD_SPLIT.split(segment)
        for word in _CAMEL_WORDS.findall(part)
    ]


def extract_account_keywords(account: str) -> list[str]:
    """
    Keywords from the last, most specific account segment.

    Falls back to every non-generic segment when the last one yields nothing.

    Examples:
        >>> extract_account_keywords("Expenses:Personal:Food:Coffee")
        ['coffee']
        >>> extract_account_keywords("Expenses:Personal:Food:Tv")
        ['food']
    """
    segments = [s for s in account.split(":") if s]
    if not segments:
        return []

    last = segments[-1]
    if last.lower() not in GENERIC_SEGMENTS:
        keywords = extract_keywords(" ".join(segment_words(last)))
        if keywords:
            return keywords

    words = [
        word
        for segment in segments
        if segment.lower() not in GENERIC_SEGMENTS
        for word in segment_words(segment)
    ]
    return extract_keywords(" ".join(words))


def account_words(account: str) -> set[str]:
    return {word for segment in account.split(":") for word in segment_words(segment)}


def _stem(word: str) -> str:
    if word.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if word.endswith("ing") and len(word) > 5:
        return word[:-3]
    if word.endswith("s") and not word.endswith("ss") and len(word) > 3:
        return word[:-1]
    return word


def _compact(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def is_redundant(tag_name: str, account: str) -> bool:
    """True if the tag only repeats the account path."""
    tag = tag_name.lower().strip()
    words = account_words(account)
    if any(rule.account in words and tag == rule.tag for rule in REDUNDANT_PATTERNS):
        return True
    last = account.rsplit(":", 1)[-1]
    return bool(last) and _compact(tag) == _compact(last)


def mismatch_relevance(tag_name: str, account: str) -> Optional[float]:
    """Capped relevance from the incompatibility table, or None."""
    tag = tag_name.lower().strip()
    words = account_words(account)
    caps = [rule.relevance for rule in CONTEXT_MISMATCHES if rule.account in words and tag == rule.tag]
    return min(caps) if caps else None


def stem_overlap(tag_name: str, account: str) -> float:
    """Fraction of the tag's word stems that also appear in the account path."""
    tag_stems = {_stem(w) for w in _WORD_SPLIT.split(tag_name.lower()) if w}
    if not tag_stems:
        return 0.0
    account_stems = {_stem(w) for w in account_words(account) if w not in GENERIC_SEGMENTS}
    return len(tag_stems & account_stems) / len(tag_stems)


def posting_relevance(tag_name: str, account: Optional[str]) -> float:
    """Relevance of a tag to the posting it would be attached to."""
    if not account:
        return NEUTRAL_RELEVANCE
    if is_redundant(tag_name, account):
        return REDUNDANT_POSTING_RELEVANCE
    capped = mismatch_relevance(tag_name, account)
    if capped is not None:
        return capped
    return stem_overlap(tag_name, account)


def entry_relevance(tag_name: str, accounts: Sequence[str]) -> float:
    """Relevance of a description-derived tag given the entry's posting accounts.

    A tag that merely repeats one of the accounts is penalized; the posting
    carries that information already.
    """
    if any(is_redundant(tag_name, account) for account in accounts):
        return REDUNDANT_ENTRY_RELEVANCE
    caps = [c for c in (mismatch_relevance(tag_name, a) for a in accounts) if c is not None]
    if caps:
        return min(caps)
    return NEUTRAL_RELEVANCE


class AutoTagger:
    """
    Scores and applies tags for ledger entries.

    Args:
        store: Tag table and tag link tables
        config: Thresholds and weights
    """

    def __init__(self, store: StateStore, config: Optional[TaggingConfig] = None):
        self.store = store
        self.config = config or TaggingConfig()

    def _fetch_candidates(self, keywords: Sequence[str]) -> list[Tag]:
        try:
            return self.store.find_tags_by_keywords(keywords)
        except sqlite3.Error as e:
            logger.warning("Failed to look up tags, skipping: %s", e)
            return []

    def score_candidates(
        self,
        keywords: Sequence[str],
        candidates: Iterable[Tag],
        relevance: Callable[[str], float],
        min_relevance: float,
    ) -> list[TagMatch]:
        """
        Score, filter and rank candidate tags for one set of keywords.

        Returns at most max_tags_per_posting matches, best first.
        """
        if not keywords:
            return []
        candidates = list(candidates)
        max_priority = max((t.priority for t in candidates), default=0)
        cfg = self.config

        matches: list[TagMatch] = []
        for tag in candidates:
            name = tag.name.lower()
            matched = sum(1 for k in keywords if k in name)
            confidence = matched / len(keywords) * 100
            if confidence < cfg.min_confidence:
                continue
            rel = relevance(tag.name)
            if rel < min_relevance:
                logger.debug("Tag %s dropped: relevance %.2f < %.2f", tag.name, rel, min_relevance)
                continue
            priority = tag.priority / max_priority if max_priority > 0 else 0.0
            score = (
                cfg.confidence_weight * confidence / 100
                + cfg.relevance_weight * rel
                + cfg.priority_weight * priority
            )
            matches.append(
                TagMatch(
                    tag_id=tag.id,
                    name=tag.name,
                    category=tag.category or "uncategorized",
                    priority=tag.priority,
                    confidence=confidence,
                    relevance=rel,
                    score=score,
                )
            )

        matches.sort(key=lambda m: -m.score)
        return matches[: cfg.max_tags_per_posting]

    def tags_for_posting(self, account: str) -> list[TagMatch]:
        keywords = extract_account_keywords(account)
        if not keywords:
            return []
        return self.score_candidates(
            keywords,
            self._fetch_candidates(keywords),
            lambda name: posting_relevance(name, account),
            self.config.min_relevance_with_context,
        )

    def _entry_relevance_floor(self, accounts: Sequence[str]) -> float:
        if accounts:
            return self.config.min_relevance_with_context
        return self.config.min_relevance

    def tags_for_entry(
        self,
        description: str,
        memo: Optional[str] = None,
        business: Optional[str] = None,
        accounts: Sequence[str] = (),
    ) -> list[TagMatch]:
        keywords: list[str] = []
        for text in (description, memo, business):
            keywords.extend(k for k in extract_keywords(text) if k not in keywords)
        if not keywords:
            return []
        return self.score_candidates(
            keywords,
            self._fetch_candidates(keywords),
            lambda name: entry_relevance(name, accounts),
            self._entry_relevance_floor(accounts),
        )

    def auto_tag_entry(
        self,
        description: str,
        memo: Optional[str] = None,
        business: Optional[str] = None,
        postings: Optional[Mapping[int, Posting]] = None,
    ) -> AutoTagResult:
        """
        Select tags for an entry and its postings.

        Args:
            description: Entry description
            memo: Optional memo
            business: Optional business label
            postings: Posting id -> posting

        Returns:
            AutoTagResult; postings without surviving tags are omitted
        """
        postings = postings or {}
        accounts = [p.account for p in postings.values()]
        result = AutoTagResult(
            entry_tags=self.tags_for_entry(description, memo, business, accounts)
        )
        for posting_id, posting in postings.items():
            tags = self.tags_for_posting(posting.account)
            if tags:
                result.posting_tags[posting_id] = tags

        logger.debug(
            "Auto-tagging selected %d entry tags and tags for %d postings",
            len(result.entry_tags),
            len(result.posting_tags),
        )
        return result

    def apply_auto_tags(self, entry_id: int, result: AutoTagResult) -> bool:
        """
        Persist tag links and bump usage counters.

        Best-effort: failures are logged and swallowed so they never fail the
        entry that triggered tagging.

        Returns:
            True if every write succeeded
        """
        try:
            if result.entry_tags:
                self.store.add_entry_tags(entry_id, [t.tag_id for t in result.entry_tags])
            for posting_id, tags in result.posting_tags.items():
                self.store.add_posting_tags(posting_id, [t.tag_id for t in tags])
            tag_ids = result.tag_ids()
            if tag_ids:
                self.store.increment_tag_usage(tag_ids)
        except Exception:
            logger.exception("Failed to apply auto tags for entry %s", entry_id)
            return False
        return True
