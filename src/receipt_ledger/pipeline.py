"""
Receipt-to-ledger pipeline facade.

OCR text candidates -> best structured parse -> resolved accounts ->
balanced postings. Tagging runs afterwards, once the caller has stored the
entry and knows its ids.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from .accounts.resolver import AccountResolver
from .config import Config, load_config
from .confidence.scorer import OCRQuality, assess_ocr_quality
from .extractors.router import ConfidenceSelector, ParseFailure, ParseOutcome
from .schemas.mappings import MappingResult
from .schemas.posting_builder import (
    BALANCE_EPSILON,
    Posting,
    TransactionType,
    build_postings,
    is_balanced,
)
from .spark_ai.service import CategoryEnhancer
from .state_store import StateStore
from .tagging.tagger import AutoTagger, AutoTagResult

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@dataclass
class ReceiptEntry:
    """A parsed receipt turned into a balanced posting set."""

    outcome: ParseOutcome
    postings: list[Posting]
    mappings: list[MappingResult] = field(default_factory=list)
    quality: Optional[OCRQuality] = None
    vendor: Optional[str] = None
    business: str = "Personal"
    currency: str = "THB"
    balance_epsilon: Decimal = BALANCE_EPSILON

    @property
    def ok(self) -> bool:
        return True

    @property
    def is_balanced(self) -> bool:
        return is_balanced(self.postings, self.balance_epsilon)

    def to_dict(self) -> dict[str, Any]:
        return {
            "receipt": self.outcome.data.to_dict(),
            "confidence": self.outcome.confidence,
            "math_valid": self.outcome.math_valid,
            "parser_used": self.outcome.parser_used,
            "errors": self.outcome.errors,
            "postings": [p.to_dict() for p in self.postings],
            "mappings": [m.to_dict() for m in self.mappings],
            "vendor": self.vendor,
            "business": self.business,
            "currency": self.currency,
        }


class LedgerPipeline:
    """
    Wires the selector, resolver, posting builder and tagger together.

    Args:
        config: Application configuration
        store: Mapping/tag store (defaults to config.state_db_path)
        enhancer: Broad-category enhancer (created from config.llm when enabled)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[StateStore] = None,
        enhancer: Optional[CategoryEnhancer] = None,
    ):
        self.config = config or Config()
        self.store = store or StateStore(self.config.state_db_path)
        if enhancer is None and self.config.llm.enabled:
            enhancer = CategoryEnhancer(self.config.llm)
        self.enhancer = enhancer

        parser_cfg = self.config.parser
        self.selector = ConfidenceSelector(
            math_threshold=parser_cfg.math_threshold,
            max_tax_rate=parser_cfg.max_tax_rate,
            min_subtotal_ratio=parser_cfg.min_subtotal_ratio,
        )
        self.resolver = AccountResolver(self.store, self.config.resolver, self.enhancer)
        self.tagger = AutoTagger(self.store, self.config.tagging)

    @classmethod
    def from_config(cls, config_path: Path) -> "LedgerPipeline":
        """Load, validate and build. Raises ConfigValidationError."""
        config = load_config(config_path).require_valid()
        return cls(config)

    def assess_quality(self, candidates: Sequence[str]) -> Optional[OCRQuality]:
        """Quality of the best candidate. Advisory only: never blocks parsing."""
        scored = [assess_ocr_quality(c) for c in candidates if c and c.strip()]
        if not scored:
            return None
        best = max(scored, key=lambda q: q.confidence)
        if best.confidence < self.config.parser.quality_warn_threshold:
            logger.warning(
                "Low OCR quality (%.2f): %s", best.confidence, "; ".join(best.issues) or "unknown"
            )
        return best

    def parse(self, candidates: Sequence[str]) -> Union[ParseOutcome, ParseFailure]:
        return self.selector.parse(candidates)

    async def process_receipt(
        self,
        candidates: Sequence[str],
        vendor: Optional[str] = None,
        business: Optional[str] = None,
        user_id: Optional[str] = None,
        payment_account: Optional[str] = None,
        currency: Optional[str] = None,
        include_tax_line: Optional[bool] = None,
        transaction_type: TransactionType | str = TransactionType.EXPENSE,
    ) -> Union[ReceiptEntry, ParseFailure]:
        """
        Turn OCR text candidates into a balanced entry.

        Args:
            candidates: Text candidates, preferred first (e.g. segmented, then raw)
            vendor: Vendor name for vendor-tier resolution
            business: Business label (normalized before use)
            user_id: Enables the user-mapping tier
            payment_account: Account path or free-text payment method
            currency: Defaults to ledger.default_currency
            include_tax_line: Defaults to ledger.include_tax_line
            transaction_type: Sign convention for the postings

        Returns:
            ReceiptEntry, or ParseFailure when no strategy found any items
        """
        ledger_cfg = self.config.ledger
        quality = self.assess_quality(candidates)
        epsilon = Decimal(str(ledger_cfg.balance_epsilon))

        outcome = self.parse(candidates)
        if isinstance(outcome, ParseFailure):
            return outcome
        if not outcome.math_valid:
            logger.warning("Receipt math does not reconcile: %s", "; ".join(outcome.errors))

        business_name = await self.resolver.normalize_business(business)
        results: dict[str, MappingResult] = {}
        postings = await build_postings(
            outcome.data,
            self.resolver.as_category_resolver(user_id, results),
            payment_account or ledger_cfg.default_payment_account,
            currency or ledger_cfg.default_currency,
            vendor=vendor,
            business=business_name,
            include_tax_line=(
                ledger_cfg.include_tax_line if include_tax_line is None else include_tax_line
            ),
            transaction_type=transaction_type,
            epsilon=epsilon,
        )
        mappings = [results[i.description] for i in outcome.data.items if i.description in results]

        logger.info(
            "Built %d postings for %d items (parser=%s, business=%s)",
            len(postings),
            len(outcome.data.items),
            outcome.parser_used,
            business_name,
        )
        return ReceiptEntry(
            outcome=outcome,
            postings=postings,
            mappings=mappings,
            quality=quality,
            vendor=vendor,
            business=business_name,
            currency=currency or ledger_cfg.default_currency,
            balance_epsilon=epsilon,
        )

    def tag_entry(
        self,
        entry_id: int,
        description: str,
        memo: Optional[str] = None,
        business: Optional[str] = None,
        postings: Optional[Mapping[int, Posting]] = None,
    ) -> Optional[AutoTagResult]:
        """Select and apply tags for a stored entry. Never raises."""
        try:
            result = self.tagger.auto_tag_entry(description, memo, business, postings)
        except Exception:
            logger.exception("Auto-tagging failed for entry %s", entry_id)
            return None
        self.tagger.apply_auto_tags(entry_id, result)
        return result

    async def aclose(self) -> None:
        if self.enhancer is not None:
            await self.enhancer.aclose()
