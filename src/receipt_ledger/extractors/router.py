"""
Confidence-scored selector - runs every strategy over every text candidate
and picks the best parse.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union

from ..confidence.math_check import ReceiptMathValidation, validate_receipt_math
from ..confidence.scorer import ParseScoreWeights, score_parse_result
from ..schemas.receipt import ReceiptData
from .base import ParseStrategy
from .invoice_parser import InvoiceLineParser
from .receipt_parser import ReceiptLineParser
from .summary import coalesce_summary

logger = logging.getLogger(__name__)


@dataclass
class ParseAttempt:
    """One (strategy x candidate) run that produced at least one item."""

    data: ReceiptData
    confidence: float
    math_valid: bool
    parser_used: str
    candidate_index: int
    validation: ReceiptMathValidation


@dataclass
class ParseOutcome:
    """The selected parse plus every scored alternative (best first)."""

    data: ReceiptData
    confidence: float
    math_valid: bool
    parser_used: str
    validation: ReceiptMathValidation
    attempts: list[ParseAttempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True

    @property
    def errors(self) -> list[str]:
        return self.validation.errors


@dataclass
class ParseFailure:
    """No candidate/strategy pair produced any items."""

    reason: str
    attempted: int = 0
    candidates: int = 0

    @property
    def ok(self) -> bool:
        return False


def default_strategies() -> list[ParseStrategy]:
    """Built-in strategies in tie-break order."""
    return [ReceiptLineParser(), InvoiceLineParser()]


def _attempt_sort_key(attempt: ParseAttempt) -> tuple[bool, float]:
    # Math-valid first, then highest confidence
    return (not attempt.math_valid, -attempt.confidence)


class ConfidenceSelector:
    """
    Runs strategies over text candidates and selects the best parse.

    Candidates are tried in the order given (typically the segmented block
    first, then the raw OCR text), each through every strategy. Attempts run
    sequentially: they are cheap, pure functions. Sorting is stable, so equal
    attempts keep their run order.
    """

    def __init__(
        self,
        strategies: Optional[Sequence[ParseStrategy]] = None,
        *,
        math_threshold: Decimal | float = Decimal("0.05"),
        max_tax_rate: float = 0.35,
        min_subtotal_ratio: float = 0.80,
        weights: Optional[ParseScoreWeights] = None,
    ):
        self.strategies = list(strategies) if strategies else default_strategies()
        self.math_threshold = Decimal(str(math_threshold))
        self.max_tax_rate = max_tax_rate
        self.min_subtotal_ratio = min_subtotal_ratio
        self.weights = weights or ParseScoreWeights()

    def run_attempt(
        self,
        strategy: ParseStrategy,
        text: str,
        candidate_index: int = 0,
    ) -> Optional[ParseAttempt]:
        """Parse, coalesce, validate and score one candidate with one strategy."""
        data = strategy.parse(text)
        if data is None or not data.items:
            logger.debug("%s#%d: no items found", strategy.name, candidate_index)
            return None

        data = coalesce_summary(
            data,
            max_tax_rate=self.max_tax_rate,
            min_subtotal_ratio=self.min_subtotal_ratio,
        )
        validation = validate_receipt_math(data, self.math_threshold)
        confidence = score_parse_result(data, validation, self.weights)

        logger.debug(
            "%s#%d: confidence=%.2f math_valid=%s items=%d",
            strategy.name,
            candidate_index,
            confidence,
            validation.is_valid,
            len(data.items),
        )
        return ParseAttempt(
            data=data,
            confidence=confidence,
            math_valid=validation.is_valid,
            parser_used=strategy.name,
            candidate_index=candidate_index,
            validation=validation,
        )

    def parse(self, candidates: Sequence[str]) -> Union[ParseOutcome, ParseFailure]:
        """
        Parse every candidate with every strategy and return the best result.

        Returns:
            ParseOutcome for the winning attempt, or ParseFailure if no attempt
            produced any items (never an empty ReceiptData)
        """
        texts = [c for c in candidates if c and c.strip()]
        attempts: list[ParseAttempt] = []
        tried = 0

        for index, text in enumerate(texts):
            for strategy in self.strategies:
                tried += 1
                attempt = self.run_attempt(strategy, text, index)
                if attempt is not None:
                    attempts.append(attempt)

        if not attempts:
            logger.warning(
                "All parsers failed to extract items (%d attempts over %d candidates)",
                tried,
                len(texts),
            )
            return ParseFailure(
                reason="No parser extracted any items",
                attempted=tried,
                candidates=len(texts),
            )

        ranked = sorted(attempts, key=_attempt_sort_key)
        best = ranked[0]
        logger.info(
            "Selected %s parser (candidate %d): confidence=%.2f math_valid=%s items=%d",
            best.parser_used,
            best.candidate_index,
            best.confidence,
            best.math_valid,
            len(best.data.items),
        )
        return ParseOutcome(
            data=best.data,
            confidence=best.confidence,
            math_valid=best.math_valid,
            parser_used=best.parser_used,
            validation=best.validation,
            attempts=ranked,
        )


def parse_receipt(
    candidates: Sequence[str],
    strategies: Optional[Sequence[ParseStrategy]] = None,
) -> Union[ParseOutcome, ParseFailure]:
    """Parse text candidates with the given (or built-in) strategies."""
    return ConfidenceSelector(strategies).parse(candidates)
