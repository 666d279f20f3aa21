"""
Confidence scoring implementation.

Two independent signals:
- OCR quality: how receipt-like the raw text looks (advisory only)
- Parse score: how trustworthy one parse attempt is (drives selection)
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..schemas.receipt import ReceiptData
from .math_check import ReceiptMathValidation

_MONEY_ISH = re.compile(r"\$?\d+\.?\d*")
_RECEIPT_KEYWORDS = re.compile(r"\b(TOTAL|TAX|SUBTOTAL|RECEIPT|INVOICE)\b", re.IGNORECASE)
_DATE_PATTERN = re.compile(r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}")
_BUSINESS_SUFFIX = re.compile(r"\b(LLC|INC|LTD|CORP|CO\.?)\b", re.IGNORECASE)


@dataclass
class OCRQuality:
    """Structural plausibility of raw OCR text."""

    confidence: float
    text_length: int
    line_count: int
    money_token_count: int
    has_structure: bool
    issues: list[str] = field(default_factory=list)


def assess_ocr_quality(text: str) -> OCRQuality:
    """Score raw recognized text before any parsing is attempted.

    Pure function. A low score is a diagnostic, never a reason to stop.
    """
    text = text or ""
    lines = [line for line in text.splitlines() if line.strip()]
    money_count = len(_MONEY_ISH.findall(text))
    has_structure = bool(
        _RECEIPT_KEYWORDS.search(text)
        or _DATE_PATTERN.search(text)
        or _BUSINESS_SUFFIX.search(text)
    )

    issues: list[str] = []
    if len(text) < 50:
        issues.append("Text too short")
    if len(lines) < 3:
        issues.append("Too few lines")
    if money_count == 0:
        issues.append("No money amounts found")
    if not has_structure:
        issues.append("No receipt structure detected")

    confidence = 0.1
    if len(text) > 50:
        confidence += 0.2
    if len(text) > 200:
        confidence += 0.1
    if len(lines) > 5:
        confidence += 0.2
    if len(lines) > 10:
        confidence += 0.1
    if money_count > 0:
        confidence += 0.2
    if money_count > 3:
        confidence += 0.1
    if has_structure:
        confidence += 0.3

    return OCRQuality(
        confidence=round(min(confidence, 1.0), 4),
        text_length=len(text),
        line_count=len(lines),
        money_token_count=money_count,
        has_structure=has_structure,
        issues=issues,
    )


@dataclass
class ParseScoreWeights:
    """Weights for parse-attempt scoring. Sum to 1.0."""

    items: float = 0.4
    math: float = 0.3
    subtotal: float = 0.07
    tax: float = 0.07
    total: float = 0.06
    description: float = 0.1

    # Item count at which the item component saturates
    item_saturation: int = 5
    # Average description length considered most plausible
    ideal_description_length: int = 15


def score_parse_result(
    data: ReceiptData,
    validation: ReceiptMathValidation,
    weights: Optional[ParseScoreWeights] = None,
) -> float:
    """
    Score one parse attempt in [0, 1].

    Weights:
    - Item count: 40% (saturating at 5 items)
    - Math validity: 30% (binary)
    - Completeness: 20% (subtotal / tax / total presence)
    - Description length: 10% (penalizes distance from 15 characters)
    """
    w = weights or ParseScoreWeights()

    score = min(len(data.items) / w.item_saturation, 1.0) * w.items
    if validation.is_valid:
        score += w.math

    if data.subtotal is not None:
        score += w.subtotal
    if data.tax is not None:
        score += w.tax
    if data.total is not None:
        score += w.total

    if data.items:
        avg_len = sum(len(i.description) for i in data.items) / len(data.items)
        ideal = w.ideal_description_length
        score += max(0.0, 1 - abs(avg_len - ideal) / ideal) * w.description

    # Clamp to [0, 1]
    return max(0.0, min(1.0, score))
