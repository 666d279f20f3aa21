"""
Confidence scoring module.

Assesses raw OCR quality, validates receipt math, and scores parse attempts
so the selector can pick the best one.
"""

from .math_check import ReceiptMathValidation, validate_receipt_math
from .scorer import OCRQuality, ParseScoreWeights, assess_ocr_quality, score_parse_result

__all__ = [
    "OCRQuality",
    "ParseScoreWeights",
    "ReceiptMathValidation",
    "assess_ocr_quality",
    "score_parse_result",
    "validate_receipt_math",
]
