"""Tests for math validation, OCR quality and parse scoring."""

from decimal import Decimal

import pytest

from receipt_ledger.confidence import (
    ParseScoreWeights,
    assess_ocr_quality,
    score_parse_result,
    validate_receipt_math,
)
from receipt_ledger.schemas import ReceiptData, ReceiptItem


def _items(*prices):
    return [ReceiptItem(f"Item number {i}", Decimal(p)) for i, p in enumerate(prices)]


class TestReceiptMath:
    """Tests for validate_receipt_math."""

    def test_consistent_receipt_is_valid(self):
        """Items = subtotal and subtotal + tax = total."""
        data = ReceiptData(
            items=_items("265.00", "180.00", "80.00"),
            subtotal=Decimal("525.00"),
            tax=Decimal("36.75"),
            total=Decimal("561.75"),
        )
        result = validate_receipt_math(data)

        assert result.is_valid
        assert result.errors == []
        assert result.items_sum == Decimal("525.00")
        assert result.expected_total == Decimal("561.75")

    def test_item_sum_mismatch_reported(self):
        """Item sum off by more than the threshold is an error."""
        data = ReceiptData(items=_items("10.00", "5.00"), subtotal=Decimal("16.00"))
        result = validate_receipt_math(data)

        assert not result.is_valid
        assert result.errors == ["Item sum (15.00) ≠ subtotal (16.00)"]

    def test_total_mismatch_reported(self):
        """Subtotal + tax off from total is an error with a difference."""
        data = ReceiptData(
            items=_items("10.00"),
            subtotal=Decimal("10.00"),
            tax=Decimal("1.00"),
            total=Decimal("12.00"),
        )
        result = validate_receipt_math(data)

        assert not result.is_valid
        assert result.errors == ["Subtotal + tax (11.00) ≠ total (12.00)"]
        assert result.difference == Decimal("-1.00")

    def test_within_threshold_is_valid(self):
        """A few cents of OCR drift are tolerated."""
        data = ReceiptData(items=_items("10.00"), subtotal=Decimal("10.04"))
        assert validate_receipt_math(data).is_valid
        assert not validate_receipt_math(data, threshold=Decimal("0.01")).is_valid

    def test_missing_tax_defaults_to_zero(self):
        """No tax: subtotal must equal total."""
        data = ReceiptData(items=_items("10.00"), subtotal=Decimal("10.00"), total=Decimal("10.00"))
        result = validate_receipt_math(data)

        assert result.is_valid
        assert result.tax == Decimal("0.00")

    def test_summary_rows_parsed_as_items(self):
        """A TOTAL row mistaken for an item supplies the total but not the item sum."""
        data = ReceiptData(
            items=[
                ReceiptItem("Coffee", Decimal("3.00")),
                ReceiptItem("SUBTOTAL", Decimal("3.00")),
                ReceiptItem("TOTAL", Decimal("3.00")),
            ]
        )
        result = validate_receipt_math(data)

        assert result.items_sum == Decimal("3.00")
        assert result.subtotal == Decimal("3.00")
        assert result.is_valid

    def test_to_dict(self):
        """Amounts serialize as strings."""
        data = ReceiptData(items=_items("1.50"), subtotal=Decimal("1.50"))
        as_dict = validate_receipt_math(data).to_dict()
        assert as_dict["subtotal"] == "1.50"
        assert as_dict["total"] is None


class TestOCRQuality:
    """Tests for assess_ocr_quality."""

    def test_empty_text(self):
        """Empty text gets the base score and every issue."""
        quality = assess_ocr_quality("")

        assert quality.confidence == pytest.approx(0.1)
        assert "Text too short" in quality.issues
        assert "No money amounts found" in quality.issues
        assert not quality.has_structure

    def test_receipt_like_text(self, sample_till_receipt):
        """Structured receipt text scores high."""
        quality = assess_ocr_quality(sample_till_receipt)

        assert quality.has_structure
        assert quality.money_token_count > 3
        assert quality.confidence >= 0.9
        assert quality.issues == []

    def test_confidence_capped(self):
        """Score never exceeds 1.0."""
        text = "\n".join(f"ITEM {i} 1.00 TOTAL 01/02/2024" for i in range(30))
        assert assess_ocr_quality(text).confidence == pytest.approx(1.0)


class TestParseScore:
    """Tests for score_parse_result."""

    def test_menu_bill_score(self):
        """3 items, valid math, full triangle, average description 11 chars."""
        data = ReceiptData(
            items=[
                ReceiptItem("Tom Yum Kung", Decimal("265")),
                ReceiptItem("Pad Thai", Decimal("180")),
                ReceiptItem("Thai Iced Tea", Decimal("80")),
            ],
            subtotal=Decimal("525.00"),
            tax=Decimal("36.75"),
            total=Decimal("561.75"),
        )
        score = score_parse_result(data, validate_receipt_math(data))

        expected = 0.4 * 3 / 5 + 0.3 + 0.2 + 0.1 * (1 - 4 / 15)
        assert score == pytest.approx(expected)

    def test_item_component_saturates(self):
        """More than five items earns no extra item credit."""
        five = ReceiptData(items=_items(*["1.00"] * 5))
        ten = ReceiptData(items=_items(*["1.00"] * 10))
        assert score_parse_result(five, validate_receipt_math(five)) == pytest.approx(
            score_parse_result(ten, validate_receipt_math(ten))
        )

    def test_invalid_math_loses_weight(self):
        """Math validity contributes a binary 30%."""
        valid = ReceiptData(items=_items("1.00"), subtotal=Decimal("1.00"))
        invalid = ReceiptData(items=_items("1.00"), subtotal=Decimal("9.00"))
        diff = score_parse_result(valid, validate_receipt_math(valid)) - score_parse_result(
            invalid, validate_receipt_math(invalid)
        )
        assert diff == pytest.approx(0.3)

    def test_custom_weights(self):
        """Weights are injectable."""
        data = ReceiptData(items=_items("1.00"))
        weights = ParseScoreWeights(items=0.0, math=0.0, description=0.0)
        assert score_parse_result(data, validate_receipt_math(data), weights) == 0.0
