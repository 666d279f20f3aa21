"""Tests for the confidence-scored selector."""

from decimal import Decimal

import pytest

from receipt_ledger.extractors import (
    ConfidenceSelector,
    ParseFailure,
    ParseOutcome,
    ParseStrategy,
    parse_receipt,
)
from receipt_ledger.schemas import ReceiptData, ReceiptItem


class FixedStrategy(ParseStrategy):
    """Returns the same ReceiptData for any text."""

    def __init__(self, name, data):
        self._name = name
        self.data = data
        self.calls = 0

    @property
    def name(self):
        return self._name

    def parse(self, text):
        self.calls += 1
        return self.data


def six_item_receipt():
    return ReceiptData(
        items=[ReceiptItem(f"Grocery line {i}", Decimal("10.00")) for i in range(6)],
        subtotal=Decimal("60.00"),
        tax=Decimal("4.20"),
        total=Decimal("64.20"),
    )


def two_item_receipt():
    return ReceiptData(
        items=[
            ReceiptItem("Loose change", Decimal("5.00")),
            ReceiptItem("Bag", Decimal("5.00")),
        ]
    )


class TestSelection:
    """Tests for ConfidenceSelector.parse."""

    def test_richer_parse_wins_first(self):
        """Six items with a full triangle beats two bare items."""
        selector = ConfidenceSelector(
            [FixedStrategy("six", six_item_receipt()), FixedStrategy("two", two_item_receipt())]
        )
        outcome = selector.parse(["anything"])

        assert isinstance(outcome, ParseOutcome)
        assert outcome.parser_used == "six"
        assert len(outcome.data.items) == 6

    def test_richer_parse_wins_second(self):
        """Attempt order does not change the winner."""
        selector = ConfidenceSelector(
            [FixedStrategy("two", two_item_receipt()), FixedStrategy("six", six_item_receipt())]
        )
        outcome = selector.parse(["anything"])

        assert outcome.parser_used == "six"
        assert [a.parser_used for a in outcome.attempts] == ["six", "two"]

    def test_math_valid_beats_higher_confidence(self):
        """A math-valid attempt ranks above an invalid one with more items."""
        broken = six_item_receipt()
        broken = ReceiptData(items=broken.items, subtotal=Decimal("99.00"), total=Decimal("99.00"))
        selector = ConfidenceSelector(
            [FixedStrategy("broken", broken), FixedStrategy("two", two_item_receipt())]
        )
        outcome = selector.parse(["anything"])

        assert outcome.parser_used == "two"
        assert outcome.math_valid

    def test_every_candidate_tried_with_every_strategy(self):
        """Strategies x candidates attempts, blank candidates skipped."""
        a = FixedStrategy("a", two_item_receipt())
        b = FixedStrategy("b", two_item_receipt())
        outcome = ConfidenceSelector([a, b]).parse(["one", "  ", "two"])

        assert a.calls == 2
        assert b.calls == 2
        assert len(outcome.attempts) == 4

    def test_tie_keeps_run_order(self):
        """Identical attempts: the first strategy run wins."""
        selector = ConfidenceSelector(
            [FixedStrategy("first", two_item_receipt()), FixedStrategy("second", two_item_receipt())]
        )
        assert selector.parse(["x"]).parser_used == "first"

    def test_summary_coalesced_before_scoring(self):
        """A missing tax is inferred before validation."""
        data = ReceiptData(
            items=[ReceiptItem("Widget", Decimal("100.00"))],
            subtotal=Decimal("100.00"),
            total=Decimal("107.00"),
        )
        outcome = ConfidenceSelector([FixedStrategy("one", data)]).parse(["x"])

        assert outcome.data.tax == Decimal("7.00")
        assert outcome.math_valid


class TestFailure:
    """No items anywhere is an explicit failure, not an empty receipt."""

    def test_no_items_is_failure(self):
        """Strategies that only find summaries produce ParseFailure."""
        empty = FixedStrategy("empty", ReceiptData(total=Decimal("50.00")))
        outcome = ConfidenceSelector([empty]).parse(["TOTAL 50.00", "TOTAL 50.00"])

        assert isinstance(outcome, ParseFailure)
        assert not outcome.ok
        assert outcome.attempted == 2
        assert outcome.candidates == 2

    def test_no_candidates_is_failure(self):
        """Empty or blank candidate lists fail without calling strategies."""
        strategy = FixedStrategy("unused", two_item_receipt())
        outcome = ConfidenceSelector([strategy]).parse(["", "   "])

        assert isinstance(outcome, ParseFailure)
        assert strategy.calls == 0

    def test_strategy_returning_none(self):
        """A strategy that finds no lines is skipped."""
        outcome = ConfidenceSelector([FixedStrategy("none", None)]).parse(["x"])
        assert isinstance(outcome, ParseFailure)


class TestBuiltInStrategies:
    """End-to-end with the real parsers."""

    def test_thai_bill(self, sample_thai_bill):
        """The menu bill is recovered by the invoice strategy."""
        outcome = parse_receipt([sample_thai_bill])

        assert outcome.ok
        assert outcome.parser_used == "invoice"
        assert [i.price for i in outcome.data.items] == [
            Decimal("265.00"),
            Decimal("180.00"),
            Decimal("80.00"),
        ]
        assert outcome.data.items_sum == Decimal("525.00")
        assert outcome.data.subtotal == Decimal("525.00")
        assert outcome.data.tax == Decimal("36.75")
        assert outcome.data.total == Decimal("561.75")
        assert outcome.math_valid
        assert outcome.errors == []
        assert outcome.confidence == pytest.approx(0.24 + 0.3 + 0.2 + 0.1 * (1 - 4 / 15))

    def test_till_receipt(self, sample_till_receipt):
        """Equal scores keep the receipt strategy first."""
        outcome = parse_receipt([sample_till_receipt])

        assert outcome.parser_used == "receipt"
        assert outcome.math_valid
        assert len(outcome.data.items) == 3

    def test_segmented_candidate_first(self, sample_thai_bill):
        """A noisy raw candidate does not displace a clean segmented one."""
        raw = "WELCOME\n" + sample_thai_bill + "\nTHANK YOU 2024"
        outcome = parse_receipt([sample_thai_bill, raw])

        assert outcome.math_valid
        assert outcome.data.total == Decimal("561.75")

    def test_receipt_without_subtotal_keeps_printed_total(self):
        """Subtotal is inferred from TOTAL - TAX; the printed total survives."""
        outcome = parse_receipt(["MILK 3.00\nBREAD 2.00\nTAX 0.40\nTOTAL 5.40"])

        assert outcome.data.subtotal == Decimal("5.00")
        assert outcome.data.tax == Decimal("0.40")
        assert outcome.data.total == Decimal("5.40")
        assert outcome.math_valid
