"""End-to-end tests for the receipt-to-ledger pipeline."""

import asyncio
import logging
from decimal import Decimal
from unittest.mock import patch

import pytest

from receipt_ledger.config import Config, ConfigValidationError
from receipt_ledger.extractors import ParseFailure
from receipt_ledger.pipeline import LedgerPipeline, ReceiptEntry
from receipt_ledger.schemas import MappingSource, postings_sum
from receipt_ledger.spark_ai import CategorySuggestion


class FixedEnhancer:
    """Always suggests the same category."""

    is_enabled = True

    def __init__(self, category):
        self.category = category

    async def enhance(self, description, current_category, vendor=None, business=None):
        return CategorySuggestion(self.category, 0.9, "", "test-model")

    async def aclose(self):
        pass


@pytest.fixture
def pipeline(store):
    return LedgerPipeline(Config(), store=store)


def process(pipeline, candidates, **kwargs):
    return asyncio.run(pipeline.process_receipt(candidates, **kwargs))


class TestProcessReceipt:
    """Tests for LedgerPipeline.process_receipt."""

    def test_thai_bill(self, pipeline, sample_thai_bill):
        """Three categorized items and a cash payment, balanced."""
        entry = process(pipeline, [sample_thai_bill], payment_account="Assets:Cash")

        assert isinstance(entry, ReceiptEntry)
        assert entry.ok
        assert entry.is_balanced
        assert entry.outcome.math_valid
        assert [p.account for p in entry.postings] == [
            "Expenses:Personal:Food:Thai",
            "Expenses:Personal:Food:Thai",
            "Expenses:Personal:Food:Beverages:BubbleTea",
            "Assets:Cash",
        ]
        assert entry.postings[-1].amount == Decimal("-561.75")
        assert postings_sum(entry.postings) == 0
        assert all(p.currency == "THB" for p in entry.postings)
        assert [m.source for m in entry.mappings] == [MappingSource.PATTERN] * 3

    def test_tax_line(self, pipeline, sample_thai_bill):
        """The tax can be posted on its own line."""
        entry = process(pipeline, [sample_thai_bill], include_tax_line=True)

        assert entry.postings[3].account == "Expenses:Taxes:Sales"
        assert entry.postings[3].amount == Decimal("36.75")
        assert len(entry.mappings) == 3

    def test_business_and_payment(self, pipeline, store, sample_till_receipt):
        """Business labels are normalized and payment methods mapped."""
        store.upsert_business_context("MyBrick")

        entry = process(
            pipeline,
            [sample_till_receipt],
            business="my brick",
            payment_account="credit card",
            currency="USD",
        )

        assert entry.business == "MyBrick"
        assert entry.postings[0].account == "Expenses:MyBrick:Food:Dairy:Milk"
        assert entry.postings[-1].account == "Liabilities:MyBrick:Debt:CreditCard"
        assert entry.postings[-1].amount == Decimal("-11.75")
        assert entry.currency == "USD"
        assert entry.is_balanced

    def test_unparseable_text(self, pipeline):
        """No items anywhere is reported as a failure."""
        result = process(pipeline, ["hello world", ""])

        assert isinstance(result, ParseFailure)
        assert not result.ok

    def test_enhancer_refines_broad_category(self, store):
        """An injected enhancer refines broad accounts."""
        pipeline = LedgerPipeline(Config(), store=store, enhancer=FixedEnhancer("Food:Fruit:Apples"))

        entry = process(pipeline, ["Apples 45.00\nSUBTOTAL 45.00\nTOTAL 45.00"])

        assert entry.postings[0].account == "Expenses:Personal:Food:Fruit:Apples"
        assert entry.mappings[0].enhanced

    def test_to_dict(self, pipeline, sample_thai_bill):
        """Amounts serialize as strings."""
        data = process(pipeline, [sample_thai_bill]).to_dict()

        assert data["parser_used"] == "invoice"
        assert data["postings"][-1] == {"account": "Assets:Cash", "amount": "-561.75", "currency": "THB"}
        assert data["errors"] == []

    def test_balance_epsilon_from_config(self, store):
        """ledger.balance_epsilon decides whether a residual is corrected."""
        config = Config()
        config.ledger.balance_epsilon = 1.00
        text = "BREAD 2.00\nMILK 3.00\nSUBTOTAL 5.00\nTOTAL 5.02"

        entry = process(LedgerPipeline(config, store=store), [text])

        assert [p.amount for p in entry.postings] == [
            Decimal("2.00"),
            Decimal("3.00"),
            Decimal("-5.02"),
        ]
        assert entry.is_balanced

        strict = process(LedgerPipeline(Config(), store=store), [text])
        assert strict.postings[0].amount == Decimal("2.02")


class TestQuality:
    """Tests for OCR quality assessment."""

    def test_low_quality_warns(self, pipeline, caplog):
        """Poor text is logged but still returned."""
        with caplog.at_level(logging.WARNING):
            quality = pipeline.assess_quality(["hello"])

        assert quality.confidence < 0.3
        assert "Low OCR quality" in caplog.text

    def test_best_candidate_reported(self, pipeline, sample_thai_bill):
        """The best candidate's quality is used."""
        quality = pipeline.assess_quality(["hello", sample_thai_bill])
        assert quality.confidence == 1.0

    def test_no_candidates(self, pipeline):
        """Blank candidates have no quality."""
        assert pipeline.assess_quality(["", "  "]) is None


class TestTagEntry:
    """Tests for LedgerPipeline.tag_entry."""

    def test_tags_applied(self, pipeline, store, sample_thai_bill):
        """Posting tags are written for the stored entry."""
        tag_id = store.create_tag("bubble-tea", "food", priority=2)
        entry = process(pipeline, [sample_thai_bill])
        postings = dict(enumerate(entry.postings, start=100))

        result = pipeline.tag_entry(1, "Thai dinner", postings=postings)

        assert [t.name for t in result.posting_tags[102]] == ["bubble-tea"]
        assert store.get_posting_tag_ids(102) == [tag_id]
        assert store.get_tag(tag_id).usage_count == 1

    def test_failure_never_raises(self, pipeline):
        """Tagging errors are swallowed."""
        with patch.object(pipeline.tagger, "auto_tag_entry", side_effect=RuntimeError("boom")):
            assert pipeline.tag_entry(1, "anything") is None


class TestFromConfig:
    """Tests for LedgerPipeline.from_config."""

    def test_loads_file(self, tmp_path, monkeypatch):
        """The state DB path comes from the config file."""
        monkeypatch.delenv("RECEIPT_LEDGER_DB", raising=False)
        monkeypatch.delenv("LEDGER_LLM_ENABLED", raising=False)
        db_path = tmp_path / "state.db"
        config_path = tmp_path / "config.yaml"
        config_path.write_text(f"state_db_path: {db_path}\n")

        pipeline = LedgerPipeline.from_config(config_path)

        assert pipeline.store.db_path == db_path
        assert pipeline.enhancer is None
        assert db_path.exists()

    def test_invalid_config_rejected(self, tmp_path, monkeypatch):
        """Validation errors surface before anything is built."""
        monkeypatch.delenv("LEDGER_CURRENCY", raising=False)
        config_path = tmp_path / "config.yaml"
        config_path.write_text("ledger:\n  default_currency: BAHT\n")

        with pytest.raises(ConfigValidationError):
            LedgerPipeline.from_config(config_path)
