"""
Review Aggregator Tests

Tests for review record construction, validation, bulk edits, filters,
feedback collection and commit.
"""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_import.models import CanonicalTransaction
from statement_import.review import ReviewAggregator


@pytest.fixture
def aggregator() -> ReviewAggregator:
    return ReviewAggregator()


@pytest.fixture
def records(aggregator, normalizer, categorizer):
    """Review records for a recognized, an unknown and a broken transaction."""
    transactions = [
        CanonicalTransaction(date="2024-01-16", description="STARBUCKS #2291", amount=Decimal("4.85")),
        CanonicalTransaction(date="2024-01-17", description="JOE'S DINER #12", amount=Decimal("12.00")),
        CanonicalTransaction(date="sometime", description="ZZQX", amount=Decimal("0")),
    ]
    vendors = normalizer.normalize_batch([t.original_vendor for t in transactions])
    categories = [categorizer.categorize(t.description) for t in transactions]
    return aggregator.build(transactions, vendors, categories)


class TestBuild:
    """Tests for combining stage results."""

    def test_recognized_transaction(self, records):
        """Test a seed-matched vendor with a category validates cleanly."""
        record = records[0]

        assert record.vendor == "Starbucks"
        assert record.suggested_vendor == "Starbucks"
        assert record.vendor_matched is True
        assert record.category == "Dining Out"
        assert record.category_confidence == pytest.approx(0.85)
        assert record.validation_errors == []
        assert "vendor_needs_review" in record.transaction.issues

    def test_unknown_vendor(self, records):
        """Test a fallback vendor is flagged and lowers confidence."""
        record = records[1]

        assert record.vendor == "JOE'S DINER"
        assert record.validation_errors == ["missing_vendor"]
        assert record.transaction.confidence == pytest.approx(0.3)
        assert "uncategorized" in record.transaction.issues

    def test_invalid_amount_and_date(self, records):
        """Test zero amounts and unparseable dates are validation errors."""
        assert records[2].validation_errors == ["missing_vendor", "invalid_amount", "invalid_date"]

    def test_source_category_kept(self, aggregator, normalizer, categorizer):
        """Test a category from the source is not overwritten."""
        txn = CanonicalTransaction(
            date="2024-01-16", description="STARBUCKS", amount=Decimal("5"), category="Treats"
        )
        record = aggregator.build(
            [txn], [normalizer.normalize("STARBUCKS")], [categorizer.categorize("STARBUCKS")]
        )[0]

        assert record.category == "Treats"
        assert record.suggested_category == "Dining Out"

    def test_misaligned_results(self, aggregator, normalizer):
        """Test result lists of different lengths are rejected."""
        txn = CanonicalTransaction(date="2024-01-16", description="X", amount=Decimal("1"))
        with pytest.raises(ValueError):
            aggregator.build([txn], [normalizer.normalize("X")], [])


class TestEditing:
    """Tests for user edits and bulk operations."""

    def test_update_marks_edited_and_revalidates(self, aggregator, records):
        """Test confirming a vendor clears the missing vendor error."""
        record = aggregator.update(records[1], vendor="Joe's Diner")

        assert record.is_edited is True
        assert record.edited_fields == ["vendor"]
        assert record.validation_errors == []
        assert record.is_ready is False

    def test_update_normalizes_values(self, aggregator, records):
        """Test edited dates and amounts are normalized."""
        record = aggregator.update(records[2], date="01/20/2024", amount="7.50")

        assert record.transaction.date == "2024-01-20"
        assert record.transaction.amount == Decimal("7.50")
        assert record.validation_errors == ["missing_vendor"]

    def test_update_rejects_bad_input(self, aggregator, records):
        """Test unknown fields and negative amounts raise ValueError."""
        with pytest.raises(ValueError):
            aggregator.update(records[0], hash="abc")
        with pytest.raises(ValueError):
            aggregator.update(records[0], amount="-5")
        with pytest.raises(ValueError):
            aggregator.update(records[0], amount="NaN")
        with pytest.raises(ValueError):
            aggregator.update(records[0], amount="abc")

    def test_apply_category(self, aggregator, records):
        """Test bulk category assignment marks records edited."""
        count = aggregator.apply_category(records, [records[0].id, records[1].id], "Food")

        assert count == 2
        assert [r.category for r in records[:2]] == ["Food", "Food"]
        assert all(r.is_edited for r in records[:2])
        assert records[2].is_edited is False

    def test_remove(self, aggregator, records):
        """Test removal returns the remaining records in order."""
        remaining = aggregator.remove(records, {records[1].id})
        assert [r.id for r in remaining] == [records[0].id, records[2].id]


class TestFiltersAndSummary:
    """Tests for review views and counts."""

    def test_filters(self, aggregator, records):
        """Test each filter kind selects the expected records."""
        records[0].transaction.is_duplicate = True
        aggregator.update(records[1], vendor="Joe's Diner")

        assert aggregator.filter_records(records, "all") == records
        assert aggregator.filter_records(records, "duplicates") == [records[0]]
        assert aggregator.filter_records(records, "edited") == [records[1]]
        assert aggregator.filter_records(records, "low_confidence") == records[1:]
        assert records[1] not in aggregator.filter_records(records, "needs_vendor")
        assert records[2] in aggregator.filter_records(records, "issues")

    def test_unknown_filter(self, aggregator, records):
        """Test an unknown filter name raises ValueError."""
        with pytest.raises(ValueError):
            aggregator.filter_records(records, "starred")

    def test_summary(self, aggregator, records):
        """Test summary counts."""
        summary = aggregator.summarize(records)

        assert summary.total == 3
        assert summary.ready == 1
        assert summary.issues == 3
        assert summary.duplicates == 0
        assert summary.needs_vendor == 3
        assert summary.edited == 0

    def test_edited_record_not_ready(self, aggregator, records):
        """Test edited records leave the ready count."""
        aggregator.update(records[0], notes="checked")
        assert aggregator.summarize(records).ready == 0


class TestFeedbackAndCommit:
    """Tests for learning feedback and commit selection."""

    def test_collect_feedback(self, aggregator, records):
        """Test only changed vendors and categories become corrections."""
        aggregator.update(records[1], vendor="Joe's Family Diner")
        aggregator.update(records[0], category="Coffee")

        feedback = aggregator.collect_feedback(records)

        assert len(feedback.vendor_corrections) == 1
        assert feedback.vendor_corrections[0].original_vendor == "JOE'S DINER #12"
        assert feedback.vendor_corrections[0].corrected_vendor == "Joe's Family Diner"
        assert len(feedback.category_corrections) == 1
        correction = feedback.category_corrections[0]
        assert correction.description == "STARBUCKS #2291"
        assert correction.category == "Coffee"
        assert correction.rejected_category == "Dining Out"

    def test_unchanged_edit_is_not_feedback(self, aggregator, records):
        """Test re-entering the suggested vendor produces no correction."""
        aggregator.update(records[0], vendor="Starbucks")
        assert aggregator.collect_feedback(records).is_empty

    def test_unchanged_edit_keeps_record_ready(self, aggregator, records):
        """Test assigning the category a record already has is not an edit."""
        assert aggregator.apply_category(records, [records[0].id], "Dining Out") == 1

        assert records[0].is_edited is False
        assert records[0].edited_fields == []
        assert records[0].is_ready is True
        assert aggregator.summarize(records).ready == 1

    def test_commit_only_valid_records(self, aggregator, records):
        """Test records with validation errors are held back."""
        batch = aggregator.commit(records)

        assert [r.id for r in batch.accepted] == [records[0].id]
        assert [r.id for r in batch.held_back] == [records[1].id, records[2].id]

        data = batch.to_dict()
        assert data["held_back"][1]["validation_errors"] == [
            "missing_vendor", "invalid_amount", "invalid_date"
        ]
