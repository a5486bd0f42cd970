"""
Review Aggregator Module

Combines hashing, vendor normalization and categorization output into
per-transaction review records, supports bulk edits, and hands only valid
records to persistence.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .auto_categorizer import CategorizationResult
from .field_mapper import is_valid_date, parse_date
from .models import CanonicalTransaction
from .settings import PipelineSettings
from .vendor_normalizer import NormalizationResult

logger = logging.getLogger(__name__)

UNKNOWN_VENDORS = {"unknown", "unknown vendor"}

FILTER_KINDS = ("all", "issues", "duplicates", "low_confidence", "edited", "needs_vendor")


@dataclass
class ReviewableTransaction:
    """A transaction plus the pipeline's suggestions and validation state.

    Current values live on ``transaction``; ``suggested_vendor`` and
    ``suggested_category`` keep what the pipeline proposed so edits can be
    turned into learning feedback.
    """

    transaction: CanonicalTransaction
    suggested_vendor: str
    vendor_confidence: float
    vendor_matched: bool = False
    vendor_needs_review: bool = True
    vendor_suggestions: list[str] = field(default_factory=list)
    suggested_category: str | None = None
    category_confidence: float = 0.0
    validation_errors: list[str] = field(default_factory=list)
    is_edited: bool = False
    edited_fields: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.transaction.id

    @property
    def vendor(self) -> str:
        return self.transaction.vendor

    @property
    def category(self) -> str | None:
        return self.transaction.category

    @property
    def is_duplicate(self) -> bool:
        return self.transaction.is_duplicate

    @property
    def has_issues(self) -> bool:
        return bool(self.validation_errors or self.transaction.issues)

    @property
    def is_ready(self) -> bool:
        return not self.validation_errors and not self.is_edited

    def to_dict(self) -> dict:
        return {
            **self.transaction.to_dict(),
            "suggested_vendor": self.suggested_vendor,
            "vendor_confidence": round(self.vendor_confidence, 4),
            "vendor_matched": self.vendor_matched,
            "vendor_needs_review": self.vendor_needs_review,
            "vendor_suggestions": list(self.vendor_suggestions),
            "suggested_category": self.suggested_category,
            "category_confidence": round(self.category_confidence, 4),
            "validation_errors": list(self.validation_errors),
            "is_edited": self.is_edited,
            "edited_fields": list(self.edited_fields),
        }


@dataclass
class ReviewSummary:
    total: int = 0
    ready: int = 0
    issues: int = 0
    duplicates: int = 0
    needs_vendor: int = 0
    edited: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "ready": self.ready,
            "issues": self.issues,
            "duplicates": self.duplicates,
            "needs_vendor": self.needs_vendor,
            "edited": self.edited,
        }


@dataclass
class VendorCorrection:
    original_vendor: str
    corrected_vendor: str


@dataclass
class CategoryCorrection:
    description: str
    category: str
    rejected_category: str | None = None


@dataclass
class Feedback:
    """User corrections to feed back into the learning engines."""

    vendor_corrections: list[VendorCorrection] = field(default_factory=list)
    category_corrections: list[CategoryCorrection] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.vendor_corrections and not self.category_corrections


@dataclass
class CommitBatch:
    """Records handed to persistence, and those held back for fixing."""

    accepted: list[ReviewableTransaction] = field(default_factory=list)
    held_back: list[ReviewableTransaction] = field(default_factory=list)
    feedback: Feedback = field(default_factory=Feedback)

    def to_dict(self) -> dict:
        return {
            "accepted": [r.to_dict() for r in self.accepted],
            "held_back": [
                {"id": r.id, "validation_errors": list(r.validation_errors)}
                for r in self.held_back
            ],
            "vendor_corrections": len(self.feedback.vendor_corrections),
            "category_corrections": len(self.feedback.category_corrections),
        }


class ReviewAggregator:
    """Builds and maintains review records for one import batch."""

    EDITABLE_FIELDS = (
        "vendor", "category", "date", "amount", "is_income",
        "description", "account", "reference", "notes",
    )

    def __init__(self, settings: PipelineSettings | None = None):
        self.settings = settings or PipelineSettings()

    def build(
        self,
        transactions: list[CanonicalTransaction],
        vendor_results: list[NormalizationResult],
        category_results: list[CategorizationResult]
    ) -> list[ReviewableTransaction]:
        """Combine per-stage results into review records.

        All three lists must be aligned in source order.

        Args:
            transactions: Hashed transactions
            vendor_results: Normalizer output per transaction
            category_results: Categorizer output per transaction

        Returns:
            List of ReviewableTransaction in source order

        Raises:
            ValueError: If the lists differ in length
        """
        if not len(transactions) == len(vendor_results) == len(category_results):
            raise ValueError(
                f"Result lists are not aligned: {len(transactions)} transactions, "
                f"{len(vendor_results)} vendor results, {len(category_results)} category results"
            )

        records = []
        for txn, vendor, category in zip(transactions, vendor_results, category_results):
            txn.vendor = vendor.normalized_name
            txn.confidence = min(txn.confidence, vendor.confidence)
            if vendor.needs_review:
                txn.add_issue("vendor_needs_review")

            if txn.category is None and category.suggested_category:
                txn.category = category.suggested_category
            if not txn.category:
                txn.add_issue("uncategorized")
            elif category.confidence < self.settings.low_confidence_threshold:
                txn.add_issue("low_category_confidence")

            record = ReviewableTransaction(
                transaction=txn,
                suggested_vendor=vendor.normalized_name,
                vendor_confidence=vendor.confidence,
                vendor_matched=vendor.matched,
                vendor_needs_review=vendor.needs_review,
                vendor_suggestions=[s.name for s in vendor.suggestions],
                suggested_category=category.suggested_category,
                category_confidence=category.confidence,
            )
            self.validate(record)
            records.append(record)

        logger.info(
            f"Built {len(records)} review records, "
            f"{sum(1 for r in records if r.validation_errors)} with validation errors"
        )
        return records

    def validate(self, record: ReviewableTransaction) -> list[str]:
        """Recompute ``validation_errors`` for a record."""
        txn = record.transaction
        errors = []

        vendor = txn.vendor.strip()
        vendor_confirmed = record.vendor_matched or "vendor" in record.edited_fields
        if not vendor or vendor.lower() in UNKNOWN_VENDORS or not vendor_confirmed:
            errors.append("missing_vendor")
        if txn.amount <= 0:
            errors.append("invalid_amount")
        if not is_valid_date(txn.date):
            errors.append("invalid_date")

        record.validation_errors = errors
        return errors

    def update(self, record: ReviewableTransaction, **changes) -> ReviewableTransaction:
        """Apply user edits to a record and re-validate it.

        The record counts as edited only once a value actually changes.

        Raises:
            ValueError: For a field that cannot be edited, or an amount that is
                negative or not a finite number
        """
        txn = record.transaction

        for name, value in changes.items():
            if name not in self.EDITABLE_FIELDS:
                raise ValueError(f"Field is not editable: {name}")

            if name == "amount":
                try:
                    value = Decimal(str(value))
                except InvalidOperation as e:
                    raise ValueError(f"Invalid amount: {value!r}") from e
                if not value.is_finite():
                    raise ValueError(f"Invalid amount: {value!r}")
                if value < 0:
                    raise ValueError("Amount must be a magnitude; use is_income for direction")
            elif name == "date":
                value = parse_date(str(value))

            if getattr(txn, name) != value:
                setattr(txn, name, value)
                if name not in record.edited_fields:
                    record.edited_fields.append(name)

        if record.edited_fields:
            record.is_edited = True
        self.validate(record)
        return record

    def apply_category(
        self,
        records: list[ReviewableTransaction],
        ids: set[str] | list[str],
        category: str
    ) -> int:
        """Assign one category to every record in ``ids``; returns the count."""
        ids = set(ids)
        updated = 0
        for record in records:
            if record.id in ids:
                self.update(record, category=category)
                updated += 1
        logger.info(f"Applied category {category!r} to {updated} transactions")
        return updated

    @staticmethod
    def remove(
        records: list[ReviewableTransaction],
        ids: set[str] | list[str]
    ) -> list[ReviewableTransaction]:
        """Return the records without those in ``ids``."""
        ids = set(ids)
        return [record for record in records if record.id not in ids]

    def needs_vendor(self, record: ReviewableTransaction) -> bool:
        vendor = record.vendor.strip()
        if not vendor or vendor.lower() in UNKNOWN_VENDORS:
            return True
        return record.vendor_needs_review and "vendor" not in record.edited_fields

    def filter_records(
        self,
        records: list[ReviewableTransaction],
        kind: str = "all"
    ) -> list[ReviewableTransaction]:
        """Select records for a review view.

        Args:
            records: Review records
            kind: One of ``FILTER_KINDS``

        Raises:
            ValueError: For an unknown filter kind
        """
        if kind == "all":
            return list(records)
        if kind == "issues":
            return [r for r in records if r.has_issues]
        if kind == "duplicates":
            return [r for r in records if r.is_duplicate]
        if kind == "low_confidence":
            return [
                r for r in records
                if r.transaction.confidence < self.settings.low_confidence_threshold
            ]
        if kind == "edited":
            return [r for r in records if r.is_edited]
        if kind == "needs_vendor":
            return [r for r in records if self.needs_vendor(r)]
        raise ValueError(f"Unknown filter: {kind}. Expected one of {FILTER_KINDS}")

    def summarize(self, records: list[ReviewableTransaction]) -> ReviewSummary:
        return ReviewSummary(
            total=len(records),
            ready=sum(1 for r in records if r.is_ready),
            issues=sum(1 for r in records if r.has_issues),
            duplicates=sum(1 for r in records if r.is_duplicate),
            needs_vendor=sum(1 for r in records if self.needs_vendor(r)),
            edited=sum(1 for r in records if r.is_edited),
        )

    @staticmethod
    def collect_feedback(records: list[ReviewableTransaction]) -> Feedback:
        """Corrections from edited records that differ from the suggestions."""
        feedback = Feedback()

        for record in records:
            if not record.is_edited:
                continue
            txn = record.transaction

            vendor = txn.vendor.strip()
            if (
                "vendor" in record.edited_fields
                and vendor
                and vendor.lower() != record.suggested_vendor.lower()
            ):
                feedback.vendor_corrections.append(
                    VendorCorrection(txn.original_vendor, vendor)
                )

            if (
                "category" in record.edited_fields
                and txn.category
                and txn.category != record.suggested_category
            ):
                feedback.category_corrections.append(
                    CategoryCorrection(txn.description, txn.category, record.suggested_category)
                )

        return feedback

    def commit(self, records: list[ReviewableTransaction]) -> CommitBatch:
        """Split records into those fit to persist and those held back.

        Only records with zero validation errors are accepted. Nothing is
        written here; the host persists ``accepted``.
        """
        for record in records:
            self.validate(record)

        batch = CommitBatch(
            accepted=[r for r in records if not r.validation_errors],
            held_back=[r for r in records if r.validation_errors],
            feedback=self.collect_feedback(records),
        )
        logger.info(
            f"Commit: {len(batch.accepted)} accepted, {len(batch.held_back)} held back"
        )
        return batch
