"""
Import Pipeline Module

Runs one statement import end to end: parse, map, hash, normalize vendors,
categorize and build review records. Learning from user corrections and
rule persistence go through a RuleRepository.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .auto_categorizer import AutoCategorizer, CategorizationResult
from .extraction import extraction_warnings, from_candidates
from .field_mapper import FieldMapper
from .hasher import DuplicateReport, TransactionHasher
from .models import CanonicalTransaction, CategorizationRule, NormalizationRule, RuleSet
from .parsers import RawTable, detect_and_parse
from .review import CommitBatch, Feedback, ReviewableTransaction, ReviewAggregator, ReviewSummary
from .rule_store import InMemoryRuleRepository, RuleRepository
from .settings import PipelineSettings, load_settings
from .vendor_normalizer import NormalizationResult, VendorNormalizer

logger = logging.getLogger(__name__)

# Confidence for a category supplied by the source itself
SOURCE_CATEGORY_MATCHED_CONFIDENCE = 0.95
SOURCE_CATEGORY_UNMATCHED_CONFIDENCE = 0.85


@dataclass
class ImportPreview:
    """Review records for one import, before anything is persisted."""

    records: list[ReviewableTransaction] = field(default_factory=list)
    summary: ReviewSummary = field(default_factory=ReviewSummary)
    duplicate_report: DuplicateReport = field(default_factory=DuplicateReport)
    mapping: dict[str, str] = field(default_factory=dict)
    source_format: str = "unknown"
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "records": [r.to_dict() for r in self.records],
            "summary": self.summary.to_dict(),
            "duplicates": self.duplicate_report.to_dict(),
            "mapping": dict(self.mapping),
            "source_format": self.source_format,
            "warnings": list(self.warnings),
        }


class ImportPipeline:
    """Orchestrates the import stages for a user's rule set."""

    def __init__(
        self,
        rule_repository: RuleRepository | None = None,
        categories: list[str] | None = None,
        settings: PipelineSettings | None = None,
        config_dir: Path | str | None = None,
        positive_is_income: bool = True
    ):
        """Initialize the pipeline.

        Args:
            rule_repository: Where user-taught rules are loaded from and saved to
            categories: The user's category names; empty means unrestricted
            settings: Threshold settings, loaded from config when omitted
            config_dir: Path to configuration directory
            positive_is_income: Sign convention of tabular sources
        """
        self.settings = settings or load_settings(config_dir)
        self.repository = rule_repository or InMemoryRuleRepository()

        self.normalizer = VendorNormalizer(config_dir=config_dir, settings=self.settings)
        self.categorizer = AutoCategorizer(
            categories=categories,
            config_dir=config_dir,
            settings=self.settings,
        )
        self.mapper = FieldMapper(positive_is_income=positive_is_income)
        self.hasher = TransactionHasher()
        self.aggregator = ReviewAggregator(self.settings)
        self.import_rules(self.repository.load_rules())

    def preview_text(
        self,
        text: str,
        mapping: dict[str, str] | None = None,
        existing_hashes: set[str] | None = None
    ) -> ImportPreview:
        """Detect the format of pasted text and preview its transactions.

        Raises:
            NoTableFoundError: If HTML content has no table
            ValueError: If the mapping lacks a required field
        """
        table = detect_and_parse(text)
        return self.preview_table(table, mapping, existing_hashes)

    def preview_table(
        self,
        table: RawTable,
        mapping: dict[str, str] | None = None,
        existing_hashes: set[str] | None = None
    ) -> ImportPreview:
        """Map, hash, normalize and categorize the rows of a parsed table.

        Args:
            table: Parsed source table
            mapping: Canonical field -> header; suggested from headers when omitted
            existing_hashes: Hashes of previously imported transactions

        Returns:
            ImportPreview with one record per row, in source order

        Raises:
            ValueError: If the mapping lacks a required field or names an
                unknown column
        """
        mapping = dict(mapping) if mapping else self.mapper.suggest_mapping(table.headers)

        missing = self.mapper.missing_required_fields(mapping)
        if missing:
            raise ValueError(f"Column mapping is missing required fields: {', '.join(missing)}")

        unknown = [header for header in mapping.values() if header and header not in table.headers]
        if unknown:
            raise ValueError(f"Column mapping refers to unknown columns: {', '.join(unknown)}")

        transactions = self.mapper.transform_rows(table.rows, mapping)
        warnings = [] if transactions else ["No rows found in the provided data"]
        return self._process(transactions, existing_hashes, mapping, table.format, warnings)

    def preview_candidates(
        self,
        candidates: list[dict],
        source_text: str | None = None,
        existing_hashes: set[str] | None = None
    ) -> ImportPreview:
        """Preview transactions extracted by an external service."""
        transactions = from_candidates(candidates, source_text, self.settings)
        warnings = extraction_warnings(transactions, self.settings)
        return self._process(transactions, existing_hashes, {}, "extracted", warnings)

    def learn(self, records: list[ReviewableTransaction]) -> Feedback:
        """Feed user edits back into both engines and save the rules."""
        feedback = self.aggregator.collect_feedback(records)
        self.apply_feedback(feedback)
        return feedback

    def commit(self, records: list[ReviewableTransaction]) -> CommitBatch:
        """Learn from edits and return the records fit to persist."""
        batch = self.aggregator.commit(records)
        self.apply_feedback(batch.feedback)
        return batch

    def apply_feedback(self, feedback: Feedback) -> None:
        if feedback.is_empty:
            return

        for correction in feedback.vendor_corrections:
            self.normalizer.learn_from_correction(
                correction.original_vendor, correction.corrected_vendor
            )
        for correction in feedback.category_corrections:
            self.categorizer.learn_from_correction(
                correction.description, correction.category, correction.rejected_category
            )

        logger.info(
            f"Learned from {len(feedback.vendor_corrections)} vendor and "
            f"{len(feedback.category_corrections)} category corrections"
        )
        self.save_rules()

    def learn_vendor(self, original_name: str, corrected_name: str) -> NormalizationRule:
        rule = self.normalizer.learn_from_correction(original_name, corrected_name)
        self.save_rules()
        return rule

    def learn_category(
        self,
        description: str,
        category: str,
        rejected_category: str | None = None
    ) -> CategorizationRule | None:
        rule = self.categorizer.learn_from_correction(description, category, rejected_category)
        if rule:
            self.save_rules()
        return rule

    def export_rules(self) -> RuleSet:
        return RuleSet(
            vendor_rules=self.normalizer.export_rules(),
            category_rules=self.categorizer.export_rules(),
            vendor_seed_state=self.normalizer.export_seed_state(),
            category_seed_state=self.categorizer.export_seed_state(),
        )

    def import_rules(self, rules: RuleSet) -> None:
        self.normalizer.import_rules(rules.vendor_rules)
        self.categorizer.import_rules(rules.category_rules)
        self.normalizer.import_seed_state(rules.vendor_seed_state)
        self.categorizer.import_seed_state(rules.category_seed_state)

    def save_rules(self) -> None:
        self.repository.save_rules(self.export_rules())

    def _process(
        self,
        transactions: list[CanonicalTransaction],
        existing_hashes: set[str] | None,
        mapping: dict[str, str],
        source_format: str,
        warnings: list[str]
    ) -> ImportPreview:
        self.hasher.check_against_existing(transactions, existing_hashes or set())

        vendor_results = self.normalizer.normalize_batch(
            [txn.original_vendor for txn in transactions]
        )
        category_results = [
            self._categorize(txn, vendor)
            for txn, vendor in zip(transactions, vendor_results)
        ]

        records = self.aggregator.build(transactions, vendor_results, category_results)
        report = self.hasher.duplicate_report(transactions)
        if report.duplicate_transactions:
            warnings = [
                *warnings,
                f"{report.duplicate_transactions} transactions may be duplicates",
            ]

        return ImportPreview(
            records=records,
            summary=self.aggregator.summarize(records),
            duplicate_report=report,
            mapping=mapping,
            source_format=source_format,
            warnings=warnings,
        )

    def _categorize(
        self,
        txn: CanonicalTransaction,
        vendor: NormalizationResult
    ) -> CategorizationResult:
        if txn.category:
            return self._source_category(txn)

        result = self.categorizer.categorize(txn.description)
        if not result.suggested_category and vendor.normalized_name.lower() != txn.description.lower():
            result = self.categorizer.categorize(vendor.normalized_name)
        return result

    def _source_category(self, txn: CanonicalTransaction) -> CategorizationResult:
        """Keep a category supplied by the source, snapped to a user category.

        A user category matches exactly or when either name contains the
        other, ignoring case.
        """
        source = txn.category
        source_lower = source.lower()
        matched = next(
            (
                name for name in self.categorizer.categories
                if name == source
                or name.lower() in source_lower
                or source_lower in name.lower()
            ),
            None,
        )
        if matched:
            txn.category = matched

        return CategorizationResult(
            original_description=txn.description,
            suggested_category=txn.category,
            confidence=(
                SOURCE_CATEGORY_MATCHED_CONFIDENCE if matched
                else SOURCE_CATEGORY_UNMATCHED_CONFIDENCE
            ),
        )
