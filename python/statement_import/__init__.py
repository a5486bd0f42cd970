"""
Statement Import Module

Turns pasted or uploaded bank statements into reviewable, deduplicated,
vendor-normalized and categorized transactions.
"""

from .auto_categorizer import AutoCategorizer, CategorizationResult, CategoryCandidate
from .extraction import candidates_from_response, extraction_warnings, from_candidates
from .field_mapper import FieldMapper, is_valid_date, parse_amount, parse_date
from .hasher import DuplicateReport, TransactionHasher
from .models import CanonicalTransaction, CategorizationRule, NormalizationRule, RuleSet
from .parsers import NoTableFoundError, PdfDocument, RawTable, detect_and_parse, parse_workbook, read_pdf
from .pipeline import ImportPipeline, ImportPreview
from .review import (
    CategoryCorrection,
    CommitBatch,
    Feedback,
    ReviewableTransaction,
    ReviewAggregator,
    ReviewSummary,
    VendorCorrection,
)
from .rule_store import InMemoryRuleRepository, RuleRepository, YamlRuleRepository
from .settings import PipelineSettings, load_settings
from .vendor_normalizer import NormalizationResult, VendorCandidate, VendorNormalizer

__all__ = [
    # Data model
    "CanonicalTransaction",
    "NormalizationRule",
    "CategorizationRule",
    "RuleSet",
    # Parsing and mapping
    "NoTableFoundError",
    "RawTable",
    "detect_and_parse",
    "parse_workbook",
    "PdfDocument",
    "read_pdf",
    "FieldMapper",
    "parse_date",
    "parse_amount",
    "is_valid_date",
    # Deduplication
    "TransactionHasher",
    "DuplicateReport",
    # Vendor normalization
    "VendorNormalizer",
    "NormalizationResult",
    "VendorCandidate",
    # Categorization
    "AutoCategorizer",
    "CategorizationResult",
    "CategoryCandidate",
    # Extraction candidates
    "candidates_from_response",
    "from_candidates",
    "extraction_warnings",
    # Review
    "ReviewAggregator",
    "ReviewableTransaction",
    "ReviewSummary",
    "Feedback",
    "VendorCorrection",
    "CategoryCorrection",
    "CommitBatch",
    # Rules persistence
    "RuleRepository",
    "InMemoryRuleRepository",
    "YamlRuleRepository",
    # Orchestration
    "ImportPipeline",
    "ImportPreview",
    "PipelineSettings",
    "load_settings",
]
