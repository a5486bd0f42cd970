"""
Extracted Candidate Adapter Module

Converts transaction candidates produced by an external extraction service
(for example a language model reading a PDF or free text) into canonical
transactions. No service is called here; callers pass the response text or
the already-decoded candidate dicts.
"""

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from .field_mapper import is_valid_date, parse_date
from .models import CanonicalTransaction
from .settings import PipelineSettings
from .vendor_normalizer import pre_clean

logger = logging.getLogger(__name__)

JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
DEFAULT_CANDIDATE_CONFIDENCE = 0.5
UNKNOWN_VENDOR = "Unknown"


def to_decimal(value: Any) -> Decimal | None:
    """Convert a JSON number or numeric string to Decimal.

    Returns None for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").replace("$", "").strip()
        if not value:
            return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def candidates_from_response(response_text: str) -> list[dict]:
    """Pull the ``transactions`` list out of an extraction response.

    Markdown code fences and prose around the JSON object are tolerated.

    Args:
        response_text: Raw response text

    Returns:
        List of candidate dicts, empty when the object has no transactions

    Raises:
        ValueError: If no valid JSON object can be decoded
    """
    cleaned = response_text.strip()
    cleaned = re.sub(r"^```json\s*", "", cleaned)
    cleaned = re.sub(r"^```\s*", "", cleaned)
    cleaned = re.sub(r"\s*```$", "", cleaned)

    match = JSON_OBJECT.search(cleaned)
    try:
        data = json.loads(match.group(0) if match else cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse extraction response: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Extraction response is not a JSON object")

    transactions = data.get("transactions") or []
    if not isinstance(transactions, list):
        raise ValueError("Extraction response 'transactions' is not a list")

    return [t for t in transactions if isinstance(t, dict)]


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CANDIDATE_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CANDIDATE_CONFIDENCE
    return min(1.0, max(0.0, confidence))


def _parse_flag(value: Any) -> bool | None:
    """Read a JSON boolean, or a "true"/"false" string; anything else is None."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return {"true": True, "false": False}.get(value.strip().lower())
    return None


def _find_raw_line(source_text: str | None, original_vendor: str, index: int) -> str | None:
    """Locate the source line a candidate most likely came from."""
    if not source_text:
        return None
    lines = [line.strip() for line in source_text.splitlines() if line.strip()]
    if not lines:
        return None

    needle = original_vendor.lower()
    for line in lines:
        if needle and needle in line.lower():
            return line
    return lines[min(index, len(lines) - 1)]


def from_candidate(
    candidate: dict,
    index: int = 0,
    source_text: str | None = None,
    settings: PipelineSettings | None = None
) -> CanonicalTransaction:
    """Convert one candidate dict into a CanonicalTransaction.

    Direction comes from an explicit ``is_income`` flag; without one a
    negative amount is read as a credit, since extraction reports spending
    as positive numbers.
    """
    settings = settings or PipelineSettings()

    raw_vendor = str(candidate.get("vendor") or "").strip()
    original_vendor = str(
        candidate.get("originalVendor") or candidate.get("original_vendor") or raw_vendor
    ).strip() or UNKNOWN_VENDOR
    vendor = pre_clean(raw_vendor or original_vendor)
    description = str(candidate.get("description") or raw_vendor or "Transaction").strip()

    raw_amount = to_decimal(candidate.get("amount"))
    signed = raw_amount if raw_amount is not None else Decimal("0")
    is_income = _parse_flag(candidate.get("is_income"))
    if is_income is None:
        is_income = signed < 0

    raw_date = str(candidate.get("date") or "").strip()
    date = parse_date(raw_date)
    confidence = _clamp_confidence(candidate.get("confidence"))

    txn = CanonicalTransaction(
        date=date,
        description=description,
        vendor=vendor,
        original_vendor=original_vendor,
        amount=abs(signed),
        is_income=is_income,
        category=str(candidate.get("category") or "").strip() or None,
        confidence=confidence,
        source="extracted",
        raw_row={key: str(value) for key, value in candidate.items()},
        raw_text=_find_raw_line(source_text, original_vendor, index),
    )

    if not raw_vendor or "unknown" in raw_vendor.lower():
        txn.add_issue("missing_vendor")
    if raw_amount is None or signed == 0:
        txn.add_issue("unclear_amount")
    if not is_valid_date(date):
        txn.add_issue("invalid_date")
    if confidence < settings.low_confidence_threshold:
        txn.add_issue("low_confidence")

    return txn


def from_candidates(
    candidates: list[dict],
    source_text: str | None = None,
    settings: PipelineSettings | None = None
) -> list[CanonicalTransaction]:
    """Convert extraction candidates into canonical transactions, in order.

    Args:
        candidates: Candidate dicts as returned by ``candidates_from_response``
        source_text: Text the candidates were extracted from, for audit lines
        settings: Threshold settings

    Returns:
        List of CanonicalTransaction with ``source == "extracted"``
    """
    transactions = [
        from_candidate(candidate, index, source_text, settings)
        for index, candidate in enumerate(candidates)
    ]
    flagged = sum(1 for t in transactions if t.issues)
    logger.info(f"Converted {len(transactions)} extracted candidates, {flagged} with issues")
    return transactions


def extraction_warnings(
    transactions: list[CanonicalTransaction],
    settings: PipelineSettings | None = None
) -> list[str]:
    """Human-readable warnings for a batch of extracted transactions."""
    settings = settings or PipelineSettings()
    warnings = []

    if not transactions:
        warnings.append("No transactions found in the provided text")

    low_confidence = sum(
        1 for t in transactions if t.confidence < settings.low_confidence_threshold
    )
    if low_confidence:
        warnings.append(f"{low_confidence} transactions have low confidence scores")

    unclear_vendor = sum(1 for t in transactions if "missing_vendor" in t.issues)
    if unclear_vendor:
        warnings.append(f"{unclear_vendor} transactions have unclear vendor names")

    return warnings
