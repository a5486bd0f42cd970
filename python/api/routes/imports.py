"""
Import API Routes

Endpoints for reading PDF statements, previewing a statement import and
committing reviewed transactions.
"""

import base64
import binascii
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from statement_import import (
    CanonicalTransaction,
    NoTableFoundError,
    ReviewableTransaction,
    candidates_from_response,
)
from statement_import.parsers import is_bank_statement, read_pdf, transaction_hints
from statement_import.rule_store import RuleRepository

from ..dependencies import build_pipeline, get_rule_repository

router = APIRouter(prefix="/imports", tags=["imports"])


class PreviewRequest(BaseModel):
    """Pasted text, or candidates from an extraction service."""

    text: str | None = None
    candidates: list[dict[str, Any]] | None = None
    extraction_response: str | None = None
    mapping: dict[str, str] | None = None
    categories: list[str] = Field(default_factory=list)
    existing_hashes: list[str] = Field(default_factory=list)
    positive_is_income: bool = True


class ReviewedRecord(BaseModel):
    """A review record as returned by preview, possibly edited by the user."""

    id: str
    date: str
    description: str
    original_vendor: str = ""
    vendor: str = ""
    amount: float = Field(ge=0)
    is_income: bool = False
    category: str | None = None
    account: str | None = None
    reference: str | None = None
    notes: str | None = None
    hash: str | None = None
    is_duplicate: bool = False
    confidence: float = 1.0
    issues: list[str] = Field(default_factory=list)
    source: str = "table"
    suggested_vendor: str = ""
    vendor_confidence: float = 0.0
    vendor_matched: bool = False
    vendor_needs_review: bool = True
    suggested_category: str | None = None
    category_confidence: float = 0.0
    is_edited: bool = False
    edited_fields: list[str] = Field(default_factory=list)

    def to_reviewable(self) -> ReviewableTransaction:
        transaction = CanonicalTransaction(
            id=self.id,
            date=self.date,
            description=self.description,
            original_vendor=self.original_vendor,
            vendor=self.vendor,
            amount=Decimal(str(self.amount)),
            is_income=self.is_income,
            category=self.category,
            account=self.account,
            reference=self.reference,
            notes=self.notes,
            hash=self.hash,
            is_duplicate=self.is_duplicate,
            confidence=self.confidence,
            issues=list(self.issues),
            source=self.source,
        )
        return ReviewableTransaction(
            transaction=transaction,
            suggested_vendor=self.suggested_vendor or self.vendor,
            vendor_confidence=self.vendor_confidence,
            vendor_matched=self.vendor_matched,
            vendor_needs_review=self.vendor_needs_review,
            suggested_category=self.suggested_category,
            category_confidence=self.category_confidence,
            is_edited=self.is_edited,
            edited_fields=list(self.edited_fields),
        )


class PdfRequest(BaseModel):
    """A PDF statement as base64, with an optional 1-based page range."""

    content_base64: str
    page_start: int | None = Field(default=None, ge=1)
    page_end: int | None = Field(default=None, ge=1)


class CommitRequest(BaseModel):
    records: list[ReviewedRecord]
    categories: list[str] = Field(default_factory=list)


@router.post("/preview")
async def preview_import(
    request: PreviewRequest,
    repository: RuleRepository = Depends(get_rule_repository),
) -> dict:
    """Parse and enrich a statement without persisting anything.

    Exactly one of ``text``, ``candidates`` or ``extraction_response`` is
    expected.
    """
    sources = [
        s for s in (request.text, request.candidates, request.extraction_response)
        if s is not None
    ]
    if len(sources) != 1:
        raise HTTPException(
            status_code=400,
            detail="Provide exactly one of text, candidates or extraction_response",
        )

    pipeline = build_pipeline(repository, request.categories, request.positive_is_income)
    existing = set(request.existing_hashes)

    try:
        if request.text is not None:
            preview = pipeline.preview_text(request.text, request.mapping, existing)
        else:
            candidates = request.candidates
            if candidates is None:
                candidates = candidates_from_response(request.extraction_response)
            preview = pipeline.preview_candidates(candidates, existing_hashes=existing)
    except NoTableFoundError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return preview.to_dict()


@router.post("/commit")
async def commit_import(
    request: CommitRequest,
    repository: RuleRepository = Depends(get_rule_repository),
) -> dict:
    """Accept reviewed records, learn from edits, and return the valid subset.

    Held-back records carry their validation errors so they can be fixed.
    """
    pipeline = build_pipeline(repository, request.categories)

    try:
        records = [record.to_reviewable() for record in request.records]
        batch = pipeline.commit(records)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return batch.to_dict()


@router.post("/pdf")
async def read_pdf_statement(request: PdfRequest) -> dict:
    """Extract the text of a PDF statement for an extraction service.

    The returned ``text`` is what ``source_text`` should be when the
    extracted candidates are previewed.
    """
    try:
        content = base64.b64decode(request.content_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid base64 content: {e}") from e

    page_range = None
    if request.page_start is not None or request.page_end is not None:
        page_range = (request.page_start or 1, request.page_end or request.page_start or 1)

    try:
        document = read_pdf(content, page_range=page_range, extract_hints=True)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return {
        **document.to_dict(),
        "is_bank_statement": is_bank_statement(document.text),
        "hints": [hint.to_dict() for hint in transaction_hints(document.text)],
    }
