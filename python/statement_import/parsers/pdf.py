"""
PDF Statement Reader

Pulls page text out of PDF statements with pdfplumber and points out the
lines that look like transactions. PDF statements have no reliable table
structure, so the text goes to an extraction service and its candidates
come back through ``ImportPipeline.preview_candidates`` with this text as
``source_text``.
"""

import logging
import re
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path

import pdfplumber

logger = logging.getLogger(__name__)

PdfSource = Path | str | bytes

DATE_PATTERN = re.compile(r"\b(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})\b")
AMOUNT_PATTERN = re.compile(r"\$?(\d+[.,]\d{2})\b")
DEBIT_PATTERN = re.compile(r"-\$?\d+|\(\$?\d+\)")
CAPS_PATTERN = re.compile(r"[A-Z]{2,}")
WORD_PATTERN = re.compile(r"[a-zA-Z]{3,}")
PAGE_BREAK_PATTERN = re.compile(r"\f|\n\s*Page \d+", re.IGNORECASE)

TRANSACTION_KEYWORDS = [
    "purchase", "payment", "deposit", "withdrawal", "transfer",
    "debit", "credit", "ach", "check", "atm",
]

BANK_STATEMENT_KEYWORDS = [
    "account summary",
    "statement period",
    "beginning balance",
    "ending balance",
    "account number",
    "routing number",
    "transaction history",
    "deposits and credits",
    "checks and debits",
    "electronic transactions",
]

MIN_PAGE_LENGTH = 50
MIN_HINT_LENGTH = 10
HINT_CONFIDENCE = 0.3
DETECTION_PAGES = 2


@dataclass
class TransactionLineHint:
    """A statement line that probably holds one transaction."""

    line: str
    confidence: float
    date: str | None = None
    amount: str | None = None
    vendor: str | None = None

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "confidence": self.confidence,
            "date": self.date,
            "amount": self.amount,
            "vendor": self.vendor,
        }


@dataclass
class PdfDocument:
    """Text of the selected pages plus document metadata."""

    pages: list[str] = field(default_factory=list)
    total_pages: int = 0
    metadata: dict[str, str] = field(default_factory=dict)
    transaction_lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n\n".join(self.pages)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "pages": list(self.pages),
            "total_pages": self.total_pages,
            "metadata": dict(self.metadata),
            "transaction_lines": list(self.transaction_lines),
        }


def read_pdf(
    source: PdfSource,
    page_range: tuple[int, int] | None = None,
    max_pages: int | None = None,
    extract_hints: bool = False
) -> PdfDocument:
    """Extract the text of each page of a PDF.

    Pages without any text are dropped before the page range applies.

    Args:
        source: Path to the PDF or its raw bytes
        page_range: 1-based inclusive (start, end) of the pages to keep
        max_pages: Stop reading after this many pages
        extract_hints: Also collect the lines that look like transactions

    Returns:
        PdfDocument over the selected pages

    Raises:
        ValueError: If the PDF cannot be read
    """
    handle = BytesIO(source) if isinstance(source, bytes) else Path(source)
    pages: list[str] = []
    try:
        with pdfplumber.open(handle) as pdf:
            metadata = {
                str(key): str(value)
                for key, value in (pdf.metadata or {}).items()
                if isinstance(value, (str, int, float))
            }
            for index, page in enumerate(pdf.pages):
                if max_pages is not None and index >= max_pages:
                    break
                text = page.extract_text()
                if text and text.strip():
                    pages.append(text)
                    logger.debug(f"Extracted text from page {index + 1}")
    except Exception as e:
        raise ValueError(f"Cannot read PDF: {e}") from e

    if not pages:
        logger.warning("No text extracted from PDF, it may be a scanned image")

    document = PdfDocument(
        pages=apply_page_range(pages, page_range),
        total_pages=len(pages),
        metadata=metadata,
    )
    if extract_hints:
        document.transaction_lines = extract_transaction_lines(document.text)

    logger.info(f"Read {len(document.pages)} of {document.total_pages} PDF pages")
    return document


def split_pages(text: str) -> list[str]:
    """Split already-extracted statement text into pages.

    Form feeds and ``Page N`` markers separate pages; without either, runs
    of blank lines do. Fragments too short to hold a page are dropped.
    """
    pages = PAGE_BREAK_PATTERN.split(text)
    if len(pages) == 1:
        pages = re.split(r"\n\s*\n\s*\n", text)
    return [page for page in pages if len(page.strip()) > MIN_PAGE_LENGTH]


def apply_page_range(pages: list[str], page_range: tuple[int, int] | None) -> list[str]:
    """Pages ``start`` to ``end`` (1-based, inclusive), clamped to what exists."""
    if page_range is None:
        return list(pages)
    start, end = page_range
    if start > end:
        raise ValueError(f"Invalid page range: {start}-{end}")
    return pages[max(0, start - 1):min(len(pages), end)]


def looks_like_transaction(line: str) -> bool:
    """A line with an amount plus either a date or a word."""
    has_amount = AMOUNT_PATTERN.search(line) is not None
    has_date = DATE_PATTERN.search(line) is not None
    has_word = WORD_PATTERN.search(line) is not None
    return has_amount and (has_date or has_word)


def extract_transaction_lines(text: str) -> list[str]:
    """Lines of ``text`` that look like transactions, in order."""
    lines = (line.strip() for line in text.split("\n"))
    return [line for line in lines if looks_like_transaction(line)]


def score_transaction_line(line: str) -> float:
    """Score in [0, 1] for how much ``line`` reads like a transaction."""
    score = 0.0

    if DATE_PATTERN.search(line):
        score += 0.3
    if AMOUNT_PATTERN.search(line):
        score += 0.4
    if DEBIT_PATTERN.search(line):
        score += 0.1
    # statement merchants are usually printed in capitals
    if CAPS_PATTERN.search(line):
        score += 0.2

    lowered = line.lower()
    if any(keyword in lowered for keyword in TRANSACTION_KEYWORDS):
        score += 0.1

    if 3 <= len(line.split()) <= 10:
        score += 0.1

    return min(score, 1.0)


def transaction_hints(text: str, min_confidence: float = HINT_CONFIDENCE) -> list[TransactionLineHint]:
    """Score every line and split the likely ones into date, amount and vendor.

    Returns:
        Hints above ``min_confidence``, most confident first
    """
    hints = []
    for raw in text.split("\n"):
        line = raw.strip()
        if len(line) <= MIN_HINT_LENGTH:
            continue

        confidence = score_transaction_line(line)
        if confidence <= min_confidence:
            continue

        date_match = DATE_PATTERN.search(line)
        amount_match = AMOUNT_PATTERN.search(line)

        vendor = line
        if date_match:
            vendor = vendor.replace(date_match.group(0), "", 1)
        if amount_match:
            vendor = vendor.replace(amount_match.group(0), "", 1)
        vendor = re.sub(r"\s+", " ", vendor).strip(" -")

        hints.append(TransactionLineHint(
            line=line,
            confidence=confidence,
            date=date_match.group(1) if date_match else None,
            amount=amount_match.group(1) if amount_match else None,
            vendor=vendor if len(vendor) > 2 else None,
        ))

    hints.sort(key=lambda hint: hint.confidence, reverse=True)
    return hints


def is_bank_statement(text: str) -> bool:
    """True when at least two banking terms appear in ``text``."""
    lowered = text.lower()
    matches = sum(1 for keyword in BANK_STATEMENT_KEYWORDS if keyword in lowered)
    return matches >= 2


def is_bank_statement_pdf(source: PdfSource) -> bool:
    """Check the first pages of a PDF for bank statement wording.

    An unreadable PDF is not a bank statement.
    """
    try:
        document = read_pdf(source, max_pages=DETECTION_PAGES)
    except ValueError as e:
        logger.warning(f"PDF statement detection failed: {e}")
        return False
    return is_bank_statement(document.text)
