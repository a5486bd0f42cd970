"""
Field Mapper Module

Maps arbitrary source columns onto canonical transaction fields and turns
raw rows into CanonicalTransaction records.
"""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser

from .models import CanonicalTransaction
from .parsers.base import RawRow

logger = logging.getLogger(__name__)

ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)")

# Month-first formats rewritten to YYYY-MM-DD
MONTH_FIRST_DATES = [
    re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)"),  # MM/DD/YYYY
    re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})(?!\d)"),  # MM-DD-YYYY
    re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})(?!\d)"),  # MM.DD.YYYY
]

CURRENCY_NOISE = re.compile(r"[$£€¥₹,\s]")

STRICT_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _format_date(year: str, month: str, day: str) -> str | None:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def parse_date(date_str: str | None) -> str:
    """Normalize a date string to YYYY-MM-DD.

    Never raises: text that cannot be read as a date is returned unchanged
    so downstream validation can flag it.
    """
    if not date_str:
        return ""

    text = date_str.strip()

    match = ISO_DATE.match(text)
    if match:
        formatted = _format_date(*match.groups())
        if formatted:
            return formatted

    for pattern in MONTH_FIRST_DATES:
        match = pattern.match(text)
        if match:
            month, day, year = match.groups()
            formatted = _format_date(year, month, day)
            if formatted:
                return formatted

    try:
        return date_parser.parse(text).strftime("%Y-%m-%d")
    except (ValueError, OverflowError):
        logger.debug(f"Could not parse date: {date_str!r}")

    return date_str


def is_valid_date(value: str | None) -> bool:
    """True for a real calendar date in YYYY-MM-DD form."""
    if not value or not STRICT_ISO_DATE.match(value):
        return False
    return _format_date(*value.split("-")) is not None


def parse_amount(amount_str: str | None) -> Decimal:
    """Parse a signed amount.

    Currency symbols, thousands separators and whitespace are ignored; a
    value wrapped in parentheses is negative. Unparseable text is zero.
    """
    if not amount_str:
        return Decimal("0")

    cleaned = CURRENCY_NOISE.sub("", amount_str)

    is_negative = cleaned.startswith("(") and cleaned.endswith(")")
    cleaned = cleaned.replace("(", "").replace(")", "")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")

    if not amount.is_finite():
        return Decimal("0")

    return -amount if is_negative else amount


class FieldMapper:
    """Suggests column mappings and transforms rows into transactions."""

    REQUIRED_FIELDS = ("date", "description", "amount")

    # Expected header substrings per canonical field
    FIELD_SUGGESTIONS = {
        "date": ["date", "transaction date", "posted date", "value date", "trans date"],
        "description": ["description", "memo", "payee", "merchant", "details", "transaction"],
        "amount": ["amount", "debit", "credit", "value", "transaction amount", "sum"],
        "account": ["account", "account name", "account number", "from account"],
        "category": ["category", "type", "transaction type", "class"],
        "reference": ["reference", "ref", "transaction id", "check number", "id"],
    }

    def __init__(self, positive_is_income: bool = True):
        """Initialize the mapper.

        Args:
            positive_is_income: Whether positive source amounts are income.
                Set False for statements that print debits as positive.
        """
        self.positive_is_income = positive_is_income

    def suggest_mapping(self, headers: list[str]) -> dict[str, str]:
        """Propose a canonical field -> header mapping.

        Headers equal to an expected name are claimed first, so a
        "Transaction ID" column goes to ``reference`` rather than to
        ``description``. Fields still unmapped then take the first unclaimed
        header, in header order, that contains one of their expected
        substrings. A header is used for one field only.
        """
        mapping: dict[str, str] = {}
        claimed: set[str] = set()

        def claim(matches) -> None:
            for field_name, suggestions in self.FIELD_SUGGESTIONS.items():
                if field_name in mapping:
                    continue
                for header in headers:
                    if header not in claimed and matches(header.strip().lower(), suggestions):
                        mapping[field_name] = header
                        claimed.add(header)
                        break

        claim(lambda header, suggestions: header in suggestions)
        claim(lambda header, suggestions: any(s in header for s in suggestions))
        mapping = {name: mapping[name] for name in self.FIELD_SUGGESTIONS if name in mapping}

        logger.debug(f"Suggested column mapping: {mapping}")
        return mapping

    def missing_required_fields(self, mapping: dict[str, str]) -> list[str]:
        """Return required fields the mapping leaves unassigned."""
        return [name for name in self.REQUIRED_FIELDS if not mapping.get(name)]

    @staticmethod
    def column_samples(rows: list[RawRow], header: str, limit: int = 3) -> list[str]:
        """Return up to ``limit`` non-empty sample values from a column."""
        samples = [row.get(header, "") for row in rows[:limit]]
        return [sample for sample in samples if sample]

    def transform_row(self, row: RawRow, mapping: dict[str, str]) -> CanonicalTransaction:
        """Build one CanonicalTransaction from a raw row."""

        def cell(field_name: str) -> str:
            header = mapping.get(field_name)
            return row.get(header, "").strip() if header else ""

        signed = parse_amount(cell("amount"))
        is_income = signed > 0 if self.positive_is_income else signed < 0
        description = cell("description")

        return CanonicalTransaction(
            date=parse_date(cell("date")),
            description=description,
            original_vendor=description,
            amount=abs(signed),
            is_income=is_income,
            category=cell("category") or None,
            account=cell("account") or None,
            reference=cell("reference") or None,
            source="table",
            raw_row=dict(row),
        )

    def transform_rows(
        self,
        rows: list[RawRow],
        mapping: dict[str, str]
    ) -> list[CanonicalTransaction]:
        """Transform rows in source order.

        The caller must reject mappings missing a required field before
        calling this; see ``missing_required_fields``.
        """
        transactions = [self.transform_row(row, mapping) for row in rows]
        logger.info(f"Mapped {len(transactions)} rows to transactions")
        return transactions
