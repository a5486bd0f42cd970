"""
Source parsers for pasted and uploaded statement data.
"""

from .base import NoTableFoundError, RawRow, RawTable
from .clipboard import detect_and_parse, detect_format, guess_delimiter
from .delimited import parse_delimited, split_line
from .excel import list_sheets, parse_workbook
from .html_table import parse_html_table
from .pdf import (
    PdfDocument,
    TransactionLineHint,
    is_bank_statement,
    is_bank_statement_pdf,
    read_pdf,
    transaction_hints,
)

__all__ = [
    "NoTableFoundError",
    "RawRow",
    "RawTable",
    "detect_and_parse",
    "detect_format",
    "guess_delimiter",
    "parse_delimited",
    "split_line",
    "list_sheets",
    "parse_workbook",
    "parse_html_table",
    "PdfDocument",
    "TransactionLineHint",
    "read_pdf",
    "transaction_hints",
    "is_bank_statement",
    "is_bank_statement_pdf",
]
