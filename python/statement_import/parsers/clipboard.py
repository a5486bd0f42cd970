"""
Clipboard Parser

Detects the format of pasted or uploaded statement text and parses it.
"""

import logging
import re

from .base import RawTable, preprocess_content
from .delimited import parse_delimited
from .html_table import parse_html_table

logger = logging.getLogger(__name__)

HTML_MARKUP = re.compile(r"<table|<tr|<td|<th", re.IGNORECASE)


def _first_line(content: str) -> str:
    return content.split("\n", 1)[0]


def is_html(content: str) -> bool:
    return bool(HTML_MARKUP.search(content))


def is_csv(content: str) -> bool:
    """At least two lines and more commas than tabs in the first one."""
    lines = content.split("\n")
    if len(lines) < 2:
        return False

    first = lines[0]
    comma_count = first.count(",")
    return comma_count > first.count("\t") and comma_count > 0


def is_tsv(content: str) -> bool:
    return "\t" in content


def guess_delimiter(content: str) -> str:
    """Pick a delimiter by comparing counts in the first line.

    Tab wins only when it beats both comma and semicolon; semicolon wins
    when it beats comma; then comma if present; otherwise a single space.
    """
    first = _first_line(content)
    comma_count = first.count(",")
    tab_count = first.count("\t")
    semicolon_count = first.count(";")

    if tab_count > comma_count and tab_count > semicolon_count:
        return "\t"
    if semicolon_count > comma_count:
        return ";"
    if comma_count > 0:
        return ","
    return " "


def detect_format(content: str) -> str:
    """Return 'html', 'csv', 'tsv' or 'delimited' for preprocessed text."""
    if is_html(content):
        return "html"
    if is_csv(content):
        return "csv"
    if is_tsv(content):
        return "tsv"
    return "delimited"


def detect_and_parse(content: str) -> RawTable:
    """Detect the format of raw text and parse it into headers and rows.

    Args:
        content: Raw clipboard or file text

    Returns:
        RawTable; empty delimited text yields zero rows

    Raises:
        NoTableFoundError: If HTML input contains no table
    """
    content = preprocess_content(content)
    detected = detect_format(content)

    if detected == "html":
        table = parse_html_table(content)
    elif detected == "csv":
        table = parse_delimited(content, ",", "csv")
    elif detected == "tsv":
        table = parse_delimited(content, "\t", "tsv")
    else:
        table = parse_delimited(content, guess_delimiter(content))

    logger.info(
        f"Parsed {table.row_count} rows as {table.format} "
        f"(detected={detected}, columns={len(table.headers)})"
    )
    return table
