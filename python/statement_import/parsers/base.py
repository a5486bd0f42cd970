"""
Base Parser Module

Shared table type and row-building helpers for every source parser.
"""

from dataclasses import dataclass, field
from typing import Iterable

RawRow = dict[str, str]


class NoTableFoundError(ValueError):
    """Raised when HTML input contains no <table> element."""


@dataclass
class RawTable:
    """Headers plus rows keyed by header, in source order."""

    headers: list[str] = field(default_factory=list)
    rows: list[RawRow] = field(default_factory=list)
    format: str = "unknown"  # 'csv', 'tsv', 'html', 'xlsx', 'unknown'

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict:
        return {
            "headers": list(self.headers),
            "rows": [dict(row) for row in self.rows],
            "format": self.format,
        }


def preprocess_content(content: str) -> str:
    """Strip a BOM, normalize line endings and trim surrounding whitespace."""
    if content.startswith("\ufeff"):
        content = content[1:]

    content = content.replace("\r\n", "\n").replace("\r", "\n")

    return content.strip()


def synthesize_header(index: int) -> str:
    """Placeholder name for the column at ``index`` (0-based)."""
    return f"Column {index + 1}"


def normalize_headers(raw_headers: Iterable[str]) -> list[str]:
    """Trim headers, fill blanks with ``Column N`` and make names unique."""
    headers: list[str] = []
    seen: dict[str, int] = {}

    for index, raw in enumerate(raw_headers):
        name = (raw or "").strip() or synthesize_header(index)
        if name in seen:
            seen[name] += 1
            name = f"{name} ({seen[name]})"
        seen.setdefault(name, 1)
        headers.append(name)

    return headers


def build_table(cell_rows: list[list[str]], table_format: str) -> RawTable:
    """Turn a header row plus data rows of cells into a RawTable.

    The first row with any non-blank cell is the header row. Data rows
    whose cells are all blank are dropped; cells are trimmed. Cells beyond
    the header width get synthesized ``Column N`` headers.
    """
    rows_with_content = [cells for cells in cell_rows if any(c.strip() for c in cells)]
    if not rows_with_content:
        return RawTable(format=table_format)

    headers = normalize_headers(rows_with_content[0])
    rows: list[RawRow] = []

    for cells in rows_with_content[1:]:
        while len(cells) > len(headers):
            headers.append(synthesize_header(len(headers)))

        row = {header: "" for header in headers}
        for index, value in enumerate(cells):
            row[headers[index]] = value.strip()
        rows.append(row)

    # Rows built before a wider row appeared still need the late headers.
    for row in rows:
        for header in headers:
            row.setdefault(header, "")

    return RawTable(headers=headers, rows=rows, format=table_format)
