"""
Excel Workbook Parser

Reads a worksheet from an .xlsx statement export into a RawTable.
"""

import logging
import re
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .base import RawTable, build_table, synthesize_header

logger = logging.getLogger(__name__)

WorkbookSource = Path | str | bytes


def _open_workbook(source: WorkbookSource):
    handle = BytesIO(source) if isinstance(source, bytes) else Path(source)
    try:
        return load_workbook(handle, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as e:
        raise ValueError(f"Cannot read workbook: {e}") from e


def clean_header_name(header: str) -> str:
    """Trim, drop punctuation, collapse whitespace and title-case a header."""
    cleaned = re.sub(r"[^\w\s]", "", header.strip())
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned.title()


def format_cell_value(value: Any) -> str:
    """Render a cell value as display text."""
    if value is None:
        return ""

    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)

    return str(value).strip()


def list_sheets(source: WorkbookSource) -> list[str]:
    """Return worksheet names in workbook order."""
    workbook = _open_workbook(source)
    try:
        return list(workbook.sheetnames)
    finally:
        workbook.close()


def parse_workbook(source: WorkbookSource, sheet_name: str | None = None) -> RawTable:
    """Parse a worksheet whose first row holds the column headers.

    Args:
        source: Path to the workbook or its raw bytes
        sheet_name: Worksheet to read, defaults to the first sheet

    Returns:
        RawTable with format 'xlsx'

    Raises:
        ValueError: If the workbook cannot be read or the sheet is missing
    """
    workbook = _open_workbook(source)
    try:
        if sheet_name is None:
            worksheet = workbook.worksheets[0]
        elif sheet_name in workbook.sheetnames:
            worksheet = workbook[sheet_name]
        else:
            raise ValueError(f"Sheet not found: {sheet_name}")

        cell_rows = [
            [format_cell_value(value) for value in row]
            for row in worksheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()

    cell_rows = [cells for cells in cell_rows if any(cells)]
    if cell_rows:
        cell_rows[0] = [
            clean_header_name(header) or synthesize_header(index)
            for index, header in enumerate(cell_rows[0])
        ]

    table = build_table(cell_rows, "xlsx")
    logger.info(f"Read {table.row_count} rows from sheet {worksheet.title!r}")
    return table
