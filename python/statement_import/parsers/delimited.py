"""
Delimited Text Parser

Parses comma, tab, semicolon or space separated text into a RawTable.
Quoting follows RFC 4180 via the stdlib csv reader: a doubled quote inside
a quoted field is a literal quote.
"""

import csv
import logging
from io import StringIO

from .base import RawTable, build_table

logger = logging.getLogger(__name__)

DELIMITER_FORMATS = {
    ",": "csv",
    ";": "csv",
    "\t": "tsv",
    " ": "unknown",
}


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split a single line into fields, honoring double-quote escaping.

    Args:
        line: One line of delimited text
        delimiter: Field delimiter

    Returns:
        List of untrimmed field values
    """
    reader = csv.reader(StringIO(line), delimiter=delimiter)
    return next(reader, [""])


def parse_delimited(content: str, delimiter: str, table_format: str | None = None) -> RawTable:
    """Parse delimited text whose first non-empty line is the header row.

    Args:
        content: Preprocessed text
        delimiter: Field delimiter
        table_format: Format label for the result

    Returns:
        RawTable, empty when the text has no rows
    """
    table_format = table_format or DELIMITER_FORMATS.get(delimiter, "unknown")
    reader = csv.reader(StringIO(content), delimiter=delimiter)
    cell_rows = [row for row in reader if row]

    table = build_table(cell_rows, table_format)
    logger.debug(
        f"Parsed {table.row_count} rows with {len(table.headers)} columns "
        f"(delimiter={delimiter!r})"
    )
    return table
