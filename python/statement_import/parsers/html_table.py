"""
HTML Table Parser

Reads the first <table> of pasted HTML (for example a copied online-banking
page) into a RawTable.
"""

import logging
from html.parser import HTMLParser

from .base import NoTableFoundError, RawTable, build_table

logger = logging.getLogger(__name__)


class _TableCollector(HTMLParser):
    """Collects cell text for the rows of the first top-level table."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.found_table = False
        self.rows: list[list[str]] = []
        self._depth = 0
        self._done = False
        self._row: list[str] | None = None
        self._cell: list[str] | None = None

    def handle_starttag(self, tag: str, attrs) -> None:
        if self._done:
            return

        if tag == "table":
            self._depth += 1
            self.found_table = True
            return

        # Nested tables contribute text to the enclosing cell only
        if self._depth != 1:
            return

        if tag == "tr":
            self._close_row()
            self._row = []
        elif tag in ("td", "th"):
            self._close_cell()
            if self._row is None:
                self._row = []
            self._cell = []
        elif tag == "br" and self._cell is not None:
            self._cell.append(" ")

    def handle_endtag(self, tag: str) -> None:
        if self._done:
            return

        if tag == "table":
            self._depth -= 1
            if self._depth == 0:
                self._close_row()
                self._done = True
            return

        if self._depth != 1:
            return

        if tag in ("td", "th"):
            self._close_cell()
        elif tag == "tr":
            self._close_row()

    def handle_data(self, data: str) -> None:
        if self._cell is not None and not self._done:
            self._cell.append(data)

    def close(self) -> None:
        super().close()
        if not self._done:
            self._close_row()

    def _close_cell(self) -> None:
        if self._cell is not None and self._row is not None:
            self._row.append(" ".join("".join(self._cell).split()))
        self._cell = None

    def _close_row(self) -> None:
        self._close_cell()
        if self._row:
            self.rows.append(self._row)
        self._row = None


def parse_html_table(content: str) -> RawTable:
    """Parse the first table in an HTML fragment.

    Args:
        content: HTML text

    Returns:
        RawTable whose headers come from the first table row

    Raises:
        NoTableFoundError: If the HTML has no <table> element
    """
    collector = _TableCollector()
    collector.feed(content)
    collector.close()

    if not collector.found_table:
        raise NoTableFoundError("No table found in HTML content")

    table = build_table(collector.rows, "html")
    logger.debug(f"Parsed HTML table with {table.row_count} rows")
    return table
