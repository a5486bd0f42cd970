"""
Source Parser Tests

Tests for delimited, HTML and Excel parsing and format detection.
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import Workbook

sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_import.parsers import (
    NoTableFoundError,
    detect_and_parse,
    detect_format,
    guess_delimiter,
    list_sheets,
    parse_delimited,
    parse_html_table,
    parse_workbook,
    split_line,
)
from statement_import.parsers.base import build_table, normalize_headers, preprocess_content
from statement_import.parsers.excel import clean_header_name, format_cell_value


class TestPreprocessing:
    """Tests for shared content cleanup and header handling."""

    def test_strips_bom_and_normalizes_newlines(self):
        """Test BOM removal and CRLF conversion."""
        content = "\ufeffDate,Amount\r\n2024-01-01,5\r\n"
        assert preprocess_content(content) == "Date,Amount\n2024-01-01,5"

    def test_blank_headers_are_synthesized(self):
        """Test blank header cells become Column N."""
        assert normalize_headers(["Date", "", " Amount "]) == ["Date", "Column 2", "Amount"]

    def test_duplicate_headers_are_made_unique(self):
        """Test repeated header names get a numeric suffix."""
        assert normalize_headers(["Amount", "Amount", "Amount"]) == [
            "Amount", "Amount (2)", "Amount (3)"
        ]

    def test_wide_rows_extend_headers(self):
        """Test cells beyond the header width get synthesized headers."""
        table = build_table([["A", "B"], ["1", "2", "3"], ["4"]], "csv")

        assert table.headers == ["A", "B", "Column 3"]
        assert table.rows[0] == {"A": "1", "B": "2", "Column 3": "3"}
        assert table.rows[1] == {"A": "4", "B": "", "Column 3": ""}

    def test_blank_rows_are_dropped(self):
        """Test rows with only blank cells are skipped."""
        table = build_table([["A"], ["  "], ["x"]], "csv")
        assert table.row_count == 1


class TestDelimitedParser:
    """Tests for comma, tab and semicolon parsing."""

    def test_quoted_field_with_comma(self):
        """Test a quoted comma stays inside one field."""
        assert split_line('a,"b,c",d') == ["a", "b,c", "d"]

    def test_doubled_quote_is_literal(self):
        """Test a doubled quote inside quotes is a literal quote."""
        assert split_line('"say ""hi""",x') == ['say "hi"', "x"]

    def test_rows_keyed_by_header(self):
        """Test rows are dicts keyed by header in source order."""
        table = parse_delimited("Date,Description,Amount\n2024-01-15,Coffee,-4.50", ",")

        assert table.headers == ["Date", "Description", "Amount"]
        assert table.rows == [
            {"Date": "2024-01-15", "Description": "Coffee", "Amount": "-4.50"}
        ]
        assert table.format == "csv"

    def test_cells_are_trimmed(self):
        """Test whitespace around cells is removed."""
        table = parse_delimited("A;B\n 1 ; 2 ", ";")
        assert table.rows[0] == {"A": "1", "B": "2"}

    def test_empty_content(self):
        """Test empty text yields no headers and no rows."""
        table = parse_delimited("", ",")
        assert table.headers == []
        assert table.rows == []


class TestHtmlTableParser:
    """Tests for HTML table parsing."""

    def test_parses_first_table(self):
        """Test headers come from the first row of the first table."""
        html = """
        <p>Statement</p>
        <table>
          <tr><th>Date</th><th>Description</th><th>Amount</th></tr>
          <tr><td>2024-01-15</td><td>STARBUCKS &amp; CO</td><td>-4.85</td></tr>
        </table>
        <table><tr><td>ignored</td></tr></table>
        """
        table = parse_html_table(html)

        assert table.format == "html"
        assert table.headers == ["Date", "Description", "Amount"]
        assert table.rows == [
            {"Date": "2024-01-15", "Description": "STARBUCKS & CO", "Amount": "-4.85"}
        ]

    def test_cell_whitespace_and_breaks(self):
        """Test line breaks and runs of whitespace collapse to one space."""
        html = "<table><tr><td>Name</td></tr><tr><td>Luna<br>Coffee\n  Shop</td></tr></table>"
        table = parse_html_table(html)
        assert table.rows[0]["Name"] == "Luna Coffee Shop"

    def test_no_table_raises(self):
        """Test HTML without a table raises NoTableFoundError."""
        with pytest.raises(NoTableFoundError):
            parse_html_table("<div>No data here</div>")

    def test_no_table_error_is_value_error(self):
        """Test the structural error can be caught as ValueError."""
        assert issubclass(NoTableFoundError, ValueError)


class TestFormatDetection:
    """Tests for clipboard format detection."""

    def test_detects_html(self):
        """Test table markup is detected as HTML."""
        assert detect_format("<TR><TD>x</TD></TR>") == "html"

    def test_detects_csv(self):
        """Test comma-heavy multi-line text is CSV."""
        assert detect_format("a,b,c\n1,2,3") == "csv"

    def test_detects_tsv(self):
        """Test tab-separated text is TSV."""
        assert detect_format("a\tb\n1\t2") == "tsv"

    def test_single_line_falls_back(self):
        """Test single-line text without tabs is generic delimited."""
        assert detect_format("a;b;c") == "delimited"

    def test_guess_delimiter(self):
        """Test delimiter guessing from first-line counts."""
        assert guess_delimiter("a;b;c\n1;2;3") == ";"
        assert guess_delimiter("a\tb\tc") == "\t"
        assert guess_delimiter("a,b") == ","
        assert guess_delimiter("a b") == " "

    def test_detect_and_parse_semicolon(self):
        """Test semicolon data is parsed with the guessed delimiter."""
        table = detect_and_parse("Date;Amount")
        assert table.headers == ["Date", "Amount"]
        assert table.rows == []

    def test_detect_and_parse_tsv(self):
        """Test pasted spreadsheet cells are parsed as TSV."""
        table = detect_and_parse("Date\tAmount\n2024-01-01\t5.00\n")
        assert table.format == "tsv"
        assert table.rows == [{"Date": "2024-01-01", "Amount": "5.00"}]

    def test_detect_and_parse_html_without_table(self):
        """Test HTML fragments without a table propagate the error."""
        with pytest.raises(NoTableFoundError):
            detect_and_parse("<td>orphan cell</td>")


class TestExcelParser:
    """Tests for the openpyxl workbook parser."""

    @pytest.fixture
    def workbook_path(self, tmp_path: Path) -> Path:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "January"
        sheet.append(["Transaction Date", "Description!", "Amount"])
        sheet.append([datetime(2024, 1, 15), "WALMART", -125.43])
        sheet.append([None, None, None])
        sheet.append([datetime(2024, 1, 16), "STARBUCKS", 5.0])
        other = workbook.create_sheet("February")
        other.append(["Date", "Memo"])
        path = tmp_path / "statement.xlsx"
        workbook.save(path)
        return path

    def test_parse_first_sheet(self, workbook_path: Path):
        """Test headers are cleaned and cells rendered as text."""
        table = parse_workbook(workbook_path)

        assert table.format == "xlsx"
        assert table.headers == ["Transaction Date", "Description", "Amount"]
        assert table.rows == [
            {"Transaction Date": "2024-01-15", "Description": "WALMART", "Amount": "-125.43"},
            {"Transaction Date": "2024-01-16", "Description": "STARBUCKS", "Amount": "5"},
        ]

    def test_parse_named_sheet(self, workbook_path: Path):
        """Test selecting a sheet by name."""
        table = parse_workbook(workbook_path, sheet_name="February")
        assert table.headers == ["Date", "Memo"]

    def test_parse_from_bytes(self, workbook_path: Path):
        """Test raw upload bytes are accepted."""
        table = parse_workbook(workbook_path.read_bytes())
        assert table.row_count == 2

    def test_list_sheets(self, workbook_path: Path):
        """Test sheet names in workbook order."""
        assert list_sheets(workbook_path) == ["January", "February"]

    def test_missing_sheet(self, workbook_path: Path):
        """Test an unknown sheet name raises ValueError."""
        with pytest.raises(ValueError, match="Sheet not found"):
            parse_workbook(workbook_path, sheet_name="March")

    def test_invalid_workbook(self, tmp_path: Path):
        """Test a non-workbook file raises ValueError."""
        path = tmp_path / "broken.xlsx"
        path.write_text("not a workbook")
        with pytest.raises(ValueError):
            parse_workbook(path)

    def test_header_and_cell_formatting(self):
        """Test header cleanup and cell rendering helpers."""
        assert clean_header_name("  posted   date: ") == "Posted Date"
        assert format_cell_value(None) == ""
        assert format_cell_value(12.0) == "12"
        assert format_cell_value(12.5) == "12.5"
