"""
PDF Statement Reader Tests

Tests for page text extraction, page selection, transaction line hints and
bank statement detection.
"""

import sys
from io import BytesIO
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_import.parsers.pdf import (
    apply_page_range,
    extract_transaction_lines,
    is_bank_statement,
    is_bank_statement_pdf,
    read_pdf,
    score_transaction_line,
    split_pages,
    transaction_hints,
)

STATEMENT_TEXT = (
    "ACME BANK\n"
    "Statement period 01/01/2024 - 01/31/2024\n"
    "01/15/2024 STARBUCKS #2291 -4.85\n"
    "01/16/2024 PAYROLL DEPOSIT 1250.00\n"
    "Thank you for banking with us"
)


def fake_pdf(page_texts: list, metadata: dict | None = None) -> MagicMock:
    """A pdfplumber document whose pages return ``page_texts``."""
    pdf = MagicMock()
    pdf.__enter__.return_value = pdf
    pdf.metadata = metadata or {}
    pdf.pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pdf.pages.append(page)
    return pdf


class TestReadPdf:
    """Tests for reading page text through pdfplumber."""

    def test_pages_and_metadata(self):
        """Test blank pages are dropped and metadata is kept as text."""
        pdf = fake_pdf(
            ["Page one text", "   ", "Page three text"],
            {"Title": "January statement", "Pages": 3, "Info": {"nested": True}},
        )
        with patch("statement_import.parsers.pdf.pdfplumber") as pdfplumber:
            pdfplumber.open.return_value = pdf
            document = read_pdf(b"%PDF-1.4")

        assert isinstance(pdfplumber.open.call_args[0][0], BytesIO)
        assert document.pages == ["Page one text", "Page three text"]
        assert document.total_pages == 2
        assert document.text == "Page one text\n\nPage three text"
        assert document.metadata == {"Title": "January statement", "Pages": "3"}
        assert document.transaction_lines == []

    def test_page_range_and_hints(self):
        """Test only the selected pages are returned and scanned for lines."""
        pdf = fake_pdf(["Cover page", STATEMENT_TEXT, "Disclosures"])
        with patch("statement_import.parsers.pdf.pdfplumber") as pdfplumber:
            pdfplumber.open.return_value = pdf
            document = read_pdf("statement.pdf", page_range=(2, 2), extract_hints=True)

        assert document.pages == [STATEMENT_TEXT]
        assert document.total_pages == 3
        assert document.transaction_lines == [
            "01/15/2024 STARBUCKS #2291 -4.85",
            "01/16/2024 PAYROLL DEPOSIT 1250.00",
        ]

    def test_max_pages(self):
        """Test reading stops after the page limit."""
        pdf = fake_pdf(["First", "Second"])
        with patch("statement_import.parsers.pdf.pdfplumber") as pdfplumber:
            pdfplumber.open.return_value = pdf
            document = read_pdf(b"%PDF-1.4", max_pages=1)

        assert document.pages == ["First"]
        pdf.pages[1].extract_text.assert_not_called()

    def test_unreadable_pdf(self):
        """Test pdfplumber failures surface as ValueError."""
        with patch("statement_import.parsers.pdf.pdfplumber") as pdfplumber:
            pdfplumber.open.side_effect = RuntimeError("No /Root object")
            with pytest.raises(ValueError):
                read_pdf(b"%PDF-1.4")

    def test_missing_file(self, tmp_path: Path):
        """Test a path that does not exist raises ValueError."""
        with pytest.raises(ValueError):
            read_pdf(tmp_path / "missing.pdf")

    def test_not_a_pdf(self):
        """Test bytes that are not a PDF raise ValueError."""
        with pytest.raises(ValueError):
            read_pdf(b"Date,Description,Amount\n")


class TestPages:
    """Tests for page splitting and page ranges."""

    def test_split_on_form_feed(self):
        """Test form feeds separate pages and short fragments are dropped."""
        first = "Statement period 01/01/2024 - 01/31/2024 for account 1234"
        second = "01/15/2024 STARBUCKS #2291 -4.85 and other purchases below"
        assert split_pages(f"{first}\f{second}\fend") == [first, second]

    def test_split_on_blank_lines(self):
        """Test runs of blank lines separate pages without other markers."""
        first = "A" * 60
        second = "B" * 60
        assert split_pages(f"{first}\n\n\n{second}") == [first, second]

    @pytest.mark.parametrize("page_range,expected", [
        (None, ["a", "b", "c"]),
        ((2, 3), ["b", "c"]),
        ((2, 10), ["b", "c"]),
        ((0, 1), ["a"]),
    ])
    def test_apply_page_range(self, page_range, expected):
        """Test ranges are 1-based, inclusive and clamped."""
        assert apply_page_range(["a", "b", "c"], page_range) == expected

    def test_reversed_page_range(self):
        """Test a range that ends before it starts is rejected."""
        with pytest.raises(ValueError):
            apply_page_range(["a", "b"], (2, 1))


class TestTransactionLines:
    """Tests for spotting transaction-like lines."""

    def test_score(self):
        """Test a full statement line scores high and prose scores low."""
        assert score_transaction_line("01/15/2024 STARBUCKS #2291 PURCHASE -4.85") == 1.0
        assert score_transaction_line("Thank you for banking with us") == pytest.approx(0.1)

    def test_extract_lines(self):
        """Test only lines carrying an amount are kept."""
        assert extract_transaction_lines(STATEMENT_TEXT) == [
            "01/15/2024 STARBUCKS #2291 -4.85",
            "01/16/2024 PAYROLL DEPOSIT 1250.00",
        ]

    def test_hints(self):
        """Test hints are ranked and split into date, amount and vendor."""
        hints = transaction_hints(STATEMENT_TEXT)

        assert [h.confidence for h in hints] == [1.0, 1.0, pytest.approx(0.4)]
        starbucks, payroll = hints[0], hints[1]
        assert starbucks.date == "01/15/2024"
        assert starbucks.amount == "4.85"
        assert starbucks.vendor == "STARBUCKS #2291"
        assert payroll.amount == "1250.00"
        assert payroll.vendor == "PAYROLL DEPOSIT"
        assert hints[2].amount is None

    def test_hint_threshold(self):
        """Test a higher threshold drops weaker lines."""
        hints = transaction_hints(STATEMENT_TEXT, min_confidence=0.5)
        assert [h.vendor for h in hints] == ["STARBUCKS #2291", "PAYROLL DEPOSIT"]


class TestBankStatementDetection:
    """Tests for recognizing bank statements."""

    def test_two_terms_required(self):
        """Test detection needs at least two banking terms."""
        assert is_bank_statement("Statement Period: January\nEnding Balance $1,204.33")
        assert not is_bank_statement("Account number 1234\nInvoice total 50.00")

    def test_pdf_detection_reads_first_pages(self):
        """Test only the first two pages are read for detection."""
        pdf = fake_pdf(["Account Summary", "Beginning balance 10.00", "Appendix"])
        with patch("statement_import.parsers.pdf.pdfplumber") as pdfplumber:
            pdfplumber.open.return_value = pdf
            assert is_bank_statement_pdf(b"%PDF-1.4") is True

        pdf.pages[2].extract_text.assert_not_called()

    def test_unreadable_pdf_is_not_a_statement(self):
        """Test detection answers False instead of raising."""
        with patch("statement_import.parsers.pdf.pdfplumber") as pdfplumber:
            pdfplumber.open.side_effect = RuntimeError("broken")
            assert is_bank_statement_pdf(b"%PDF-1.4") is False
