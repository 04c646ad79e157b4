"""Tests for PDF text extraction."""

from unittest.mock import MagicMock, patch

import pytest

from fintrack.parsers.text_extractor import ExtractionError, extract_text

FAKE_PDF = b"%PDF-1.4\n" + b"0" * 200


def fake_pdf(*page_texts):
    """Build a stand-in for pdfplumber.open() with the given page texts."""
    pages = []
    for text in page_texts:
        page = MagicMock()
        if isinstance(text, Exception):
            page.extract_text.side_effect = text
        else:
            page.extract_text.return_value = text
        pages.append(page)

    pdf = MagicMock()
    pdf.pages = pages
    pdf.__enter__.return_value = pdf
    pdf.__exit__.return_value = False
    return pdf


class TestExtractText:
    """Test text extraction."""

    def test_joins_pages_in_order(self):
        """Should concatenate pages, each followed by a line break."""
        with patch("fintrack.parsers.text_extractor.pdfplumber.open", return_value=fake_pdf("page one", "page two")):
            assert extract_text(FAKE_PDF) == "page one\npage two\n"

    def test_page_without_text_layer(self):
        """Should contribute only a line break for pages without text."""
        with patch("fintrack.parsers.text_extractor.pdfplumber.open", return_value=fake_pdf("a", None, "c")):
            assert extract_text(FAKE_PDF) == "a\n\nc\n"

    def test_no_normalization(self):
        """Should keep case and whitespace as extracted."""
        with patch("fintrack.parsers.text_extractor.pdfplumber.open", return_value=fake_pdf("  Tue, Oct. 14  ")):
            assert extract_text(FAKE_PDF) == "  Tue, Oct. 14  \n"

    def test_reads_from_path(self, tmp_path):
        """Should read the file from disk when given a path."""
        pdf_path = tmp_path / "statement.pdf"
        pdf_path.write_bytes(FAKE_PDF)

        with patch("fintrack.parsers.text_extractor.pdfplumber.open", return_value=fake_pdf("x")) as mock_open:
            assert extract_text(pdf_path) == "x\n"
        mock_open.assert_called_once_with(pdf_path)

    def test_failing_page_fails_whole_document(self):
        """Should raise instead of returning partial text."""
        pdf = fake_pdf("page one", ValueError("bad stream"))
        with patch("fintrack.parsers.text_extractor.pdfplumber.open", return_value=pdf):
            with pytest.raises(ExtractionError, match="bad stream"):
                extract_text(FAKE_PDF)

    def test_corrupt_file(self):
        """Should raise ExtractionError when the PDF cannot be opened."""
        with patch("fintrack.parsers.text_extractor.pdfplumber.open", side_effect=Exception("No /Root object")):
            with pytest.raises(ExtractionError):
                extract_text(FAKE_PDF)

    def test_missing_file(self, tmp_path):
        """Should raise ExtractionError for a missing file."""
        with pytest.raises(ExtractionError, match="Cannot read"):
            extract_text(tmp_path / "missing.pdf")

    def test_empty_bytes(self):
        """Should raise ExtractionError for empty input."""
        with pytest.raises(ExtractionError, match="empty"):
            extract_text(b"")
