"""Text extraction from statement PDFs."""

from io import BytesIO
from pathlib import Path

import pdfplumber

from fintrack.parsers.validation import ValidationError, logger, validate_file_contents


class ExtractionError(Exception):
    """Raised when text cannot be obtained from a document."""

    pass


def extract_text(source: Path | str | bytes) -> str:
    """
    Extract the text of every page of a PDF, in page order.

    Each page's text is followed by a line break. Pages without a text layer
    contribute only the line break. No other normalization is applied.

    Args:
        source: Path to the PDF, or its raw bytes

    Raises:
        ExtractionError: If the file cannot be read or any page fails to decode
    """
    try:
        if isinstance(source, bytes):
            validate_file_contents(source, min_size=100)
            pdf_file = BytesIO(source)
        else:
            pdf_file = Path(source)
            validate_file_contents(pdf_file.read_bytes(), min_size=100)
    except (OSError, ValidationError) as e:
        raise ExtractionError(f"Cannot read document: {e}") from e

    page_texts: list[str] = []
    try:
        with pdfplumber.open(pdf_file) as pdf:
            for page in pdf.pages:
                page_texts.append((page.extract_text() or "") + "\n")
    except Exception as e:
        logger.error(f"PDF text extraction failed after {len(page_texts)} pages: {e}")
        raise ExtractionError(f"PDF text extraction failed: {e}") from e

    text = "".join(page_texts)
    if not text.strip():
        logger.warning("PDF: No text content extracted")

    return text
