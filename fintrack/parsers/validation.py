"""Shared validation utilities for statement text parsers."""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from fintrack.models import ParsedTransaction

# Configure logging for parsers
logger = logging.getLogger("fintrack.parsers")

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class ParseResult:
    """Result of parsing one document's text."""

    transactions: list[ParsedTransaction]
    total_lines_processed: int = 0
    blank_lines: int = 0
    lines_skipped: int = 0
    matches_by_format: Counter = field(default_factory=Counter)
    skip_reasons: Counter = field(default_factory=Counter)

    @property
    def match_rate(self) -> float:
        """Percentage of non-blank lines that produced a transaction."""
        candidates = self.total_lines_processed - self.blank_lines
        if candidates <= 0:
            return 0.0
        return (len(self.transactions) / candidates) * 100


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


def validate_file_contents(contents: bytes, min_size: int = 10) -> None:
    """
    Validate file contents before extraction.

    Args:
        contents: Raw file bytes
        min_size: Minimum expected file size in bytes

    Raises:
        ValidationError: If validation fails
    """
    if not contents:
        raise ValidationError("File is empty")

    if len(contents) < min_size:
        raise ValidationError(f"File too small ({len(contents)} bytes), minimum {min_size} bytes expected")


def clean_amount_string(amount_str: str) -> str:
    """
    Clean an amount string for parsing.

    Args:
        amount_str: Raw amount string such as "$1,234.56"

    Returns:
        Cleaned amount string ready for Decimal conversion
    """
    if not amount_str:
        return ""

    # Remove currency symbols, whitespace and thousand separators
    cleaned = amount_str.replace("$", "").replace(" ", "").replace(",", "").strip()

    # Sign is handled by the caller
    return cleaned.lstrip("+-")


def parse_amount(amount_str: str) -> Decimal | None:
    """
    Parse an unsigned amount string.

    Returns:
        The absolute amount, or None if the text is not a finite number
    """
    cleaned = clean_amount_string(amount_str)
    if not cleaned:
        return None

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not amount.is_finite():
        return None

    return abs(amount)


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def log_parse_result(result: ParseResult, parser_name: str) -> None:
    """
    Log parsing results for debugging.

    Args:
        result: The parse result
        parser_name: Name of the parser
    """
    by_format = ", ".join(f"{name} {count}" for name, count in sorted(result.matches_by_format.items()))
    logger.info(
        f"{parser_name}: Parsed {len(result.transactions)} transactions "
        f"(processed {result.total_lines_processed} lines, "
        f"skipped {result.lines_skipped}"
        f"{', ' + by_format if by_format else ''})"
    )

    for reason, count in result.skip_reasons.most_common(5):  # Log top 5 skip reasons
        logger.debug(f"{parser_name}: {count} lines skipped: {reason}")
