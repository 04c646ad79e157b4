"""Tests for the parser validation module."""

from decimal import Decimal

import pytest

from fintrack.parsers.validation import (
    ParseResult,
    ValidationError,
    clean_amount_string,
    collapse_whitespace,
    parse_amount,
    validate_file_contents,
)


class TestValidateFileContents:
    """Test file contents validation."""

    def test_rejects_empty_contents(self):
        """Should reject empty file contents."""
        with pytest.raises(ValidationError, match="empty"):
            validate_file_contents(b"")

    def test_rejects_too_small_contents(self):
        """Should reject files smaller than minimum size."""
        with pytest.raises(ValidationError, match="too small"):
            validate_file_contents(b"abc", min_size=10)

    def test_accepts_valid_contents(self):
        """Should accept valid file contents."""
        validate_file_contents(b"Valid file contents here", min_size=10)


class TestCleanAmountString:
    """Test amount string cleaning."""

    def test_removes_dollar_sign(self):
        """Should remove dollar signs."""
        assert clean_amount_string("$100.00") == "100.00"

    def test_removes_commas(self):
        """Should remove thousand separators."""
        assert clean_amount_string("1,234.56") == "1234.56"

    def test_strips_sign(self):
        """Should drop leading signs."""
        assert clean_amount_string("-$45.67") == "45.67"
        assert clean_amount_string("+45.67") == "45.67"

    def test_empty_string(self):
        """Should return an empty string for empty input."""
        assert clean_amount_string("") == ""


class TestParseAmount:
    """Test amount parsing."""

    def test_parses_simple_amount(self):
        """Should parse a plain decimal."""
        assert parse_amount("4.50") == Decimal("4.50")

    def test_parses_formatted_amount(self):
        """Should parse dollar amounts with separators."""
        assert parse_amount("$1,234.56") == Decimal("1234.56")

    def test_returns_absolute_value(self):
        """Should drop the sign."""
        assert parse_amount("-45.67") == Decimal("45.67")

    def test_invalid_returns_none(self):
        """Should return None for non-numeric text."""
        assert parse_amount("abc") is None
        assert parse_amount("") is None

    def test_rejects_non_finite(self):
        """Should reject NaN and infinity."""
        assert parse_amount("NaN") is None
        assert parse_amount("Infinity") is None


class TestCollapseWhitespace:
    """Test whitespace normalization."""

    def test_collapses_runs(self):
        """Should collapse whitespace runs and trim."""
        assert collapse_whitespace("  Coffee \t  Shop  ") == "Coffee Shop"


class TestParseResult:
    """Test ParseResult."""

    def test_match_rate(self):
        """Should compute the match rate over non-blank lines."""
        result = ParseResult(transactions=[object()] * 2, total_lines_processed=5, blank_lines=1)
        assert result.match_rate == 50.0

    def test_match_rate_without_lines(self):
        """Should return zero when nothing was processed."""
        assert ParseResult(transactions=[]).match_rate == 0.0
