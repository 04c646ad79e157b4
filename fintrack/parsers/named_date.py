"""Parser for statements that spell out weekday and month names.

Typical layout (text extracted from the PDF):

    Tue, Oct. 14, 2025   Pos Purchase   -$45.67
    Grocery Store

Some exports put the amount column on its own line:

    Tue, Oct. 14, 2025
    -$45.67
    Grocery Store

Only withdrawals (negative amounts) become transactions; deposits are skipped.
"""

import re
from collections.abc import Sequence
from datetime import date

from fintrack.models import ParsedTransaction, RawLine
from fintrack.parsers.base import LineInterpreter, Matched, ParseOutcome, Unmatched
from fintrack.parsers.generic_date import GENERIC_DATE_RE
from fintrack.parsers.validation import logger, parse_amount

NAMED_DATE_RE = re.compile(
    r"(?:\b(Mon|Tue|Wed|Thu|Fri|Sat|Sun)(?:,\s*|\s+))?"  # Optional weekday
    r"\b(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)(?:\.\s*|\s+)"  # Month
    r"(\d{1,2})(?:,\s*|\s+)"  # Day
    r"(\d{4})\b"  # Year
)

# Sign immediately followed by "$" and a number with exactly two decimals
SIGNED_AMOUNT_RE = re.compile(r"([+-])\$((?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2})(?![\d.])")

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

# Transaction type lines that sit between the date line and the payee
DESCRIPTION_SKIP_MARKERS = ("Deposit", "Purchase", "Correction", "Transfer")


def month_number(abbreviation: str) -> int:
    """Map a month abbreviation to its number, falling back to January."""
    number = MONTHS.get(abbreviation.lower())
    if number is None:
        logger.warning(f"Unrecognized month abbreviation {abbreviation!r}, assuming January")
        return 1
    return number


def _is_description_candidate(text: str) -> bool:
    return not any(marker in text for marker in DESCRIPTION_SKIP_MARKERS)


def _lookahead_description(lines: Sequence[RawLine], position: int) -> str:
    """Pick the payee line following ``position`` in ``lines``."""
    if position + 1 >= len(lines):
        return ""

    next_line = lines[position + 1].text.strip()
    if _is_description_candidate(next_line):
        return next_line

    if position + 2 < len(lines):
        return lines[position + 2].text.strip()

    return ""


class NamedDateParser(LineInterpreter):
    """Multi-line layout: "Tue, Oct. 14, 2025" date line plus a signed dollar amount."""

    name = "named_date"

    def probe(self, text: str) -> bool:
        return NAMED_DATE_RE.search(text) is not None

    def parse_line(self, line: RawLine, lines: Sequence[RawLine]) -> ParseOutcome:
        date_match = NAMED_DATE_RE.search(line.text)
        if not date_match:
            return Unmatched("no date")

        _weekday, month_abbr, day, year = date_match.groups()
        try:
            txn_date = date(int(year), month_number(month_abbr), int(day))
        except ValueError:
            return Unmatched(f"invalid date {date_match.group(0)!r}")

        position = line.index
        amount_match = SIGNED_AMOUNT_RE.search(line.text)
        amount_position = position

        if not amount_match and position + 1 < len(lines):
            next_text = lines[position + 1].text
            if not NAMED_DATE_RE.search(next_text) and not GENERIC_DATE_RE.search(next_text):
                amount_match = SIGNED_AMOUNT_RE.search(next_text)
                amount_position = position + 1

        if not amount_match:
            return Unmatched("no signed amount")

        sign, amount_str = amount_match.groups()
        if sign != "-":
            return Unmatched("deposit")

        amount = parse_amount(amount_str)
        if amount is None:
            return Unmatched(f"invalid amount {amount_match.group(0)!r}")

        description = _lookahead_description(lines, amount_position)
        return Matched(ParsedTransaction(date=txn_date, amount=amount, description=description))
