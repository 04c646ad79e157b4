"""Parser for statement lines with numeric slash or dash dates.

Format (one transaction per line, any column order):
    10/14/2025 Coffee Shop $4.50
    3-2-25 ATM WITHDRAWAL 60.00
"""

import re
from collections.abc import Sequence
from datetime import date, datetime

from fintrack.models import ParsedTransaction, RawLine
from fintrack.parsers.base import LineInterpreter, Matched, ParseOutcome, Unmatched
from fintrack.parsers.validation import collapse_whitespace, parse_amount

GENERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})\b")

# Optional "$", number with exactly two decimals. A sign stays in the description
AMOUNT_RE = re.compile(r"\$?((?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2})(?![\d.])")


def _parse_date(month: str, day: str, year: str) -> date | None:
    """Parse month/day/year parts (US ordering) into a date."""
    if len(year) == 2:
        fmt = "%m/%d/%y"
    elif len(year) == 4:
        fmt = "%m/%d/%Y"
    else:
        return None

    try:
        return datetime.strptime(f"{month}/{day}/{year}", fmt).date()
    except ValueError:
        return None


class GenericDateParser(LineInterpreter):
    """Single-line layout: numeric date, free text and an amount."""

    name = "generic_date"

    def probe(self, text: str) -> bool:
        return GENERIC_DATE_RE.search(text) is not None

    def parse_line(self, line: RawLine, lines: Sequence[RawLine]) -> ParseOutcome:
        text = line.text

        date_match = GENERIC_DATE_RE.search(text)
        if not date_match:
            return Unmatched("no date")

        txn_date = _parse_date(*date_match.groups())
        if txn_date is None:
            return Unmatched(f"invalid date {date_match.group(0)!r}")

        # Blank out the date so its digits cannot be read as an amount
        start, end = date_match.span()
        masked = text[:start] + " " * (end - start) + text[end:]

        amount_match = AMOUNT_RE.search(masked)
        if not amount_match:
            return Unmatched("no amount")

        amount = parse_amount(amount_match.group(1))
        if amount is None:
            return Unmatched(f"invalid amount {amount_match.group(0)!r}")

        a_start, a_end = amount_match.span()
        description = collapse_whitespace(masked[:a_start] + " " + masked[a_end:])

        return Matched(ParsedTransaction(date=txn_date, amount=amount, description=description))
