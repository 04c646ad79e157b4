"""Line classification and transaction assembly for extracted statement text."""

from collections.abc import Sequence

from fintrack.models import ParsedTransaction, RawLine
from fintrack.parsers.base import LineInterpreter, Matched
from fintrack.parsers.generic_date import GenericDateParser
from fintrack.parsers.named_date import NamedDateParser
from fintrack.parsers.validation import ParseResult, log_parse_result, logger

# Priority order: a line matching both date patterns is a named-date line
INTERPRETERS: tuple[LineInterpreter, ...] = (NamedDateParser(), GenericDateParser())


def iter_lines(text: str) -> list[RawLine]:
    """Split extracted text into indexed lines, dropping empty entries."""
    stripped = (raw.rstrip("\r") for raw in text.split("\n"))
    return [RawLine(text=line, index=i) for i, line in enumerate(s for s in stripped if s)]


def classify_line(
    text: str, interpreters: Sequence[LineInterpreter] = INTERPRETERS
) -> LineInterpreter | None:
    """Return the first interpreter whose probe matches the line, if any."""
    if not text.strip():
        return None

    for interpreter in interpreters:
        if interpreter.probe(text):
            return interpreter

    return None


def parse_text_with_stats(
    text: str, interpreters: Sequence[LineInterpreter] = INTERPRETERS
) -> ParseResult:
    """
    Parse every line of a document's text.

    Each line is dispatched to at most one interpreter. Transactions are
    returned in scan order with no deduplication or sorting.
    """
    result = ParseResult(transactions=[])
    lines = iter_lines(text)

    for line in lines:
        result.total_lines_processed += 1

        interpreter = classify_line(line.text, interpreters)
        if interpreter is None:
            if not line.text.strip():
                result.blank_lines += 1
            else:
                result.lines_skipped += 1
            continue

        outcome = interpreter.try_parse(line, lines)
        if isinstance(outcome, Matched):
            result.transactions.append(outcome.transaction)
            result.matches_by_format[interpreter.name] += 1
        else:
            result.lines_skipped += 1
            result.skip_reasons[f"{interpreter.name}: {outcome.reason}"] += 1
            logger.debug(f"{interpreter.name}: line {line.index} skipped ({outcome.reason})")

    return result


def parse_transactions(text: str) -> list[ParsedTransaction]:
    """Parse statement text into transactions, logging a summary."""
    result = parse_text_with_stats(text)
    log_parse_result(result, "Statement text")
    return result.transactions
