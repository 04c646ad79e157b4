"""Line interpreter protocol shared by the statement format parsers."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from fintrack.models import ParsedTransaction, RawLine

logger = logging.getLogger("fintrack.parsers")


@dataclass(frozen=True)
class Matched:
    """A line that produced a transaction."""

    transaction: ParsedTransaction


@dataclass(frozen=True)
class Unmatched:
    """A line that contributes nothing. The reason is for debug logging only."""

    reason: str


ParseOutcome = Matched | Unmatched


class LineInterpreter(ABC):
    """One statement layout heuristic.

    ``probe`` is a cheap regex test used by the classifier before committing
    to a full parse. ``try_parse`` never raises for bad line content: any
    failure inside ``parse_line`` is reported as ``Unmatched``.
    """

    name: str

    @abstractmethod
    def probe(self, text: str) -> bool:
        """Return True if the line looks like this format."""

    @abstractmethod
    def parse_line(self, line: RawLine, lines: Sequence[RawLine]) -> ParseOutcome:
        """Build a transaction from ``line``, using ``lines`` for lookahead."""

    def try_parse(self, line: RawLine, lines: Sequence[RawLine]) -> ParseOutcome:
        try:
            return self.parse_line(line, lines)
        except Exception as e:
            logger.debug(f"{self.name}: line {line.index} raised {type(e).__name__}: {e}")
            return Unmatched(f"error: {type(e).__name__}")
