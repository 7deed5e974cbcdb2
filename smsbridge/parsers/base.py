"""
Shared pieces for modem response parsers.

Parsers turn reply lines into typed values and raise ATParseError when
the modem's output does not fit.
"""

import csv
from abc import ABC, abstractmethod
from typing import TypeVar, Generic

from ..exceptions import ATParseError

T = TypeVar('T')


class ResponseParser(ABC, Generic[T]):
    """Converts modem reply lines into a T."""

    @abstractmethod
    def parse(self, response: list[str]) -> T:
        """
        Args:
            response: Reply lines, first line first

        Raises:
            ATParseError: If the lines do not have the expected format
        """
        pass


def split_prefixed_line(line: str) -> tuple[str, str]:
    """
    Split "+TAG: rest" into ("+TAG", "rest").

    Raises:
        ATParseError: If the line has no "+TAG:" prefix
    """
    tag, sep, rest = line.strip().partition(":")
    if not sep or not tag.startswith("+"):
        raise ATParseError(f"Missing response prefix: {line!r}", response=[line])
    return tag, rest.strip()


class CommaSeparatedParser(ResponseParser[list[str]]):
    """
    Parser for comma-separated values.

    Double-quoted fields may contain commas; quotes are stripped.
    """

    def __init__(self, min_parts: int | None = None):
        """
        Initialize parser.

        Args:
            min_parts: Minimum number of parts (None = any)
        """
        self.min_parts = min_parts

    def parse(self, response: list[str]) -> list[str]:
        """Parse comma-separated values from the first response line."""
        if not response:
            raise ATParseError("Empty response", response=response)

        parts = [p.strip() for p in next(csv.reader([response[0]], skipinitialspace=True))]

        if self.min_parts is not None and len(parts) < self.min_parts:
            raise ATParseError(
                f"Expected at least {self.min_parts} parts, got {len(parts)}",
                response=response
            )

        return parts
