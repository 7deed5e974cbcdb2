"""
SMS response parsers for AT commands.

Parses responses from SMS-related AT commands like:
- AT+CMGR (Read message, text mode)
- AT+CMGS (Send message)
- +CMTI URC (New message indication)
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..exceptions import ATParseError
from .base import CommaSeparatedParser, ResponseParser, split_prefixed_line

# Characters after the message body in an AT+CMGR reply
CMGR_TRAILER = "\r\nOK\r\n"

_DATE_RE = re.compile(r"(\d{2})/(\d{2})/(\d{2})")
_TIME_RE = re.compile(r"(\d{2}):(\d{2}):(\d{2})")

# GSM service centre offsets are whole quarter hours
QUARTER_HOUR = timedelta(minutes=15)


@dataclass
class CMGRHeader:
    """Fields of a text-mode +CMGR header line."""
    tag: str
    status: str
    from_number: str
    received_time: datetime    # Aware, at the offset the network reported


def parse_notification_payload(payload: str) -> int:
    """
    Extract the storage index from a +CMTI payload.

    The index is the last comma-separated field, so extra leading fields
    (memory name, or none at all) are tolerated.

    Examples:
        '"SM",7' -> 7
        '3'      -> 3

    Raises:
        ValueError: If the last field is not an integer
    """
    return int(payload.split(",")[-1].strip())


def decode_timestamp(date_part: str, time_part: str) -> datetime:
    """
    Decode a GSM service centre timestamp.

    Args:
        date_part: "YY/MM/DD"
        time_part: "HH:MM:SS" followed by a signed count of quarter hours
                   (e.g., "21:10:59-28" is UTC-07:00)

    Returns:
        Timezone-aware datetime at the reported offset

    Raises:
        ATParseError: If either part is malformed
    """
    date_match = _DATE_RE.fullmatch(date_part.strip())
    time_match = _TIME_RE.fullmatch(time_part[:8])
    if not date_match or not time_match:
        raise ATParseError(f"Invalid timestamp: {date_part},{time_part}")

    offset_text = time_part[8:].strip()
    try:
        quarters = int(offset_text) if offset_text else 0
    except ValueError as e:
        raise ATParseError(f"Invalid timezone offset: {offset_text!r}") from e

    # datetime.timezone only accepts offsets strictly inside +/-24h
    if abs(quarters) >= 96:
        raise ATParseError(f"Timezone offset out of range: {quarters} quarter hours")

    yy, mm, dd = (int(g) for g in date_match.groups())
    hh, mi, ss = (int(g) for g in time_match.groups())

    try:
        return datetime(
            2000 + yy, mm, dd, hh, mi, ss,
            tzinfo=timezone(quarters * QUARTER_HOUR)
        )
    except ValueError as e:
        raise ATParseError(f"Invalid timestamp: {date_part},{time_part}: {e}") from e


class CMGRHeaderParser(ResponseParser[CMGRHeader]):
    """
    Parser for the header line of a text-mode AT+CMGR reply.

    Expected format:
        +CMGR: "REC UNREAD","+12223334444","","23/09/23,21:10:59-28"

    Field layout: [status, from_number, alpha, timestamp, ...]. The
    timestamp holds a comma of its own; when the modem sends it unquoted
    the date and time+offset arrive as two fields and are re-joined.
    """

    def __init__(self) -> None:
        self._fields = CommaSeparatedParser(min_parts=4)

    def split_fields(self, line: str) -> list[str]:
        """Split a header into [tag, status, from_number, alpha, date, time+offset, ...]."""
        tag, rest = split_prefixed_line(line)
        fields = self._fields.parse([rest])

        timestamp = fields[3]
        if "," in timestamp:
            date_part, _, time_part = timestamp.partition(",")
            fields[3:4] = [date_part, time_part]
        elif len(fields) < 5:
            raise ATParseError(f"Missing time field in header: {line!r}", response=[line])

        return [tag] + fields

    def parse(self, response: list[str]) -> CMGRHeader:
        """Parse the first response line into a CMGRHeader."""
        if not response:
            raise ATParseError("Empty CMGR response", response=response)

        line = response[0]
        fields = self.split_fields(line)
        if fields[0] != "+CMGR":
            raise ATParseError(f"Invalid CMGR header: {line!r}", response=response)

        return CMGRHeader(
            tag=fields[0],
            status=fields[1],
            from_number=fields[2],
            received_time=decode_timestamp(fields[4], fields[5]),
        )


def strip_cmgr_trailer(text: str) -> str:
    """
    Remove the fixed "\\r\\nOK\\r\\n" trailer from an AT+CMGR body.

    Raises:
        ATParseError: If the text does not end with the trailer
    """
    if not text.endswith(CMGR_TRAILER):
        raise ATParseError("CMGR body is missing its OK trailer", response=[text])
    return text[:-len(CMGR_TRAILER)]


def parse_cmgs(line: str) -> int:
    """
    Parse an AT+CMGS confirmation.

    Expected format:
        +CMGS: 123

    Where 123 is the message reference number.

    Raises:
        ATParseError: If the line is not a +CMGS confirmation
    """
    match = re.match(r'\+CMGS:\s*(\d+)', line.strip())
    if not match:
        raise ATParseError(f"Could not parse CMGS response: {line!r}", response=[line])
    return int(match.group(1))
