"""
Response parsers for AT command responses and fetched email.

Provides type-safe parsing of modem responses into structured data.
"""

from .base import ResponseParser, CommaSeparatedParser, split_prefixed_line
from .sms import (
    CMGR_TRAILER,
    CMGRHeader,
    CMGRHeaderParser,
    decode_timestamp,
    parse_cmgs,
    parse_notification_payload,
    strip_cmgr_trailer,
)
from .mail import (
    first_plain_text,
    is_valid_number,
    parse_email,
    senders_allowed,
    strip_invisible,
)

__all__ = [
    "ResponseParser",
    "CommaSeparatedParser",
    "split_prefixed_line",
    "CMGR_TRAILER",
    "CMGRHeader",
    "CMGRHeaderParser",
    "decode_timestamp",
    "parse_cmgs",
    "parse_notification_payload",
    "strip_cmgr_trailer",
    "first_plain_text",
    "is_valid_number",
    "parse_email",
    "senders_allowed",
    "strip_invisible",
]
