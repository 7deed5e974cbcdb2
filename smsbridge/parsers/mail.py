"""
Email parsing and validation for outbound SMS requests.

An email asks the bridge to send an SMS: the subject is the destination
number and the first plain-text part is the message body.
"""

import logging
import re
import unicodedata
from email import message_from_bytes, policy
from email.message import EmailMessage
from email.utils import getaddresses
from typing import Iterable, Optional

from ..types import InboundEmail

logger = logging.getLogger(__name__)

# Optional leading "+" followed by ASCII digits, nothing else
NUMBER_PATTERN = re.compile(r"\+?[0-9]+")


def strip_invisible(text: str) -> str:
    """Remove control, format and other invisible (Unicode "C*") characters."""
    return "".join(c for c in text if not unicodedata.category(c).startswith("C"))


def is_valid_number(text: str) -> bool:
    """
    Check a destination number.

    Punctuation is not stripped: "+1 (222) 333-4444" is rejected.
    """
    return NUMBER_PATTERN.fullmatch(text) is not None


def senders_allowed(senders: Iterable[str], allowed: Iterable[str]) -> bool:
    """
    Check that every sender is on the allow-list.

    Addresses compare case-insensitively. A message without any sender
    is not allowed.
    """
    allowed_set = {a.strip().lower() for a in allowed}
    senders = [s.strip().lower() for s in senders]
    return bool(senders) and all(s in allowed_set for s in senders)


def first_plain_text(message: EmailMessage) -> Optional[str]:
    """
    Return the first text/plain part that is not an attachment.

    Raises:
        LookupError: If the part declares an unknown charset
        UnicodeError: If the part cannot be decoded
    """
    for part in message.walk():
        if part.is_multipart():
            continue
        if part.get_content_type() == "text/plain" and not part.is_attachment():
            return part.get_content()
    return None


def parse_email(raw: bytes, position: int) -> InboundEmail:
    """
    Parse a fetched RFC 822 message.

    Args:
        raw: Message bytes as returned by the mailbox
        position: 1-based mailbox position of the message

    Returns:
        InboundEmail with From addresses, decoded subject and plain body.
        A body that cannot be decoded is None, so the message is ignored.
    """
    message = message_from_bytes(raw, policy=policy.default)

    senders = [addr for _, addr in getaddresses(message.get_all("From", [])) if addr]

    try:
        body = first_plain_text(message)
    except (LookupError, UnicodeError) as e:
        logger.warning(f"Cannot decode body of message {position}: {e}")
        body = None

    return InboundEmail(
        position=position,
        senders=senders,
        subject=str(message.get("Subject", "")),
        body=body,
    )
