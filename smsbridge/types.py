"""
Data types and structures for the SMS bridge.

Provides type-safe representations of SMS, email and polling state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class SendState(Enum):
    """States of the SMS send state machine."""
    IDLE = "idle"
    MODE_SET = "mode_set"                              # AT+CMGF=1 accepted
    ADDRESSED = "addressed"                            # AT+CMGS="<number>" written
    BODY_WRITTEN = "body_written"
    TERMINATED = "terminated"                          # 0x1A written
    AWAITING_QUEUE_CONFIRM = "awaiting_queue_confirm"  # waiting for +CMGS:
    AWAITING_FINAL_CONFIRM = "awaiting_final_confirm"  # waiting for OK
    DRAINED = "drained"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if the state machine has finished."""
        return self in (SendState.DRAINED, SendState.FAILED)


@dataclass
class InboundSms:
    """
    SMS message read from modem storage.

    received_time is timezone-aware and converted to local time.
    """
    index: int                # Storage index the message was read from
    status: str               # e.g., "REC UNREAD"
    from_number: str          # Sender phone number
    received_time: datetime   # Service centre timestamp
    body: str                 # Message text

    def template_context(self) -> dict[str, object]:
        """Values exposed to the email subject/body templates."""
        return {
            "index": self.index,
            "status": self.status,
            "from_number": self.from_number,
            "received_time": self.received_time,
            "body": self.body,
        }


@dataclass
class OutboundSms:
    """SMS message to transmit, built from one email."""
    destination_number: str
    body: str


@dataclass
class InboundEmail:
    """Email fetched from the polled mailbox."""
    position: int                                       # 1-based mailbox position
    senders: list[str] = field(default_factory=list)    # From addresses
    subject: str = ""
    body: Optional[str] = None                          # First text/plain part


@dataclass
class MailboxPoll:
    """Result of one mailbox poll."""
    count: int                                          # Messages in the mailbox
    messages: list[InboundEmail] = field(default_factory=list)


@dataclass
class MailboxCursor:
    """
    Mailbox polling progress.

    last_seen_count is None until the mailbox has been counted once.
    """
    last_seen_count: Optional[int] = None
    last_check_time: Optional[float] = None

    def is_due(self, now: float, interval: float) -> bool:
        """Check if at least interval seconds passed since the last check."""
        if self.last_check_time is None:
            return True
        return now - self.last_check_time >= interval
