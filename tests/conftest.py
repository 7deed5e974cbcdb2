"""
Pytest configuration and fixtures.

Provides shared test fixtures for smsbridge tests.
"""

import pytest
import logging

from smsbridge.bridge import SmsMailBridge
from smsbridge.core import MockTransport, LineDemultiplexer, ATProtocol
from smsbridge.features import SMSManager
from smsbridge.mail import MailBridge, Mailbox, MailSender
from smsbridge.types import InboundEmail, MailboxPoll


# Enable logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


ALLOWED_SENDER = "me@example.com"


class FakeClock:
    """
    Controllable monotonic clock.

    Every call advances time by step, so bounded waits on a silent
    transport expire without real sleeping.
    """

    def __init__(self, start: float = 0.0, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMailbox(Mailbox):
    """In-memory mailbox."""

    def __init__(self):
        self.messages: list[InboundEmail] = []
        self.fail = None
        self.polls = 0

    def add(self, subject, body="Hello", senders=(ALLOWED_SENDER,)):
        email = InboundEmail(
            position=len(self.messages) + 1,
            senders=list(senders),
            subject=subject,
            body=body
        )
        self.messages.append(email)
        return email

    def count(self):
        if self.fail:
            raise self.fail
        return len(self.messages)

    def fetch_since(self, last_seen_count):
        if self.fail:
            raise self.fail
        self.polls += 1
        return MailboxPoll(count=len(self.messages), messages=self.messages[last_seen_count:])


class FakeMailSender(MailSender):
    """Records submitted messages."""

    def __init__(self):
        self.sent = []
        self.fail = None

    def send(self, message):
        if self.fail:
            raise self.fail
        self.sent.append(message)


@pytest.fixture
def clock():
    """Clock advancing half a second per reading."""
    return FakeClock(step=0.5)


@pytest.fixture
def mock_transport():
    """
    Create a MockTransport instance for testing.

    Example:
        def test_something(mock_transport):
            mock_transport.add_response("\\r\\nOK\\r\\n")
            # ... test code ...
    """
    transport = MockTransport()
    yield transport
    transport.close()


@pytest.fixture
def demux(mock_transport, clock):
    """Create a LineDemultiplexer over the MockTransport."""
    return LineDemultiplexer(mock_transport, default_timeout=5.0, clock=clock)


@pytest.fixture
def protocol(demux):
    """Create an ATProtocol over the demultiplexer."""
    return ATProtocol(demux)


@pytest.fixture
def sms_manager(protocol, clock):
    """Create an SMSManager with a short send timeout."""
    return SMSManager(protocol, send_timeout=5.0, clock=clock)


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def mail_sender():
    return FakeMailSender()


@pytest.fixture
def mail_bridge(mailbox, mail_sender):
    """Create a MailBridge over the in-memory mailbox and sender."""
    return MailBridge(
        mailbox=mailbox,
        sender=mail_sender,
        mail_from="bridge@example.com",
        recipients=["me@example.com", "you@example.com"],
        allowed_senders=[ALLOWED_SENDER],
        subject_template="SMS from {{from_number}}",
        body_template="{{body}}\n-- received {{received_time}}"
    )


@pytest.fixture
def bridge(mock_transport, mail_bridge, clock):
    """
    Create an SmsMailBridge with MockTransport and in-memory mail.

    Example:
        def test_loop(bridge, mock_transport):
            mock_transport.inject(cmti(1))
            bridge.run_once()
    """
    return SmsMailBridge(
        transport=mock_transport,
        mail=mail_bridge,
        command_timeout=5.0,
        send_timeout=5.0,
        clock=clock,
        sleep=clock.advance
    )
