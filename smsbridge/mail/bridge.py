"""
Mail side of the bridge.

Outbound: new mailbox messages from allowed senders become SMS, with the
subject as the destination number. Inbound: received SMS are rendered
through the subject/body templates and mailed to the recipients.
"""

import logging
from email.message import EmailMessage
from typing import Iterable, Optional

from .render import TemplateRenderer
from .transport import Mailbox, MailSender
from ..parsers.mail import is_valid_number, senders_allowed, strip_invisible
from ..types import InboundEmail, InboundSms, MailboxCursor, OutboundSms

logger = logging.getLogger(__name__)


class MailBridge:
    """Converts between mailbox messages and SMS records."""

    def __init__(
        self,
        mailbox: Mailbox,
        sender: MailSender,
        mail_from: str,
        recipients: Iterable[str],
        allowed_senders: Iterable[str],
        subject_template: str,
        body_template: str,
        renderer: Optional[TemplateRenderer] = None
    ) -> None:
        """
        Initialize mail bridge.

        Args:
            mailbox: Polled for SMS requests
            sender: Submits forwarded SMS
            mail_from: From address of forwarded SMS
            recipients: To addresses of forwarded SMS
            allowed_senders: Addresses allowed to trigger an SMS
            subject_template: Mustache template for the forwarded subject
            body_template: Mustache template for the forwarded body
            renderer: Template renderer (created if None)
        """
        self.mailbox = mailbox
        self.sender = sender
        self.mail_from = mail_from
        self.recipients = list(recipients)
        self.allowed_senders = list(allowed_senders)
        self.subject_template = subject_template
        self.body_template = body_template
        self.renderer = renderer or TemplateRenderer()

    def initialize_cursor(self, cursor: MailboxCursor) -> None:
        """
        Record the current mailbox size so only later mail is handled.

        Raises:
            MailError: If the mailbox cannot be read
        """
        cursor.last_seen_count = self.mailbox.count()
        logger.info(f"Mailbox holds {cursor.last_seen_count} message(s) at startup")

    def to_outbound(self, email: InboundEmail) -> Optional[OutboundSms]:
        """
        Validate one email as an SMS request.

        Returns:
            OutboundSms, or None if the email is not a valid request
        """
        if not senders_allowed(email.senders, self.allowed_senders):
            logger.info(f"Ignoring message {email.position} from {', '.join(email.senders) or 'no sender'}")
            return None

        number = strip_invisible(email.subject)
        if not is_valid_number(number):
            logger.info(f"Ignoring message {email.position}: subject {number!r} is not a phone number")
            return None

        if email.body is None:
            logger.info(f"Ignoring message {email.position}: no plain-text body")
            return None

        return OutboundSms(destination_number=number, body=email.body)

    def poll(self, cursor: MailboxCursor) -> list[OutboundSms]:
        """
        Fetch mail that arrived since the last poll.

        The cursor advances to the current count whether or not any
        message was a valid request.

        Returns:
            SMS to send, in mailbox order

        Raises:
            MailError: If the mailbox cannot be read (cursor unchanged)
        """
        if cursor.last_seen_count is None:
            self.initialize_cursor(cursor)
            return []

        result = self.mailbox.fetch_since(cursor.last_seen_count)

        new_messages = result.count - cursor.last_seen_count
        if new_messages > 0:
            logger.info(f"Got {new_messages} new message(s).")
        elif new_messages < 0:
            logger.info(f"Mailbox shrank from {cursor.last_seen_count} to {result.count} message(s)")

        outbound = []
        for email in sorted(result.messages, key=lambda m: m.position):
            sms = self.to_outbound(email)
            if sms is not None:
                outbound.append(sms)

        cursor.last_seen_count = result.count
        return outbound

    def compose(self, sms: InboundSms) -> EmailMessage:
        """Build the email forwarding one received SMS."""
        context = sms.template_context()

        message = EmailMessage()
        message["From"] = self.mail_from
        message["To"] = ", ".join(self.recipients)
        # Header values may not span lines
        subject = self.renderer.render(self.subject_template, context)
        message["Subject"] = " ".join(subject.splitlines())
        message.set_content(self.renderer.render(self.body_template, context))
        return message

    def forward_sms(self, sms: InboundSms) -> None:
        """
        Email a received SMS to the recipients.

        Raises:
            MailError: If submission fails
            TemplateError: If a template cannot be rendered
        """
        message = self.compose(sms)
        self.sender.send(message)
        logger.info(f"Forwarded SMS from {sms.from_number} (index {sms.index}) by email")
