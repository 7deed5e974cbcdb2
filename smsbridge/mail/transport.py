"""
Mail transport adapters.

The bridge only needs a read-only mailbox poll and one-shot message
submission. Both connections are opened per operation and closed again.
"""

import imaplib
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from contextlib import contextmanager
from email.message import EmailMessage
from typing import Iterator, Optional

from ..exceptions import MailError
from ..parsers.mail import parse_email
from ..types import InboundEmail, MailboxPoll

logger = logging.getLogger(__name__)


class Mailbox(ABC):
    """Abstract read-only mailbox."""

    @abstractmethod
    def count(self) -> int:
        """
        Number of messages currently in the mailbox.

        Raises:
            MailError: If the mailbox cannot be read
        """
        pass

    @abstractmethod
    def fetch_since(self, last_seen_count: int) -> MailboxPoll:
        """
        Count the mailbox and fetch every message past last_seen_count.

        Args:
            last_seen_count: Message count observed by the previous poll

        Returns:
            Current count and the new messages in ascending position

        Raises:
            MailError: If the mailbox cannot be read
        """
        pass


class MailSender(ABC):
    """Abstract mail submission."""

    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        """
        Submit one message.

        Raises:
            MailError: If submission fails
        """
        pass


class ImapMailbox(Mailbox):
    """IMAP4-over-SSL mailbox, selected read-only."""

    def __init__(
        self,
        host: str,
        port: int = 993,
        username: str = "",
        password: str = "",
        mailbox: str = "INBOX",
        timeout: float = 30.0,
        ssl_context: Optional[ssl.SSLContext] = None
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.mailbox = mailbox
        self.timeout = timeout
        self.ssl_context = ssl_context or ssl.create_default_context()

    @contextmanager
    def _session(self) -> Iterator[tuple[imaplib.IMAP4, int]]:
        """Connect, log in and select the mailbox read-only."""
        try:
            conn = imaplib.IMAP4_SSL(
                self.host,
                self.port,
                ssl_context=self.ssl_context,
                timeout=self.timeout
            )
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailError(f"Failed to connect to IMAP server {self.host}:{self.port}: {e}") from e

        try:
            try:
                conn.login(self.username, self.password)
                typ, data = conn.select(self.mailbox, readonly=True)
            except (imaplib.IMAP4.error, OSError) as e:
                raise MailError(f"Failed to open mailbox {self.mailbox}: {e}") from e

            if typ != "OK":
                raise MailError(f"Failed to select mailbox {self.mailbox}: {data}")

            yield conn, int(data[0])
        finally:
            try:
                conn.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                logger.debug(f"IMAP logout failed: {e}")

    def count(self) -> int:
        with self._session() as (_, count):
            logger.debug(f"Mailbox {self.mailbox} holds {count} message(s)")
            return count

    def _fetch(self, conn: imaplib.IMAP4, position: int) -> InboundEmail:
        try:
            typ, data = conn.fetch(str(position), "(BODY.PEEK[])")
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailError(f"Failed to fetch message {position}: {e}") from e

        raw = next((item[1] for item in data if isinstance(item, tuple)), None)
        if typ != "OK" or raw is None:
            raise MailError(f"Failed to fetch message {position}: {typ} {data}")

        return parse_email(raw, position)

    def fetch_since(self, last_seen_count: int) -> MailboxPoll:
        """
        Fetch the new messages in one session.

        A message that cannot be fetched is logged and skipped so the
        cursor still moves past it. Only session failures are raised.
        """
        messages = []
        with self._session() as (conn, count):
            for position in range(last_seen_count + 1, count + 1):
                try:
                    messages.append(self._fetch(conn, position))
                except MailError as e:
                    logger.error(f"Skipping message {position}: {e}")
        return MailboxPoll(count=count, messages=messages)


class SmtpMailSender(MailSender):
    """SMTP submission; one connection per message."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        security: str = "starttls",
        timeout: float = 30.0,
        ssl_context: Optional[ssl.SSLContext] = None
    ) -> None:
        """
        Initialize SMTP sender.

        Args:
            security: "starttls", "ssl" (implicit TLS) or "none"
        """
        if security not in ("starttls", "ssl", "none"):
            raise ValueError(f"Unknown SMTP security mode: {security}")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.security = security
        self.timeout = timeout
        self.ssl_context = ssl_context or ssl.create_default_context()

    def _connect(self) -> smtplib.SMTP:
        if self.security == "ssl":
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=self.ssl_context)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def send(self, message: EmailMessage) -> None:
        try:
            with self._connect() as smtp:
                if self.security == "starttls":
                    smtp.starttls(context=self.ssl_context)
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailError(f"Failed to send mail via {self.host}:{self.port}: {e}") from e

        logger.debug(f"Submitted mail {message['Subject']!r} via {self.host}")
