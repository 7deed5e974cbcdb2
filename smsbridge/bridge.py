"""
Main SmsMailBridge class.

Single-threaded loop that ties the modem to the mailbox.
"""

import logging
import time
from typing import Callable

from .config import Config
from .core import ATProtocol, LineDemultiplexer, SerialTransport, Transport
from .exceptions import BridgeError, DeviceDisconnectedError
from .features import SMSManager
from .mail import ImapMailbox, MailBridge, SmtpMailSender
from .types import MailboxCursor

logger = logging.getLogger(__name__)


class SmsMailBridge:
    """
    Bridges SMS on a GSM modem with email.

    While idle the loop sleeps in short steps and polls the mailbox at most
    once per mailbox_check_interval, sending an SMS for every valid request.
    When the modem has sent anything, or notifications are pending, it reads
    each announced message, emails it and deletes it.

    Example usage:

    .. code-block:: python

        config = load_config("bridge.yaml")
        bridge = SmsMailBridge.from_config(config)
        bridge.run()
    """

    def __init__(
        self,
        transport: Transport,
        mail: MailBridge,
        command_timeout: float = 10.0,
        send_timeout: float = 60.0,
        idle_interval: float = 0.1,
        mailbox_check_interval: float = 1.0,
        max_receive_attempts: int = 3,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ) -> None:
        """
        Initialize bridge.

        Args:
            transport: Modem transport
            mail: Mail side of the bridge
            command_timeout: Bound on one command exchange in seconds
            send_timeout: Bound on each SMS send confirmation in seconds
            idle_interval: Sleep between idle checks in seconds
            mailbox_check_interval: Minimum seconds between mailbox polls
            max_receive_attempts: Tries per announced SMS before giving up
            clock: Monotonic time source, injectable for tests
            sleep: Sleep function, injectable for tests
        """
        self.transport = transport
        self.mail = mail
        self.idle_interval = idle_interval
        self.mailbox_check_interval = mailbox_check_interval
        self.max_receive_attempts = max_receive_attempts
        self._clock = clock
        self._sleep = sleep

        self.demux = LineDemultiplexer(transport, default_timeout=command_timeout, clock=clock)
        self.protocol = ATProtocol(self.demux)
        self.sms = SMSManager(self.protocol, send_timeout=send_timeout, clock=clock)
        self.cursor = MailboxCursor()
        self._attempts: dict[int, int] = {}

        logger.info("Initialized SmsMailBridge")

    @classmethod
    def from_config(cls, config: Config) -> "SmsMailBridge":
        """
        Build a bridge with serial, IMAP and SMTP transports from config.

        Raises:
            TransportError: If the serial port cannot be opened
        """
        transport = SerialTransport(
            port=config.modem.port,
            baudrate=config.modem.baudrate,
            timeout=config.modem.read_timeout
        )

        mail_config = config.mail
        mailbox = ImapMailbox(
            host=mail_config.imap.host,
            port=mail_config.imap.port,
            username=mail_config.username,
            password=mail_config.password,
            mailbox=mail_config.imap.mailbox,
            timeout=mail_config.timeout
        )
        sender = SmtpMailSender(
            host=mail_config.smtp.host,
            port=mail_config.smtp.port,
            username=mail_config.username,
            password=mail_config.password,
            security=mail_config.smtp.security,
            timeout=mail_config.timeout
        )
        mail = MailBridge(
            mailbox=mailbox,
            sender=sender,
            mail_from=mail_config.mail_from,
            recipients=mail_config.recipients,
            allowed_senders=mail_config.allowed_senders,
            subject_template=config.text.received_subject,
            body_template=config.text.received_body
        )

        return cls(
            transport=transport,
            mail=mail,
            command_timeout=config.modem.command_timeout,
            send_timeout=config.modem.send_timeout,
            idle_interval=config.bridge.idle_interval,
            mailbox_check_interval=config.bridge.mailbox_check_interval,
            max_receive_attempts=config.bridge.max_receive_attempts
        )

    @property
    def pending(self):
        """Queue of announced SMS indices."""
        return self.demux.pending

    def start(self) -> None:
        """
        Verify the modem link and record the mailbox size.

        Raises:
            HandshakeError: If the modem does not answer AT with OK
        """
        self.protocol.handshake()

        try:
            self.mail.initialize_cursor(self.cursor)
        except BridgeError as e:
            logger.error(f"Failed to count mailbox at startup, will retry on next poll: {e}")
        self.cursor.last_check_time = self._clock()

    def poll_mailbox(self) -> int:
        """
        Poll the mailbox once and send the resulting SMS.

        Mail and send failures are logged, never raised.

        Returns:
            Number of SMS sent successfully
        """
        self.cursor.last_check_time = self._clock()
        try:
            outbound = self.mail.poll(self.cursor)
        except BridgeError as e:
            logger.error(f"Mailbox poll failed: {e}")
            return 0

        sent = 0
        for sms in outbound:
            try:
                self.sms.send_sms(sms)
                sent += 1
            except DeviceDisconnectedError:
                raise
            except BridgeError as e:
                logger.error(f"Failed to send SMS to {sms.destination_number}: {e}")
        return sent

    def wait_for_work(self) -> None:
        """Sleep until the modem has input or notifications are pending."""
        while self.transport.is_open() and not self.demux.has_input() and not self.pending:
            self._sleep(self.idle_interval)
            if self.cursor.is_due(self._clock(), self.mailbox_check_interval):
                self.poll_mailbox()

    def process_index(self, index: int) -> bool:
        """
        Read, delete and forward one announced SMS.

        Returns:
            True if the message was emailed
        """
        try:
            message = self.sms.receive_sms(index)
        except DeviceDisconnectedError:
            raise
        except BridgeError as e:
            attempts = self._attempts.get(index, 0) + 1
            if attempts < self.max_receive_attempts:
                self._attempts[index] = attempts
                logger.warning(f"Failed to read SMS at index {index} (attempt {attempts}), will retry: {e}")
                self.pending.push(index)
            else:
                self._attempts.pop(index, None)
                logger.error(f"Giving up on SMS at index {index} after {attempts} attempts: {e}")
            return False

        self._attempts.pop(index, None)

        try:
            self.mail.forward_sms(message)
        except BridgeError as e:
            # Already deleted from the modem, keep the content in the log
            logger.error(
                f"Failed to email SMS from {message.from_number} received "
                f"{message.received_time.isoformat()} (index {index}): {e}; body: {message.body!r}"
            )
            return False

        logger.info("Successfully received message.")
        return True

    def process_pending(self) -> int:
        """
        Drain stray input and handle every index queued right now.

        Indices announced while this batch runs stay queued for the next pass.

        Returns:
            Number of messages forwarded
        """
        stray = self.demux.read_all()
        if stray.strip():
            logger.debug(f"Discarding unsolicited output: {stray!r}")

        batch = self.pending.take_all()
        forwarded = 0
        for position, index in enumerate(batch):
            try:
                if self.process_index(index):
                    forwarded += 1
            except Exception:
                # Unhandled indices go back so a restarted loop still sees them
                for remaining in batch[position:]:
                    self.pending.push(remaining)
                raise
        return forwarded

    def run_once(self) -> int:
        """Run one outer iteration: wait for work, then process it."""
        self.wait_for_work()
        if not self.transport.is_open():
            return 0
        return self.process_pending()

    def run(self) -> None:
        """
        Run until the modem transport closes.

        Raises:
            HandshakeError: If the startup probe fails
        """
        try:
            self.start()
            logger.info("Bridge running")

            while self.transport.is_open():
                self.run_once()
        except DeviceDisconnectedError as e:
            logger.error(f"Modem disconnected, stopping: {e}")
        finally:
            self.close()

    def close(self) -> None:
        """Close the modem transport."""
        self.transport.close()
        logger.info("Bridge closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, *exc):
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        """String representation of bridge."""
        status = "open" if self.transport.is_open() else "closed"
        return f"<SmsMailBridge transport={status} pending={len(self.pending)}>"
