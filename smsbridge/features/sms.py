"""
SMS manager.

Handles text-mode SMS operations: send, read and delete by storage index.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, Optional

from ..core import ATProtocol
from ..exceptions import ATParseError, ATTimeoutError, BridgeError, SMSError
from ..parsers.sms import (
    CMGR_TRAILER,
    CMGRHeaderParser,
    parse_cmgs,
    strip_cmgr_trailer,
)
from ..types import InboundSms, OutboundSms, SendState

logger = logging.getLogger(__name__)

CTRL_Z = "\x1a"
ESC = "\x1b"
PROMPT = "> "

QUEUE_CONFIRM_PREFIX = "+CMGS: "
FINAL_CONFIRM_PREFIX = "OK"


def is_error_line(line: str) -> bool:
    """Check if a line is a device error result code."""
    line = line.strip("\r")
    return line.startswith("+CMS ERROR") or line.startswith("+CME ERROR") or line == "ERROR"


class SendStateMachine:
    """
    One outbound SMS transmission.

    MODE_SET -> ADDRESSED -> BODY_WRITTEN -> TERMINATED ->
    AWAITING_QUEUE_CONFIRM -> AWAITING_FINAL_CONFIRM -> DRAINED

    A device error line or an expired wait in either awaiting state moves
    the machine to FAILED.
    """

    def __init__(
        self,
        protocol: ATProtocol,
        sms: OutboundSms,
        timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize send state machine.

        Args:
            protocol: AT protocol handler
            sms: Message to send
            timeout: Seconds to wait for each confirmation
            clock: Monotonic time source, injectable for tests
        """
        self.protocol = protocol
        self.demux = protocol.demux
        self.sms = sms
        self.timeout = timeout
        self._clock = clock
        self.state = SendState.IDLE
        self.reference: Optional[int] = None
        self.discarded: list[str] = []
        self._echo: Deque[str] = deque()

    def _transition(self, state: SendState) -> None:
        logger.debug(f"Send to {self.sms.destination_number}: {self.state.name} -> {state.name}")
        self.state = state

    def _fail(self, error: BridgeError) -> BridgeError:
        self._transition(SendState.FAILED)
        logger.error(f"SMS to {self.sms.destination_number} failed: {error}")
        return error

    def _is_body_echo(self, line: str) -> bool:
        """Consume line if it is the next line of the modem echoing the SMS text."""
        if not self._echo:
            return False

        text = line[len(PROMPT):] if line.startswith(PROMPT) else line
        if text.replace(CTRL_Z, "") != self._echo[0]:
            return False

        self._echo.popleft()
        return True

    def _await_prefix(self, prefix: str) -> str:
        """Read lines until one starts with prefix, discarding the rest."""
        end_time = self._clock() + self.timeout

        while True:
            remaining = max(0.0, end_time - self._clock())
            try:
                line = self.demux.read_line(timeout=remaining).strip("\r")
            except ATTimeoutError as e:
                raise self._fail(ATTimeoutError(
                    f"No {prefix.strip()!r} confirmation within {self.timeout}s",
                    command="AT+CMGS",
                    response=self.discarded
                )) from e

            if self._is_body_echo(line):
                self.discarded.append(line)
                continue

            if line.startswith(prefix):
                return line

            if is_error_line(line):
                raise self._fail(SMSError(
                    f"Modem rejected SMS: {line}",
                    command="AT+CMGS",
                    response=self.discarded + [line]
                ))

            self.discarded.append(line)

    def run(self) -> int:
        """
        Drive the machine to a terminal state.

        Returns:
            Message reference reported by the modem

        Raises:
            SMSError: If the modem reports an error
            ATTimeoutError: If a confirmation does not arrive in time
        """
        number = self.sms.destination_number

        reply = self.protocol.execute("AT+CMGF=1")
        if reply != "OK":
            raise self._fail(SMSError(
                "Failed to select SMS text mode",
                command="AT+CMGF=1",
                response=[reply]
            ))
        self._transition(SendState.MODE_SET)

        self.protocol.write_raw(f'AT+CMGS="{number}"\r')
        self._transition(SendState.ADDRESSED)

        # Ctrl+Z ends text entry and ESC cancels it, neither may appear in the body
        body = self.sms.body.replace(CTRL_Z, "").replace(ESC, "")
        # Lines the modem echoes back ahead of its confirmation
        self._echo = deque(line for line in body.splitlines() if line)
        self.protocol.write_raw(body)
        self._transition(SendState.BODY_WRITTEN)

        self.protocol.write_raw(CTRL_Z)
        self._transition(SendState.TERMINATED)

        self._transition(SendState.AWAITING_QUEUE_CONFIRM)
        confirm = self._await_prefix(QUEUE_CONFIRM_PREFIX)
        self._echo.clear()
        try:
            self.reference = parse_cmgs(confirm)
        except ATParseError:
            logger.warning(f"Unparseable send confirmation {confirm!r}")

        self._transition(SendState.AWAITING_FINAL_CONFIRM)
        self._await_prefix(FINAL_CONFIRM_PREFIX)

        self.demux.read_all()
        self._transition(SendState.DRAINED)

        return self.reference if self.reference is not None else -1


class SMSManager:
    """
    Manages SMS messaging operations.

    Features:
    - Send SMS in text mode with bounded confirmation waits
    - Read SMS by index into an InboundSms
    - Delete messages
    """

    def __init__(
        self,
        protocol: ATProtocol,
        send_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        """
        Initialize SMS manager.

        Args:
            protocol: ATProtocol instance for AT command execution
            send_timeout: Seconds to wait for each send confirmation
            clock: Monotonic time source, injectable for tests
        """
        self.protocol = protocol
        self.demux = protocol.demux
        self.send_timeout = send_timeout
        self._clock = clock
        self._header_parser = CMGRHeaderParser()

        logger.debug("Initialized SMSManager")

    def send_sms(self, sms: OutboundSms) -> int:
        """
        Send an SMS message using text mode.

        Args:
            sms: Destination number and body

        Returns:
            Message reference number (-1 if the modem did not report one)

        Raises:
            SMSError: If the modem rejects the message
            ATTimeoutError: If a confirmation does not arrive in time

        Example:

        .. code-block:: python

            ref = bridge.sms.send_sms(OutboundSms("+1234567890", "Hello!"))
        """
        logger.info(f"Sending SMS to {sms.destination_number}")

        machine = SendStateMachine(
            self.protocol,
            sms,
            timeout=self.send_timeout,
            clock=self._clock
        )
        ref = machine.run()

        logger.info(f"Successfully sent message to {sms.destination_number}, reference: {ref}")
        return ref

    def read_sms(self, index: int) -> InboundSms:
        """
        Read SMS message by index.

        Args:
            index: Message index in storage

        Returns:
            InboundSms with received_time converted to local time

        Raises:
            SMSError: If the modem reports an error or the slot is empty
            ATParseError: If the header cannot be parsed
            ATTimeoutError: If the reply does not arrive in time
        """
        logger.info(f"Reading SMS at index {index}")

        cmd = f"AT+CMGR={index}"
        header_line = self.protocol.execute(cmd)

        if is_error_line(header_line):
            self.demux.read_all()
            raise SMSError(f"Modem could not read index {index}", command=cmd, response=[header_line])
        if header_line == "OK":
            raise SMSError(f"No message at index {index}", command=cmd, response=[header_line])

        try:
            header = self._header_parser.parse([header_line])
            body = strip_cmgr_trailer(self.demux.read_all_until(CMGR_TRAILER))
        except ATParseError as e:
            # Drop the rest of the reply so the next command starts clean
            self.demux.read_all()
            e.command = e.command or cmd
            raise

        message = InboundSms(
            index=index,
            status=header.status,
            from_number=header.from_number,
            received_time=header.received_time.astimezone(),
            body=body,
        )

        logger.info(f"Read SMS from {message.from_number}")
        return message

    def delete_message(self, index: int) -> None:
        """
        Delete SMS message by index.

        Raises:
            SMSError: If deletion fails
        """
        logger.info(f"Deleting message at index {index}")

        cmd = f"AT+CMGD={index}"
        reply = self.protocol.execute(cmd)
        if reply != "OK":
            raise SMSError(f"Failed to delete message {index}", command=cmd, response=[reply])

        logger.info(f"Deleted message {index}")

    def receive_sms(self, index: int) -> InboundSms:
        """
        Read the message at index, then delete it from storage.

        Returns:
            The message that was read
        """
        message = self.read_sms(index)
        self.delete_message(index)
        return message
