"""
Exceptions raised by smsbridge.

Modem errors keep the AT command and the raw reply that led to them so a
log line is enough to see what the modem said.
"""

from typing import Optional


class BridgeError(Exception):
    """
    Root of every smsbridge exception.

    The main loop catches BridgeError per message, logs it and carries on.
    """

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        response: Optional[list[str]] = None
    ) -> None:
        """
        Args:
            message: What went wrong
            command: AT command being executed, if any
            response: Modem output received for it, if any
        """
        self.command = command
        self.response = response
        super().__init__(message)

    def __str__(self) -> str:
        text = [super().__str__()]

        if self.command:
            text.append(f"Command: {self.command}")

        if self.response:
            text.append(f"Response: {self.response}")

        return " | ".join(text)


class ATTimeoutError(BridgeError):
    """
    A bounded wait on the modem expired.

    Either the modem stopped answering or an expected confirmation never
    came, so the exchange is out of step.
    """
    pass


class ATParseError(BridgeError):
    """
    Modem output did not have the expected shape.

    Typical causes are a header with missing fields, a bad timestamp or a
    reply without its OK trailer.
    """
    pass


class TransportError(BridgeError):
    """The serial link failed (open, read or write)."""
    pass


class DeviceDisconnectedError(TransportError):
    """
    The modem vanished from the bus.

    Fatal: the main loop stops and closes the transport.
    """
    pass


class HandshakeError(BridgeError):
    """
    The modem did not answer the startup AT probe with OK.

    Usually the configured port is not the modem's AT interface.
    """
    pass


class SMSError(BridgeError):
    """
    The modem refused an SMS operation.

    Raised for +CMS ERROR, +CME ERROR and ERROR replies, and for reads of
    an empty storage slot.
    """
    pass


class MailError(BridgeError):
    """
    Mailbox poll or mail submission failed.

    Wraps IMAP, SMTP and socket errors so the loop can log and continue.
    """
    pass


class TemplateError(BridgeError):
    """An email template could not be parsed or rendered."""
    pass


class ConfigError(BridgeError):
    """The configuration file is missing or invalid."""
    pass
