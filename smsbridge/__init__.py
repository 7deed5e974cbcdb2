"""
smsbridge - Bridge SMS on a GSM modem with email.
"""

from .version import __version__
from .bridge import SmsMailBridge
from .config import Config, load_config
from .core import MockTransport, SerialTransport

from .types import (
    InboundSms,
    OutboundSms,
    InboundEmail,
    MailboxPoll,
    MailboxCursor,
    SendState,
)

from .exceptions import (
    BridgeError,
    ATTimeoutError,
    ATParseError,
    TransportError,
    DeviceDisconnectedError,
    HandshakeError,
    SMSError,
    MailError,
    TemplateError,
    ConfigError,
)

__all__ = [
    "__version__",
    "SmsMailBridge",
    "Config",
    "load_config",
    "MockTransport",
    "SerialTransport",
    "InboundSms",
    "OutboundSms",
    "InboundEmail",
    "MailboxPoll",
    "MailboxCursor",
    "SendState",
    "BridgeError",
    "ATTimeoutError",
    "ATParseError",
    "TransportError",
    "DeviceDisconnectedError",
    "HandshakeError",
    "SMSError",
    "MailError",
    "TemplateError",
    "ConfigError",
]
