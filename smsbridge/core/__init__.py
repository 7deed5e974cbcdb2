"""
Core modem infrastructure.

Provides low-level building blocks for modem communication:
- Transport: Serial communication abstraction
- LineDemultiplexer: Line reads with +CMTI notification extraction
- ATProtocol: AT command execution
"""

from .transport import Transport, SerialTransport, MockTransport
from .demux import LineDemultiplexer, PendingQueue, NOTIFICATION_PATTERN
from .protocol import ATProtocol

__all__ = [
    "Transport",
    "SerialTransport",
    "MockTransport",
    "LineDemultiplexer",
    "PendingQueue",
    "NOTIFICATION_PATTERN",
    "ATProtocol",
]
