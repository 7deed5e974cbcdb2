"""
AT command protocol handler.

Executes one command/response exchange at a time over the demultiplexer.
"""

import logging
from typing import Optional

from .demux import LineDemultiplexer
from ..exceptions import ATParseError, HandshakeError

logger = logging.getLogger(__name__)


class ATProtocol:
    """
    AT command protocol handler.

    Every exchange is: write the command and CR, skip the echoed line,
    return the next line. Unsolicited notifications never reach this layer
    because LineDemultiplexer strips them first.
    """

    def __init__(self, demux: LineDemultiplexer) -> None:
        """
        Initialize AT protocol handler.

        Args:
            demux: Demultiplexer wrapping the modem transport
        """
        self.demux = demux
        self.transport = demux.transport
        logger.info("Initialized AT protocol handler")

    def write_raw(self, text: str) -> None:
        """
        Write text without a line terminator.

        Used for SMS bodies and the Ctrl+Z that ends text entry.

        Raises:
            ATParseError: If nothing could be written
        """
        data = text.encode("utf-8")
        if data and not self.transport.write(data):
            raise ATParseError("Failed to write to modem", command=text)

    def execute(self, command: str, timeout: Optional[float] = None) -> str:
        """
        Send an AT command and return its reply line.

        Args:
            command: AT command without terminator (e.g., "AT+CMGF=1")
            timeout: Seconds to wait for each line (demux default if None)

        Returns:
            Reply line with carriage returns trimmed (e.g., "OK")

        Raises:
            ATTimeoutError: If the echo or reply does not arrive in time
        """
        logger.debug(f"Sending AT command: {command}")
        self.write_raw(command + "\r")

        # The modem echoes the command back first
        self.demux.read_line(timeout)
        reply = self.demux.read_line(timeout).strip("\r")

        logger.debug(f"Reply to {command}: {reply!r}")
        return reply

    def handshake(self) -> None:
        """
        Verify the link with an empty AT probe.

        Raises:
            HandshakeError: If the reply is not exactly "OK"
        """
        reply = self.execute("AT")
        if reply != "OK":
            logger.error(f"Modem handshake failed, got {reply!r}")
            raise HandshakeError(
                "Failed to verify modem interface",
                command="AT",
                response=[reply]
            )
        logger.info("Modem handshake OK")
