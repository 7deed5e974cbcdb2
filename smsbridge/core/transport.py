"""
Byte transports between the bridge and the modem.

LineDemultiplexer only sees the Transport interface, so the serial port can
be swapped for MockTransport in tests.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Optional, Union

import serial
from serial import SerialException

from ..exceptions import TransportError, DeviceDisconnectedError

logger = logging.getLogger(__name__)

# A write ending in one of these completes a command or an SMS text entry
COMMAND_TERMINATORS = (b"\r", b"\x1a")

# pyserial/OS messages seen when a USB modem drops off the bus
_DISCONNECT_PHRASES = (
    "device disconnected",
    "device reports readiness to read but returned no data",
    "no such device",
    "device not configured",
    "input/output error",
)


class Transport(ABC):
    """Raw byte channel to the modem."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """
        Send bytes to the modem.

        Returns:
            Count of bytes accepted

        Raises:
            TransportError: If the write fails
        """
        pass

    @abstractmethod
    def bytes_waiting(self) -> int:
        """Count of received bytes that can be read without blocking."""
        pass

    @abstractmethod
    def read_available(self) -> bytes:
        """
        Return every byte already received, without blocking.

        Returns:
            Received bytes, b"" if there are none
        """
        pass

    @abstractmethod
    def read_until(self, terminator: bytes = b"\n", timeout: Optional[float] = None) -> bytes:
        """
        Block until terminator arrives or the timeout expires.

        Args:
            terminator: Bytes ending the read
            timeout: Seconds to block (transport default if None)

        Returns:
            Data through the terminator, or whatever arrived before the
            timeout (possibly b"")

        Raises:
            TransportError: If the read fails
        """
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """Whether the channel can still be used."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the channel."""
        pass


def _translate_serial_error(action: str, e: Exception) -> TransportError:
    """Map a pyserial exception to the bridge's transport errors."""
    message = str(e).lower()

    if any(phrase in message for phrase in _DISCONNECT_PHRASES):
        logger.error(f"Modem went away during serial {action}: {e}")
        return DeviceDisconnectedError(f"Modem disconnected: {e}", response=[str(e)])

    logger.error(f"Serial {action} failed: {e}")
    return TransportError(f"Serial {action} failed: {e}")


class SerialTransport(Transport):
    """Modem attached to a local serial port (pyserial)."""

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        timeout: float = 1.0
    ) -> None:
        """
        Open the serial port.

        Args:
            port: Device path such as /dev/ttyUSB2 or COM3
            baudrate: Line speed
            timeout: Read timeout used when read_until gets none

        Raises:
            TransportError: If the port cannot be opened
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout

        try:
            self._serial = serial.Serial(port=port, baudrate=baudrate, timeout=timeout)
        except SerialException as e:
            logger.error(f"Cannot open {port}: {e}")
            raise TransportError(f"Cannot open serial port {port}: {e}") from e

        logger.info(f"Serial port {port} open ({baudrate} baud)")

    def write(self, data: bytes) -> int:
        try:
            count = self._serial.write(data)
        except SerialException as e:
            raise _translate_serial_error("write", e) from e

        logger.debug(f"TX {count}: {data!r}")
        return count

    def bytes_waiting(self) -> int:
        try:
            return self._serial.in_waiting
        except (SerialException, OSError) as e:
            raise _translate_serial_error("status", e) from e

    def read_available(self) -> bytes:
        waiting = self.bytes_waiting()
        if not waiting:
            return b""

        try:
            data = self._serial.read(waiting)
        except SerialException as e:
            raise _translate_serial_error("read", e) from e

        logger.debug(f"RX {len(data)}: {data!r}")
        return data

    def read_until(self, terminator: bytes = b"\n", timeout: Optional[float] = None) -> bytes:
        saved = self._serial.timeout
        if timeout is not None:
            self._serial.timeout = timeout

        try:
            data = self._serial.read_until(terminator)
        except SerialException as e:
            raise _translate_serial_error("read", e) from e
        finally:
            self._serial.timeout = saved

        if data:
            logger.debug(f"RX {len(data)}: {data!r}")
        return data

    def is_open(self) -> bool:
        return bool(self._serial and self._serial.is_open)

    def close(self) -> None:
        if self._serial and self._serial.is_open:
            self._serial.close()
            logger.info(f"Serial port {self.port} closed")


class MockTransport(Transport):
    """
    In-memory modem for tests.

    Responses queued with add_response() are released one at a time, each
    time a command or SMS entry is terminated (a write ending in CR or
    Ctrl+Z). With echo enabled, terminated commands are echoed back the way
    a modem in ATE1 mode does.
    """

    def __init__(self, echo: bool = True) -> None:
        """
        Args:
            echo: Echo terminated command writes back into the input
        """
        self.echo = echo
        self.written: list[bytes] = []
        self._open = True
        self._input = bytearray()
        self._response_queue: Deque[bytes] = deque()
        logger.info("MockTransport ready")

    @staticmethod
    def _encode(data: Union[str, bytes]) -> bytes:
        return data.encode("utf-8") if isinstance(data, str) else data

    def add_response(self, data: Union[str, bytes]) -> None:
        """
        Queue what the modem answers to the next terminated write.

        Args:
            data: Exact output, e.g. "\\r\\nOK\\r\\n"
        """
        self._response_queue.append(self._encode(data))
        logger.debug(f"Queued mock response: {data!r}")

    def inject(self, data: Union[str, bytes]) -> None:
        """Make data readable right away, e.g. an unsolicited +CMTI."""
        self._input.extend(self._encode(data))
        logger.debug(f"Injected mock input: {data!r}")

    def _check_open(self) -> None:
        if not self._open:
            raise DeviceDisconnectedError(
                "MockTransport closed (simulated disconnection)",
                response=["MockTransport closed"]
            )

    def write(self, data: bytes) -> int:
        self._check_open()

        self.written.append(data)
        logger.debug(f"Mock TX: {data!r}")

        if data.endswith(COMMAND_TERMINATORS):
            if self.echo and data.endswith(b"\r"):
                self._input.extend(data)
            if self._response_queue:
                self._input.extend(self._response_queue.popleft())

        return len(data)

    def bytes_waiting(self) -> int:
        self._check_open()
        return len(self._input)

    def read_available(self) -> bytes:
        self._check_open()
        data = bytes(self._input)
        self._input.clear()
        return data

    def read_until(self, terminator: bytes = b"\n", timeout: Optional[float] = None) -> bytes:
        """
        Simulated blocking read.

        Without the terminator in the input, returns what is there (maybe
        nothing) as a real port would once its timeout expired.
        """
        self._check_open()

        pos = self._input.find(terminator)
        end = len(self._input) if pos < 0 else pos + len(terminator)
        data = bytes(self._input[:end])
        del self._input[:end]

        if data:
            logger.debug(f"Mock RX: {data!r}")
        return data

    def is_open(self) -> bool:
        return self._open

    def close(self) -> None:
        self._open = False
        logger.info("MockTransport closed")

    def written_text(self) -> str:
        """Everything written so far, decoded."""
        return b"".join(self.written).decode("utf-8", errors="replace")

    def clear_responses(self) -> None:
        """Drop every queued response."""
        self._response_queue.clear()
