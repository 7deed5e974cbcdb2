"""
Line demultiplexer for the modem byte stream.

The modem can announce a new SMS (+CMTI) at any moment, including in the
middle of a command response. Every read goes through LineDemultiplexer,
which strips those notifications out of the raw buffer and queues their
storage indices before any line is handed to a caller.
"""

import codecs
import logging
import re
import time
from collections import deque
from typing import Callable, Deque, Iterable, Optional

from .transport import Transport
from ..exceptions import ATTimeoutError
from ..parsers.sms import parse_notification_payload

logger = logging.getLogger(__name__)

NOTIFICATION_MARKER = "\r\n+CMTI: "

# <CRLF>+CMTI: <payload><CRLF>
NOTIFICATION_PATTERN = re.compile(r"\r\n\+CMTI: (?P<payload>.*?)\r\n", re.DOTALL)


class PendingQueue:
    """
    FIFO of SMS storage indices awaiting retrieval.

    An index that is already queued is not queued a second time.
    """

    def __init__(self, indices: Iterable[int] = ()) -> None:
        self._items: Deque[int] = deque()
        for index in indices:
            self.push(index)

    def push(self, index: int) -> bool:
        """
        Queue an index.

        Returns:
            True if queued, False if it was already pending
        """
        if index in self._items:
            logger.debug(f"Index {index} already pending")
            return False
        self._items.append(index)
        return True

    def take_all(self) -> list[int]:
        """Remove and return every queued index, oldest first."""
        items = list(self._items)
        self._items.clear()
        return items

    def snapshot(self) -> list[int]:
        """Queued indices without removing them."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __contains__(self, index: object) -> bool:
        return index in self._items


class LineDemultiplexer:
    """
    Line-oriented and bulk reads over a transport with notification extraction.

    The buffer is only mutated by append (followed by extraction) and by
    consume (read_line/read_all), so a caller never observes a complete
    +CMTI sequence in returned text.
    """

    def __init__(
        self,
        transport: Transport,
        default_timeout: float = 10.0,
        pending: Optional[PendingQueue] = None,
        clock: Callable[[], float] = time.monotonic,
        split_grace: float = 0.2
    ) -> None:
        """
        Initialize demultiplexer.

        Args:
            transport: Transport to read from
            default_timeout: Bound on blocking reads in seconds
            pending: Queue receiving notification indices (created if None)
            clock: Monotonic time source, injectable for tests
            split_grace: Seconds to wait for the rest of a cut +CMTI marker
        """
        self.transport = transport
        self.default_timeout = default_timeout
        self.pending = pending if pending is not None else PendingQueue()
        self.split_grace = split_grace
        self._clock = clock
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def buffer(self) -> str:
        """Unconsumed input (read-only view)."""
        return self._buffer

    def append_and_extract_notifications(self, data: bytes = b"") -> list[int]:
        """
        Append raw input and pull every complete notification out of the buffer.

        Args:
            data: Newly read bytes (may be empty to just rescan)

        Returns:
            Indices extracted by this call, in arrival order
        """
        if data:
            self._buffer += self._decoder.decode(data)

        extracted = []
        while True:
            match = NOTIFICATION_PATTERN.search(self._buffer)
            if not match:
                break

            # Splice the span out before parsing so a bad payload cannot loop
            self._buffer = self._buffer[:match.start()] + self._buffer[match.end():]

            payload = match.group("payload")
            try:
                index = parse_notification_payload(payload)
            except ValueError as e:
                logger.warning(f"Dropping malformed +CMTI notification {payload!r}: {e}")
                continue

            logger.info(f"New SMS notification for index {index}")
            self.pending.push(index)
            extracted.append(index)

        return extracted

    def _drain_available(self) -> None:
        data = self.transport.read_available()
        self.append_and_extract_notifications(data)

    def _partial_notification_start(self) -> Optional[int]:
        """
        Find where an incomplete +CMTI sequence may begin in the buffer.

        That is either a full marker still waiting for its terminator, or a
        buffer tail that is a proper prefix of the marker. A bare CR or CRLF
        tail only counts when it does not end a line of other text.

        Returns:
            Buffer offset, or None if the buffer cannot hold one
        """
        # Complete notifications are already spliced out
        marker_pos = self._buffer.find(NOTIFICATION_MARKER)
        if marker_pos >= 0:
            return marker_pos

        for size in range(len(NOTIFICATION_MARKER) - 1, 0, -1):
            if not self._buffer.endswith(NOTIFICATION_MARKER[:size]):
                continue
            start = len(self._buffer) - size
            if size > 2 or start == 0 or self._buffer[start - 1] == "\n":
                return start
            return None
        return None

    def _blocks_first_line(self, start: Optional[int]) -> bool:
        return start is not None and start <= self._buffer.find("\n")

    def _needs_more_for_line(self) -> bool:
        if "\n" not in self._buffer:
            return True
        marker_pos = self._buffer.find(NOTIFICATION_MARKER)
        return marker_pos >= 0 and self._blocks_first_line(marker_pos)

    def _grace_read(self) -> None:
        """One short blocking read so a marker split mid-way can complete."""
        chunk = self.transport.read_until(b"\n", timeout=self.split_grace)
        self.append_and_extract_notifications(chunk)
        self._drain_available()

    def _fill(self, needs_more: Callable[[], bool], timeout: Optional[float], what: str) -> None:
        """Block until needs_more() is False or the timeout expires."""
        timeout_val = timeout if timeout is not None else self.default_timeout
        end_time = self._clock() + timeout_val

        self._drain_available()
        while needs_more():
            remaining = end_time - self._clock()
            if remaining <= 0:
                logger.error(f"Timed out after {timeout_val}s waiting for {what}")
                raise ATTimeoutError(
                    f"Timed out after {timeout_val}s waiting for {what}",
                    response=[self._buffer] if self._buffer else None
                )

            chunk = self.transport.read_until(b"\n", timeout=remaining)
            self.append_and_extract_notifications(chunk)
            self._drain_available()

    def read_line(self, timeout: Optional[float] = None) -> str:
        """
        Remove and return the first buffered line.

        Args:
            timeout: Seconds to wait for a terminated line (default_timeout if None)

        Returns:
            The line without its trailing newline (a trailing CR is kept)

        Raises:
            ATTimeoutError: If no complete line arrives in time
        """
        self._fill(self._needs_more_for_line, timeout, "a response line")

        if self._blocks_first_line(self._partial_notification_start()):
            # A line end may be the start of a notification whose marker was cut
            self._grace_read()
            self._fill(self._needs_more_for_line, timeout, "a response line")

        line, _, self._buffer = self._buffer.partition("\n")
        logger.debug(f"Line: {line!r}")
        return line

    def read_all(self) -> str:
        """
        Drain available input and return the buffer as one chunk.

        A trailing fragment that may be the start of a notification stays
        buffered until the rest of it arrives.

        Returns:
            Buffered text, possibly a partial line or ""
        """
        self._drain_available()

        start = self._partial_notification_start()
        if start is None:
            start = len(self._buffer)
        result, self._buffer = self._buffer[:start], self._buffer[start:]
        if result:
            logger.debug(f"Chunk: {result!r}")
        return result

    def read_all_until(self, suffix: str, timeout: Optional[float] = None) -> str:
        """
        Like read_all(), but first wait until the buffer ends with suffix.

        Args:
            suffix: Text the complete response ends with (e.g., "\\r\\nOK\\r\\n")
            timeout: Seconds to wait (default_timeout if None)

        Raises:
            ATTimeoutError: If the suffix does not arrive in time
        """
        self._fill(lambda: not self._buffer.endswith(suffix), timeout, repr(suffix))
        return self.read_all()

    def has_input(self) -> bool:
        """
        Check if unread data exists in the buffer or the transport.

        A held notification fragment alone does not count as input.
        """
        start = self._partial_notification_start()
        unread = self._buffer if start is None else self._buffer[:start]
        return bool(unread) or self.transport.bytes_waiting() > 0
