"""
Tests for transport layer.
"""

import pytest
import serial
from smsbridge.core import MockTransport, SerialTransport
from smsbridge.exceptions import BridgeError, DeviceDisconnectedError, TransportError


def test_mock_transport_write():
    """Test MockTransport write operation."""
    transport = MockTransport()

    written = transport.write(b"AT\r")
    assert written == 3
    assert transport.written == [b"AT\r"]

    transport.close()


def test_mock_transport_echo_and_response():
    """Test that a terminated write echoes and releases the next response."""
    transport = MockTransport()

    transport.add_response("\r\nOK\r\n")
    transport.write(b"AT\r")

    assert transport.read_available() == b"AT\r\r\nOK\r\n"

    transport.close()


def test_mock_transport_without_echo():
    """Test MockTransport with echo disabled."""
    transport = MockTransport(echo=False)

    transport.add_response("\r\nOK\r\n")
    transport.write(b"AT\r")

    assert transport.read_available() == b"\r\nOK\r\n"

    transport.close()


def test_mock_transport_unterminated_write_releases_nothing():
    """Test that an SMS body write does not release a response."""
    transport = MockTransport()

    transport.add_response("\r\n+CMGS: 1\r\n\r\nOK\r\n")
    transport.write(b"Hello")
    assert transport.bytes_waiting() == 0

    # Ctrl+Z ends the entry and is not echoed
    transport.write(b"\x1a")
    assert transport.read_available() == b"\r\n+CMGS: 1\r\n\r\nOK\r\n"

    transport.close()


def test_mock_transport_responses_in_order():
    """Test MockTransport releases queued responses one per command."""
    transport = MockTransport(echo=False)

    transport.add_response("first\r\n")
    transport.add_response("second\r\n")

    transport.write(b"AT\r")
    assert transport.read_available() == b"first\r\n"

    transport.write(b"AT\r")
    assert transport.read_available() == b"second\r\n"

    transport.close()


def test_mock_transport_inject():
    """Test that injected data is readable immediately."""
    transport = MockTransport()

    transport.inject('\r\n+CMTI: "SM",3\r\n')

    assert transport.bytes_waiting() == 17
    assert transport.read_available() == b'\r\n+CMTI: "SM",3\r\n'
    assert transport.bytes_waiting() == 0

    transport.close()


def test_mock_transport_read_until():
    """Test MockTransport read_until with and without terminator."""
    transport = MockTransport()

    transport.inject(b"+CSQ: 24,99\r\nOK")

    assert transport.read_until(b"\n") == b"+CSQ: 24,99\r\n"
    # No terminator left: behaves like an expired timeout
    assert transport.read_until(b"\n", timeout=0.1) == b"OK"
    assert transport.read_until(b"\n") == b""

    transport.close()


def test_mock_transport_is_open():
    """Test MockTransport is_open status."""
    transport = MockTransport()

    assert transport.is_open() is True

    transport.close()
    assert transport.is_open() is False


def test_mock_transport_write_when_closed():
    """Test MockTransport raises error when writing to closed transport."""
    transport = MockTransport()
    transport.close()

    with pytest.raises(BridgeError):
        transport.write(b"AT\r")


def test_mock_transport_read_when_closed():
    """Test that reads on a closed transport report a disconnection."""
    transport = MockTransport()
    transport.close()

    with pytest.raises(DeviceDisconnectedError):
        transport.read_until(b"\n")

    with pytest.raises(DeviceDisconnectedError):
        transport.bytes_waiting()


def test_mock_transport_clear_responses():
    """Test MockTransport clear_responses."""
    transport = MockTransport(echo=False)

    # Add responses
    transport.add_response("Line 1\r\n")
    transport.add_response("Line 2\r\n")

    # Clear
    transport.clear_responses()

    # Should return empty now
    transport.write(b"AT\r")
    assert transport.read_available() == b""

    transport.close()


def test_mock_transport_written_text():
    """Test decoding of everything written."""
    transport = MockTransport()

    transport.write(b'AT+CMGS="+1"\r')
    transport.write("héllo".encode("utf-8"))

    assert transport.written_text() == 'AT+CMGS="+1"\rhéllo'

    transport.close()


class FakeSerial:
    """Stands in for serial.Serial."""

    def __init__(self, port=None, baudrate=9600, timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.is_open = True
        self.input = bytearray()
        self.error = None
        self.timeouts_seen = []

    @property
    def in_waiting(self):
        if self.error:
            raise self.error
        return len(self.input)

    def write(self, data):
        if self.error:
            raise self.error
        return len(data)

    def read(self, size):
        data = bytes(self.input[:size])
        del self.input[:size]
        return data

    def read_until(self, terminator):
        self.timeouts_seen.append(self.timeout)
        pos = self.input.find(terminator)
        end = len(self.input) if pos < 0 else pos + len(terminator)
        data = bytes(self.input[:end])
        del self.input[:end]
        return data

    def close(self):
        self.is_open = False


@pytest.fixture
def serial_transport(monkeypatch):
    monkeypatch.setattr(serial, "Serial", FakeSerial)
    return SerialTransport("/dev/ttyUSB2", timeout=1.0)


def test_serial_transport_open_failure(monkeypatch):
    """Test that a port that cannot be opened raises TransportError."""
    def refuse(**kwargs):
        raise serial.SerialException("could not open port /dev/ttyUSB9")

    monkeypatch.setattr(serial, "Serial", refuse)

    with pytest.raises(TransportError):
        SerialTransport("/dev/ttyUSB9")


def test_serial_transport_read_available(serial_transport):
    serial_transport._serial.input.extend(b"\r\nOK\r\n")

    assert serial_transport.bytes_waiting() == 6
    assert serial_transport.read_available() == b"\r\nOK\r\n"
    assert serial_transport.read_available() == b""


def test_serial_transport_read_until_restores_timeout(serial_transport):
    serial_transport._serial.input.extend(b"OK\r\n")

    assert serial_transport.read_until(b"\n", timeout=0.25) == b"OK\r\n"
    assert serial_transport._serial.timeouts_seen == [0.25]
    assert serial_transport._serial.timeout == 1.0


def test_serial_transport_disconnect(serial_transport):
    """Test that a vanished device maps to DeviceDisconnectedError."""
    serial_transport._serial.error = serial.SerialException(
        "device reports readiness to read but returned no data"
    )

    with pytest.raises(DeviceDisconnectedError):
        serial_transport.bytes_waiting()


def test_serial_transport_other_error(serial_transport):
    serial_transport._serial.error = serial.SerialException("write timeout")

    with pytest.raises(TransportError) as exc_info:
        serial_transport.write(b"AT\r")

    assert not isinstance(exc_info.value, DeviceDisconnectedError)


def test_serial_transport_close(serial_transport):
    assert serial_transport.is_open() is True

    serial_transport.close()

    assert serial_transport.is_open() is False
