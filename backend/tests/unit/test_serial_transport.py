"""
Unit tests for SerialTransport against a fake serial port.
"""

import pytest
import serial

from core.serial_transport import SerialConfig, SerialTransport
from core.transport import TransportError


class FakeSerial:
    """Stands in for serial.Serial: scripted reply lines, recorded writes."""

    def __init__(self, port, baud_rate, timeout=None):
        self.port = port
        self.written = []
        self.replies = []
        self.closed = False

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def readline(self) -> bytes:
        return self.replies.pop(0) if self.replies else b""

    def reset_input_buffer(self) -> None:
        self.replies.clear()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport(monkeypatch):
    monkeypatch.setattr(serial, "Serial", FakeSerial)
    t = SerialTransport(SerialConfig(connect_delay=0, reply_timeout=0.2))
    t.connect("/dev/ttyFAKE")
    return t


class TestSerialTransport:

    def test_send_writes_request_line(self, transport):
        transport._serial.replies = [b"ok\n"]
        assert transport.send("start_competition") == "ok"
        assert transport._serial.written == [b"start_competition\r"]

    def test_reply_keeps_preceding_lines(self, transport):
        transport._serial.replies = [b"busy\n", b"fail drone busy\n"]
        assert transport.send("drone shipment_type=s0") == "busy\nfail drone busy"

    def test_probe_reply(self, transport):
        transport._serial.replies = [b"missing\n"]
        assert transport.send("? drone") == "missing"

    def test_timeout_raises(self, transport):
        with pytest.raises(TransportError, match="Timeout"):
            transport.send("start_competition")

    def test_send_when_disconnected(self, transport):
        fake = transport._serial
        transport.disconnect()
        assert fake.closed
        assert not transport.is_connected
        with pytest.raises(TransportError, match="Not connected"):
            transport.send("start_competition")

    def test_connect_failure(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise serial.SerialException("no such port")

        monkeypatch.setattr(serial, "Serial", refuse)
        with pytest.raises(ConnectionError, match="no such port"):
            SerialTransport(SerialConfig(connect_delay=0)).connect("/dev/ttyNONE")
