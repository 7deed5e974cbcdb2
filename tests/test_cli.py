"""
Tests for the command-line entry point.
"""

import pytest

from smsbridge import cli
from smsbridge.exceptions import HandshakeError

from test_config import MINIMAL, write_config


class FakeBridge:
    """Records the config it was built from."""

    configs = []
    error = None

    @classmethod
    def from_config(cls, config):
        cls.configs.append(config)
        return cls()

    def run(self):
        if self.error:
            raise self.error


@pytest.fixture
def fake_bridge(monkeypatch):
    FakeBridge.configs = []
    FakeBridge.error = None
    monkeypatch.setattr(cli, "SmsMailBridge", FakeBridge)
    return FakeBridge


def test_main_runs_bridge(tmp_path, fake_bridge):
    path = write_config(tmp_path, MINIMAL)

    assert cli.main([str(path)]) == 0
    assert fake_bridge.configs[0].modem.port == "/dev/ttyUSB2"


def test_port_override(tmp_path, fake_bridge):
    path = write_config(tmp_path, MINIMAL)

    assert cli.main([str(path), "--port", "/dev/ttyACM0", "-v"]) == 0
    assert fake_bridge.configs[0].modem.port == "/dev/ttyACM0"


def test_bad_config(tmp_path, fake_bridge, capsys):
    assert cli.main([str(tmp_path / "missing.yaml")]) == 1
    assert "Config file not found" in capsys.readouterr().err
    assert fake_bridge.configs == []


def test_bridge_error(tmp_path, fake_bridge):
    fake_bridge.error = HandshakeError("Failed to verify modem interface")
    path = write_config(tmp_path, MINIMAL)

    assert cli.main([str(path)]) == 1


def test_keyboard_interrupt(tmp_path, fake_bridge):
    fake_bridge.error = KeyboardInterrupt()
    path = write_config(tmp_path, MINIMAL)

    assert cli.main([str(path)]) == 0


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--version"])

    assert exc_info.value.code == 0
    assert cli.__version__ in capsys.readouterr().out
