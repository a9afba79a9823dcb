"""
Tests for the command line entry point.
"""

import json

import pytest

import main
from core.serial_transport import SerialConfig, SerialTransport
from main import parse_args, run_headless


class TestParseArgs:

    def test_serve_defaults(self):
        args = parse_args(["serve"])
        assert args.command == "serve"
        assert args.port == 8000
        assert not args.reload

    def test_run_defaults(self):
        args = parse_args(["run"])
        assert args.bus == "sim"
        assert args.feed_port is None
        assert args.shipment is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestRunHeadless:

    def test_serial_bus_needs_feed_port(self):
        assert run_headless("/dev/ttyUSB0", None, None, None) == 1

    def test_simulated_run_exits_zero(self, tmp_path, capsys):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "pre_start_delay": 0,
            "hold_duration": 0,
            "arrival_wait": 0,
            "post_dispatch_wait": 0,
            "detection_timeout": 10,
        }))

        assert run_headless("sim", None, path, "order_3_shipment_1") == 0
        out = capsys.readouterr().out
        assert "Requesting drone for order_3_shipment_1..." in out
        assert "Run finished in DONE" in out

    def test_detection_timeout_exits_two(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "pre_start_delay": 0,
            "detection_timeout": 0.1,
            "conveyor_power": 1,
        }))
        assert run_headless("sim", None, path, None) == 2

    def test_unsendable_shipment_exits_one(self, tmp_path, capsys):
        assert run_headless("sim", None, tmp_path / "settings.json", "order 0") == 1
        assert "shipment_id must be non-empty without whitespace" in capsys.readouterr().out

    def test_feed_port_failure_closes_bus(self, monkeypatch, fake_ports):
        monkeypatch.setattr(main, "SerialTransport",
                            lambda: SerialTransport(SerialConfig(connect_delay=0)))
        fake_ports.refuse.add("/dev/ttyFEED")

        assert run_headless("/dev/ttyBUS", "/dev/ttyFEED", None, None) == 1
        assert [h.port for h in fake_ports.opened] == ["/dev/ttyBUS"]
        assert fake_ports.opened[0].closed
