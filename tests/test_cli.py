"""Tests for the decode_uplink command line tool."""

import base64
import io
import json
import struct

import pytest

import decode_uplink
from decode_uplink import main, read_envelopes

STATUS_HEX = "0000007B0165C700013364"
GPS_FRAME = struct.pack(">IHBBHB", 7200, 300, 0x70, 0xA0, 4010, 95) + struct.pack(">fffB", 48.25, 11.5, 520.0, 10)


@pytest.fixture(autouse=True)
def no_default_config(tmp_path, monkeypatch):
    """Run each test from an empty directory so config/decoder_config.json is not picked up."""
    monkeypatch.chdir(tmp_path)


def output_docs(capsys) -> list[dict]:
    out = capsys.readouterr().out
    return [json.loads(line) for line in out.splitlines() if line.strip()]


class TestReadEnvelopes:
    """Tests for envelope file parsing."""

    def test_single_object(self):
        assert read_envelopes('{"bytes": [1]}') == [{"bytes": [1]}]

    def test_list(self):
        assert read_envelopes('[{"bytes": [1]}, {"bytes": [2]}]') == [{"bytes": [1]}, {"bytes": [2]}]

    def test_json_lines(self):
        text = '{"bytes": [1]}\n\n{"bytes": [2]}\n'
        assert read_envelopes(text) == [{"bytes": [1]}, {"bytes": [2]}]

    def test_empty(self):
        assert read_envelopes("  \n") == []

    def test_invalid(self):
        with pytest.raises(ValueError, match="line 2"):
            read_envelopes('{"bytes": [1]}\n{oops')


class TestMain:
    """Tests for the CLI entry point."""

    def test_hex_payload(self, capsys):
        assert main([STATUS_HEX, "--indent", "0"]) == 0
        docs = output_docs(capsys)
        assert len(docs) == 1
        assert docs[0]["errors"] == []
        assert docs[0]["data"]["uptime_seconds"] == 123
        assert docs[0]["data"]["battery_voltage"] == 0.307
        assert docs[0]["data"]["has_gps"] is False

    def test_multiple_payloads(self, capsys):
        assert main([STATUS_HEX, GPS_FRAME.hex(), "--indent", "0"]) == 0
        docs = output_docs(capsys)
        assert [d["data"]["has_gps"] for d in docs] == [False, True]
        assert docs[1]["data"]["latitude"] == 48.25
        assert docs[1]["data"]["uptime_hours"] == 2.0

    def test_short_payload_fails(self, capsys):
        assert main(["010203", "--indent", "0"]) == 1
        docs = output_docs(capsys)
        assert docs[0]["data"] == {}
        assert docs[0]["errors"][0].startswith("Decode error: Payload too short")

    def test_invalid_hex(self, capsys):
        assert main(["xyz"]) == 2
        assert capsys.readouterr().out == ""

    def test_no_input(self):
        assert main([]) == 2

    def test_envelope_file(self, tmp_path, capsys):
        envelopes = [
            {"fPort": 3, "fCnt": 1, "data": base64.b64encode(GPS_FRAME).decode()},
            {"fPort": 3, "fCnt": 2, "bytes": [1, 2]},
        ]
        path = tmp_path / "uplinks.json"
        path.write_text(json.dumps(envelopes))

        assert main(["-f", str(path), "--indent", "0"]) == 1
        docs = output_docs(capsys)
        assert len(docs) == 2
        assert docs[0]["data"]["satellites"] == 10
        assert docs[1]["errors"]

    def test_missing_file(self, tmp_path):
        assert main(["-f", str(tmp_path / "nope.json")]) == 2

    def test_stdin(self, monkeypatch, capsys):
        line = json.dumps({"bytes": list(bytes.fromhex(STATUS_HEX))})
        monkeypatch.setattr(decode_uplink.sys, "stdin", io.StringIO(line + "\n" + line + "\n"))
        assert main(["-f", "-", "--indent", "0"]) == 0
        assert len(output_docs(capsys)) == 2

    def test_strict_warnings(self, capsys):
        assert main([STATUS_HEX + "FF", "--strict", "--indent", "0"]) == 0
        docs = output_docs(capsys)
        assert docs[0]["warnings"] == ["1 trailing byte(s) not decoded"]

    def test_rounding_override(self, capsys):
        frame = struct.pack(">IHBBHB", 90, 0, 0, 0, 0, 0)
        assert main([frame.hex(), "--rounding", "half_even", "--indent", "0"]) == 0
        assert output_docs(capsys)[0]["data"]["uptime_hours"] == 0.02

    def test_config_file(self, tmp_path, capsys):
        config = {
            "decoder": {"rounding": "half_even", "warn_trailing_bytes": True},
            "output": {"indent": 0},
        }
        path = tmp_path / "decoder.json"
        path.write_text(json.dumps(config))

        frame = struct.pack(">IHBBHB", 90, 0, 0, 0, 0, 0) + b"\x00"
        assert main([frame.hex(), "-c", str(path)]) == 0
        docs = output_docs(capsys)
        assert docs[0]["data"]["uptime_hours"] == 0.02
        assert docs[0]["warnings"] == ["1 trailing byte(s) not decoded"]

    def test_default_config_location(self, tmp_path, capsys):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "decoder_config.json").write_text(
            json.dumps({"decoder": {"rounding": "half_even"}, "output": {"indent": 0}})
        )
        frame = struct.pack(">IHBBHB", 90, 0, 0, 0, 0, 0)
        assert main([frame.hex()]) == 0
        assert output_docs(capsys)[0]["data"]["uptime_hours"] == 0.02

    def test_missing_config(self, tmp_path):
        assert main([STATUS_HEX, "-c", str(tmp_path / "missing.json")]) == 2

    def test_bad_config_value(self, tmp_path):
        path = tmp_path / "decoder.json"
        path.write_text(json.dumps({"decoder": {"rounding": "sideways"}}))
        assert main([STATUS_HEX, "-c", str(path)]) == 2

    def test_pretty_output_by_default(self, capsys):
        assert main([STATUS_HEX]) == 0
        out = capsys.readouterr().out
        assert '\n  "data": {' in out
        assert json.loads(out)["data"]["free_memory_kb"] == 357
