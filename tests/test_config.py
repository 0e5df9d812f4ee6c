"""Tests for decoder configuration loading."""

import json
from pathlib import Path

import pytest

from telemetry.config import DecoderConfig, get_nested, load_config
from telemetry.frame import FrameDecoder

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def write_config(path: Path, config) -> str:
    path.write_text(json.dumps(config))
    return str(path)


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_json(self, tmp_path):
        path = write_config(tmp_path / "cfg.json", {"decoder": {"rounding": "half_even"}})
        assert load_config(path) == {"decoder": {"rounding": "half_even"}}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.json"))

    def test_not_an_object(self, tmp_path):
        path = write_config(tmp_path / "cfg.json", [1, 2, 3])
        with pytest.raises(ValueError):
            load_config(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_shipped_config(self):
        config = load_config(str(PROJECT_ROOT / "config" / "decoder_config.json"))
        assert DecoderConfig.from_dict(config) == DecoderConfig()


class TestGetNested:
    """Tests for dotted-path lookups."""

    def test_nested(self):
        assert get_nested({"a": {"b": {"c": 3}}}, "a.b.c") == 3

    def test_top_level(self):
        assert get_nested({"log_level": "DEBUG"}, "log_level") == "DEBUG"

    def test_missing_returns_default(self):
        assert get_nested({"a": {}}, "a.b", 7) == 7

    def test_through_non_dict(self):
        assert get_nested({"a": 5}, "a.b", "x") == "x"


class TestDecoderConfig:
    """Tests for DecoderConfig."""

    def test_defaults(self):
        config = DecoderConfig.from_dict({})
        assert config.rounding == "half_up"
        assert config.warn_trailing_bytes is False
        assert config.check_gps_range is False

    def test_from_dict(self):
        config = DecoderConfig.from_dict({
            "decoder": {
                "rounding": "half_even",
                "warn_trailing_bytes": True,
                "check_gps_range": True,
            }
        })
        assert config == DecoderConfig(
            rounding="half_even", warn_trailing_bytes=True, check_gps_range=True
        )

    def test_invalid_rounding(self):
        with pytest.raises(ValueError, match="rounding"):
            DecoderConfig.from_dict({"decoder": {"rounding": "up"}})

    def test_decoder_from_config(self):
        decoder = FrameDecoder.from_config(
            DecoderConfig(rounding="half_even", warn_trailing_bytes=True)
        )
        assert decoder.rounding == "half_even"
        assert decoder.warn_trailing_bytes is True
        assert decoder.check_gps_range is False
