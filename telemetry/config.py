"""
Decoder configuration loaded from JSON config files.

Example config/decoder_config.json:
{
    "log_level": "INFO",
    "decoder": {
        "rounding": "half_up",
        "warn_trailing_bytes": false,
        "check_gps_range": false
    },
    "output": {
        "indent": 2
    }
}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .frame import ROUND_HALF_UP, ROUNDING_MODES

DEFAULT_CONFIG_PATH = "config/decoder_config.json"


def load_config(config_path: str) -> dict:
    """Load configuration from a JSON file."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        config = json.load(f)

    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_path} must contain a JSON object")
    return config


def get_nested(d: dict, key_path: str, default: Any = None) -> Any:
    """
    Get a nested dict value using dot notation.

    Example:
        get_nested(config, "decoder.rounding", "half_up")
        # Returns config["decoder"]["rounding"] or "half_up" if not found
    """
    keys = key_path.split(".")
    for key in keys:
        if not isinstance(d, dict) or key not in d:
            return default
        d = d[key]
    return d


@dataclass(frozen=True)
class DecoderConfig:
    """Options for FrameDecoder."""
    rounding: str = ROUND_HALF_UP
    warn_trailing_bytes: bool = False
    check_gps_range: bool = False

    def __post_init__(self):
        if self.rounding not in ROUNDING_MODES:
            raise ValueError(
                f"Invalid rounding mode {self.rounding!r}, expected one of {', '.join(ROUNDING_MODES)}"
            )

    @classmethod
    def from_dict(cls, config: dict) -> "DecoderConfig":
        """Build from a full config dict (reads the "decoder" section)."""
        return cls(
            rounding=get_nested(config, "decoder.rounding", ROUND_HALF_UP),
            warn_trailing_bytes=bool(get_nested(config, "decoder.warn_trailing_bytes", False)),
            check_gps_range=bool(get_nested(config, "decoder.check_gps_range", False)),
        )
