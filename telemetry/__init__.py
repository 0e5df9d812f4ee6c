"""
Telemetry decoding for the LoRaWAN tracker node.

This package turns the binary status/GPS uplink payload into structured
fields and wraps it in the network server's codec result shape.
"""

from .config import DecoderConfig, get_nested, load_config
from .frame import (
    DecodeFailure,
    DecodeOutcome,
    FailureKind,
    FrameDecoder,
    GpsFix,
    StatusRecord,
    decode_frame,
    uptime_to_hours,
)
from .uplink import EnvelopeError, decode_uplink, envelope_metadata, extract_payload, parse_hex

__all__ = [
    # Frame decoding
    "FrameDecoder",
    "decode_frame",
    "uptime_to_hours",
    "StatusRecord",
    "GpsFix",
    "DecodeOutcome",
    "DecodeFailure",
    "FailureKind",
    # Uplink envelopes
    "EnvelopeError",
    "decode_uplink",
    "extract_payload",
    "envelope_metadata",
    "parse_hex",
    # Configuration
    "DecoderConfig",
    "load_config",
    "get_nested",
]
