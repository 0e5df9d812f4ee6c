"""
Uplink envelope handling.

The network server hands the decoder an envelope around the application
payload. Supported shapes:
- ChirpStack codec input: {"bytes": [1, 0, ...], "fPort": 3}
- ChirpStack integration event: {"data": "<base64>", "fPort": 3, "fCnt": 7, ...}
- The Things Stack uplink: {"uplink_message": {"frm_payload": "<base64>", "f_port": 3}, ...}
- Hex: {"payload_hex": "0000007b..."} or {"hex": "..."}

Port, frame counter and device fields are never used for decoding.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from .frame import ERROR_PREFIX, FrameDecoder, decode_frame

logger = logging.getLogger(__name__)


class EnvelopeError(ValueError):
    """Envelope has no usable application payload."""
    pass


def parse_hex(text: str) -> bytes:
    """
    Parse a hex payload string.

    Whitespace, colons and an optional 0x prefix are tolerated
    ("0x01 02:03" -> b"\\x01\\x02\\x03").

    Raises:
        EnvelopeError: If the string is not valid hex
    """
    cleaned = "".join(text.split()).replace(":", "")
    if cleaned[:2].lower() == "0x":
        cleaned = cleaned[2:]
    try:
        return bytes.fromhex(cleaned)
    except ValueError as e:
        raise EnvelopeError(f"Invalid hex payload: {e}") from None


def _b64(value: Any, field_name: str) -> bytes:
    if not isinstance(value, str):
        raise EnvelopeError(f"'{field_name}' must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EnvelopeError(f"Invalid base64 in '{field_name}': {e}") from None


def extract_payload(envelope: dict) -> bytes:
    """
    Pull the application payload out of an uplink envelope.

    Args:
        envelope: Envelope dict in one of the supported shapes

    Returns:
        Payload bytes

    Raises:
        EnvelopeError: If no payload field is present or it is malformed
    """
    if not isinstance(envelope, dict):
        raise EnvelopeError(f"Envelope must be an object, got {type(envelope).__name__}")

    if "bytes" in envelope:
        raw = envelope["bytes"]
        if isinstance(raw, (bytes, bytearray)):
            return bytes(raw)
        if not isinstance(raw, list):
            raise EnvelopeError("'bytes' must be a list of integers")
        try:
            return bytes(raw)
        except (TypeError, ValueError) as e:
            raise EnvelopeError(f"Invalid 'bytes' array: {e}") from None

    if "data" in envelope:
        return _b64(envelope["data"], "data")

    uplink_message = envelope.get("uplink_message")
    if isinstance(uplink_message, dict) and "frm_payload" in uplink_message:
        return _b64(uplink_message["frm_payload"], "uplink_message.frm_payload")

    for key in ("payload_hex", "hex"):
        if key in envelope:
            if not isinstance(envelope[key], str):
                raise EnvelopeError(f"'{key}' must be a hex string")
            return parse_hex(envelope[key])

    raise EnvelopeError("Envelope has no payload field (bytes, data, uplink_message.frm_payload, payload_hex)")


def envelope_metadata(envelope: dict) -> dict:
    """
    Best-effort port/counter/device info for logging.

    Returns:
        Dict with any of "f_port", "f_cnt", "dev_eui" that could be found
    """
    if not isinstance(envelope, dict):
        return {}

    meta = {}
    uplink_message = envelope.get("uplink_message")
    if not isinstance(uplink_message, dict):
        uplink_message = {}
    device_info = envelope.get("deviceInfo")
    if not isinstance(device_info, dict):
        device_info = {}
    device_ids = envelope.get("end_device_ids")
    if not isinstance(device_ids, dict):
        device_ids = {}

    f_port = envelope.get("fPort", uplink_message.get("f_port"))
    if f_port is not None:
        meta["f_port"] = f_port
    f_cnt = envelope.get("fCnt", uplink_message.get("f_cnt"))
    if f_cnt is not None:
        meta["f_cnt"] = f_cnt
    dev_eui = device_info.get("devEui") or device_ids.get("dev_eui") or envelope.get("devEUI")
    if dev_eui:
        meta["dev_eui"] = dev_eui
    return meta


def decode_uplink(envelope: dict, decoder: FrameDecoder | None = None) -> dict:
    """
    Decode an uplink envelope into a codec result.

    Args:
        envelope: Envelope dict (see module docstring)
        decoder: Decoder to use (default options when None)

    Returns:
        {"data": {...}, "warnings": [...], "errors": [...]}. On any failure
        data is empty and errors holds exactly one entry.
    """
    try:
        payload = extract_payload(envelope)
    except EnvelopeError as e:
        logger.warning(f"Rejected uplink envelope: {e}")
        return {"data": {}, "warnings": [], "errors": [f"{ERROR_PREFIX}{e}"]}

    meta = envelope_metadata(envelope)
    if meta:
        logger.debug(f"Decoding uplink {meta} ({len(payload)} bytes)")

    outcome = decoder.decode(payload) if decoder is not None else decode_frame(payload)
    return outcome.to_dict()
