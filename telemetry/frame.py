"""
Binary status frame decoder for the tracker node's LoRaWAN uplinks.

Frame format (big-endian, 11 or 24+ bytes):
┌────────┬──────┬──────┬─────┬────────┬─────┐
│ uptime │ heap │ rssi │ snr │ batt   │ pct │
│ 4B     │ 2B   │ 1B   │ 1B  │ 2B     │ 1B  │
└────────┴──────┴──────┴─────┴────────┴─────┘
Optional GPS extension, present when at least 13 bytes follow the header:
┌──────────┬──────────┬──────────┬──────┐
│ lat f32  │ lon f32  │ alt f32  │ sats │
│ 4B       │ 4B       │ 4B       │ 1B   │
└──────────┴──────────┴──────────┴──────┘

- uptime: seconds since boot (uint32)
- heap: free memory in KB (uint16)
- rssi: RSSI in dBm + 200 (uint8), so 0x65 = 101 -> -99 dBm
- snr: SNR * 4 + 128 (uint8), quarter-dB resolution
- batt: battery voltage in millivolts (uint16)
- pct: battery percentage (uint8)

Bytes past the GPS extension are ignored. Decoding never raises: every
failure is reported through DecodeOutcome.
"""

from __future__ import annotations

import logging
import math
import struct
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


# Layout constants
HEADER_FMT = ">IHBBHB"   # uptime(4) + heap(2) + rssi(1) + snr(1) + batt(2) + pct(1) = 11 bytes
HEADER_SIZE = struct.calcsize(HEADER_FMT)
GPS_FMT = ">fffB"        # lat(4) + lon(4) + alt(4) + sats(1) = 13 bytes
GPS_SIZE = struct.calcsize(GPS_FMT)
GPS_FRAME_SIZE = HEADER_SIZE + GPS_SIZE  # 24 bytes

RSSI_OFFSET = 200
SNR_OFFSET = 128
SNR_SCALE = 4.0
MILLIVOLTS_PER_VOLT = 1000.0

ROUND_HALF_UP = "half_up"
ROUND_HALF_EVEN = "half_even"
ROUNDING_MODES = (ROUND_HALF_UP, ROUND_HALF_EVEN)

ERROR_PREFIX = "Decode error: "


def uptime_to_hours(uptime_seconds: int, rounding: str = ROUND_HALF_UP) -> float:
    """
    Convert uptime seconds to hours rounded to two decimals.

    Works in whole centi-hours (seconds / 36) with integer arithmetic so
    exact .005 boundaries are decided by the rounding mode rather than by
    float representation error.

    Args:
        uptime_seconds: Non-negative uptime in seconds
        rounding: ROUND_HALF_UP (ties away from zero) or ROUND_HALF_EVEN

    Returns:
        Hours with at most two decimal places (e.g. 123 s -> 0.03)
    """
    if rounding not in ROUNDING_MODES:
        raise ValueError(f"Unknown rounding mode: {rounding!r}")

    centi_hours, remainder = divmod(uptime_seconds, 36)
    if remainder > 18:
        centi_hours += 1
    elif remainder == 18:
        if rounding == ROUND_HALF_UP or centi_hours % 2 == 1:
            centi_hours += 1
    return centi_hours / 100


# =============================================================================
# Decoded Types
# =============================================================================

@dataclass(frozen=True)
class GpsFix:
    """GPS extension block. Either all four fields are present or none."""
    latitude: float
    longitude: float
    altitude: float
    satellites: int

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "satellites": self.satellites,
        }


@dataclass(frozen=True)
class StatusRecord:
    """Decoded status frame, with the GPS fix when the extension was present."""
    uptime_seconds: int
    free_memory_kb: int
    rssi_dbm: int
    snr_db: float
    battery_voltage: float
    battery_percentage: int
    uptime_hours: float
    gps: GpsFix | None = None

    @property
    def has_gps(self) -> bool:
        return self.gps is not None

    def to_dict(self) -> dict:
        """Flat field mapping, GPS keys included only when a fix was decoded."""
        result = {
            "uptime_seconds": self.uptime_seconds,
            "free_memory_kb": self.free_memory_kb,
            "rssi_dbm": self.rssi_dbm,
            "snr_db": self.snr_db,
            "battery_voltage": self.battery_voltage,
            "battery_percentage": self.battery_percentage,
        }
        if self.gps is not None:
            result.update(self.gps.to_dict())
        result["uptime_hours"] = self.uptime_hours
        result["has_gps"] = self.has_gps
        return result


class FailureKind(Enum):
    TOO_SHORT = "too_short"
    INTERNAL = "internal"


@dataclass(frozen=True)
class DecodeFailure:
    """Fatal decode failure."""
    kind: FailureKind
    message: str
    actual_length: int | None = None
    required_length: int | None = None

    def __str__(self) -> str:
        return f"{ERROR_PREFIX}{self.message}"


@dataclass
class DecodeOutcome:
    """
    Result of one decode call.

    Holds either a record (possibly with warnings) or a failure, never both.
    """
    record: StatusRecord | None = None
    warnings: list[str] = field(default_factory=list)
    failure: DecodeFailure | None = None

    def __post_init__(self):
        if self.record is not None and self.failure is not None:
            raise ValueError("DecodeOutcome cannot hold both a record and a failure")
        if self.record is None and self.failure is None:
            raise ValueError("DecodeOutcome needs a record or a failure")

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def data(self) -> dict:
        return self.record.to_dict() if self.record is not None else {}

    @property
    def errors(self) -> list[str]:
        return [str(self.failure)] if self.failure is not None else []

    def to_dict(self) -> dict:
        return {
            "data": self.data,
            "warnings": list(self.warnings),
            "errors": self.errors,
        }


def _read_frame(frame) -> tuple[bytes, int]:
    """
    Copy at most GPS_FRAME_SIZE bytes out of the caller's frame.

    Returns:
        Tuple of (leading bytes, total frame length). Sequences are sliced;
        other iterables have to be read in full to learn their length.
    """
    if isinstance(frame, (bytes, bytearray, memoryview, Sequence)):
        return bytes(frame[:GPS_FRAME_SIZE]), len(frame)
    payload = bytes(frame)
    return payload[:GPS_FRAME_SIZE], len(payload)


# =============================================================================
# Decoder
# =============================================================================

class FrameDecoder:
    """
    Stateless decoder for the binary status/GPS frame.

    Options only change derived values and optional warnings; the field
    layout is fixed. A single instance can be shared between threads.
    """

    def __init__(
        self,
        rounding: str = ROUND_HALF_UP,
        warn_trailing_bytes: bool = False,
        check_gps_range: bool = False,
    ):
        """
        Args:
            rounding: Rounding mode for uptime_hours (ROUND_HALF_UP or ROUND_HALF_EVEN)
            warn_trailing_bytes: Warn about bytes that are present but not decoded
            check_gps_range: Warn about coordinates outside their physical range
        """
        if rounding not in ROUNDING_MODES:
            raise ValueError(f"Unknown rounding mode: {rounding!r}")
        self.rounding = rounding
        self.warn_trailing_bytes = warn_trailing_bytes
        self.check_gps_range = check_gps_range

    @classmethod
    def from_config(cls, config) -> "FrameDecoder":
        """Build a decoder from a telemetry.config.DecoderConfig."""
        return cls(
            rounding=config.rounding,
            warn_trailing_bytes=config.warn_trailing_bytes,
            check_gps_range=config.check_gps_range,
        )

    def decode(self, frame: bytes | bytearray | memoryview | Iterable[int]) -> DecodeOutcome:
        """
        Decode one application payload.

        Args:
            frame: Raw payload bytes, or a sequence of ints 0..255

        Returns:
            DecodeOutcome with a StatusRecord, or with a failure and no record
        """
        if isinstance(frame, (int, str)):
            return self._fail(
                FailureKind.INTERNAL, f"Invalid payload bytes: expected a byte sequence, got {type(frame).__name__}"
            )

        try:
            payload, length = _read_frame(frame)
        except Exception as e:
            return self._fail(FailureKind.INTERNAL, f"Invalid payload bytes: {type(e).__name__}: {e}", exc=e)

        if length < HEADER_SIZE:
            return self._fail(
                FailureKind.TOO_SHORT,
                f"Payload too short for binary format (got {length} bytes, need {HEADER_SIZE})",
                actual_length=length,
                required_length=HEADER_SIZE,
            )

        try:
            record = self._decode_record(payload)
            warnings = self._collect_warnings(length, record)
        except Exception as e:
            return self._fail(FailureKind.INTERNAL, f"{type(e).__name__}: {e}", exc=e)

        logger.debug(
            f"Decoded {length}-byte frame: uptime={record.uptime_seconds}s "
            f"gps={record.has_gps}"
        )
        return DecodeOutcome(record=record, warnings=warnings)

    def _decode_record(self, payload: bytes) -> StatusRecord:
        uptime, heap, rssi_raw, snr_raw, batt_mv, pct = struct.unpack_from(HEADER_FMT, payload, 0)

        gps = None
        if len(payload) >= GPS_FRAME_SIZE:
            lat, lon, alt, sats = struct.unpack_from(GPS_FMT, payload, HEADER_SIZE)
            gps = GpsFix(latitude=lat, longitude=lon, altitude=alt, satellites=sats)

        return StatusRecord(
            uptime_seconds=uptime,
            free_memory_kb=heap,
            rssi_dbm=rssi_raw - RSSI_OFFSET,
            snr_db=(snr_raw - SNR_OFFSET) / SNR_SCALE,
            battery_voltage=batt_mv / MILLIVOLTS_PER_VOLT,
            battery_percentage=pct,
            uptime_hours=uptime_to_hours(uptime, self.rounding),
            gps=gps,
        )

    def _collect_warnings(self, length: int, record: StatusRecord) -> list[str]:
        warnings = []

        if self.warn_trailing_bytes:
            consumed = GPS_FRAME_SIZE if record.has_gps else HEADER_SIZE
            trailing = length - consumed
            if trailing > 0:
                warnings.append(f"{trailing} trailing byte(s) not decoded")

        if self.check_gps_range and record.gps is not None:
            fix = record.gps
            for name, value, limit in (
                ("latitude", fix.latitude, 90.0),
                ("longitude", fix.longitude, 180.0),
            ):
                if not math.isfinite(value) or abs(value) > limit:
                    warnings.append(f"GPS {name} out of range: {value}")
            if not math.isfinite(fix.altitude):
                warnings.append(f"GPS altitude out of range: {fix.altitude}")

        return warnings

    def _fail(
        self, kind: FailureKind, message: str, exc: Exception | None = None, **lengths
    ) -> DecodeOutcome:
        failure = DecodeFailure(kind=kind, message=message, **lengths)
        logger.warning(str(failure), exc_info=exc)
        return DecodeOutcome(failure=failure)


_default_decoder = FrameDecoder()


def decode_frame(frame: bytes | bytearray | memoryview | Iterable[int]) -> DecodeOutcome:
    """Decode a frame with default options."""
    return _default_decoder.decode(frame)
