#!/usr/bin/env python3
"""
Decode binary status/GPS uplinks from the tracker node.

Takes hex payloads on the command line, or uplink envelopes from a JSON file
(a single object, a list of objects, or one object per line), and prints one
codec result per input:

    {"data": {...}, "warnings": [...], "errors": [...]}

Configuration is loaded from config/decoder_config.json when present:
{
    "log_level": "INFO",
    "decoder": {"rounding": "half_up", "warn_trailing_bytes": false, "check_gps_range": false},
    "output": {"indent": 2}
}

Usage:
    python3 decode_uplink.py 0000007B0165C700013364
    python3 decode_uplink.py -f uplinks.json --strict
    mosquitto_sub -t 'application/+/device/+/event/up' | python3 decode_uplink.py -f -

Exit status: 0 if every input decoded, 1 if any input produced errors,
2 on usage or configuration problems.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from telemetry.config import DEFAULT_CONFIG_PATH, DecoderConfig, get_nested, load_config
from telemetry.frame import ROUNDING_MODES, FrameDecoder
from telemetry.uplink import EnvelopeError, decode_uplink, parse_hex

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def read_envelopes(text: str) -> list:
    """
    Parse envelope JSON.

    Accepts a single object, a list of objects, or JSON lines.

    Raises:
        ValueError: If the text is not valid JSON in any of those forms
    """
    text = text.strip()
    if not text:
        return []

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        envelopes = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                envelopes.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {lineno}: {e}") from None
        return envelopes

    if isinstance(parsed, list):
        return parsed
    return [parsed]


def build_decoder(args: argparse.Namespace, config: dict) -> FrameDecoder:
    """Merge config file settings with command line overrides."""
    decoder_config = DecoderConfig.from_dict(config)
    return FrameDecoder(
        rounding=args.rounding or decoder_config.rounding,
        warn_trailing_bytes=args.strict or decoder_config.warn_trailing_bytes,
        check_gps_range=args.strict or decoder_config.check_gps_range,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Decode tracker node status/GPS uplinks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "payloads",
        nargs="*",
        help="Hex payloads to decode (spaces inside a quoted payload are allowed)",
    )
    parser.add_argument(
        "-f", "--file",
        help="JSON file of uplink envelopes ('-' for stdin)",
    )
    parser.add_argument(
        "-c", "--config",
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH} if present)",
    )
    parser.add_argument(
        "--rounding",
        choices=ROUNDING_MODES,
        help="Rounding mode for uptime_hours (overrides config)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Warn about trailing bytes and out-of-range GPS coordinates",
    )
    parser.add_argument(
        "--indent",
        type=int,
        help="JSON indent for output (overrides config, 0 for compact)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    # Load configuration
    config: dict = {}
    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG_PATH).exists():
        config_path = DEFAULT_CONFIG_PATH
    if config_path is not None:
        try:
            config = load_config(config_path)
        except (FileNotFoundError, ValueError) as e:
            logger.error(str(e))
            return 2

    log_level = "DEBUG" if args.verbose else str(config.get("log_level", "INFO")).upper()
    logging.getLogger().setLevel(getattr(logging, log_level, logging.INFO))

    try:
        decoder = build_decoder(args, config)
    except ValueError as e:
        logger.error(f"Invalid decoder config: {e}")
        return 2

    indent = args.indent if args.indent is not None else get_nested(config, "output.indent", 2)
    indent = indent or None

    # Collect inputs
    envelopes: list = []
    for payload in args.payloads:
        try:
            envelopes.append({"bytes": list(parse_hex(payload))})
        except EnvelopeError as e:
            logger.error(f"{payload!r}: {e}")
            return 2

    if args.file:
        try:
            if args.file == "-":
                text = sys.stdin.read()
            else:
                text = Path(args.file).read_text()
            envelopes.extend(read_envelopes(text))
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read envelopes from {args.file}: {e}")
            return 2

    if not envelopes:
        parser.print_usage(sys.stderr)
        logger.error("No payloads given")
        return 2

    failed = 0
    for envelope in envelopes:
        result = decode_uplink(envelope, decoder)
        if result["errors"]:
            failed += 1
        print(json.dumps(result, indent=indent))

    if failed:
        logger.info(f"{failed} of {len(envelopes)} uplink(s) failed to decode")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
