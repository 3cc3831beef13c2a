#!/usr/bin/env python3
"""
Decode RuuviTag payloads given on the command line.

Each input is either a ruu.vi link or a hex string (spaces and colons are
ignored). Hex input starts with the data format byte unless --manufacturer
is given, in which case the 2-byte company id (99 04) comes first.

Examples:
  python3 decode_ruuvi.py 'https://ruu.vi/#ApgVAMAw'
  python3 decode_ruuvi.py --manufacturer '99 04 05 12 FC 53 94 C3 7C 00 04 FF FC 04 0C AC 36 42 00 CD CB B8 33 4C 88 01'
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from ruuvi_errors import DecodeError, InvalidData
from ruuvi_formats import Reading, decode, decode_manufacturer_data
from ruuvi_url import RUUVI_HOST, parse_url


def parse_hex(text: str) -> bytes:
    cleaned = "".join(text.replace(":", " ").split())
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    try:
        return bytes.fromhex(cleaned)
    except ValueError as e:
        raise InvalidData(f"not a hex string: {text!r}") from e


def decode_input(text: str, manufacturer: bool = False) -> Reading:
    if RUUVI_HOST in text.lower() or "#" in text:
        return parse_url(text)
    raw = parse_hex(text)
    return decode_manufacturer_data(raw) if manufacturer else decode(raw)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Decode RuuviTag URLs or hex payloads to JSON.")
    ap.add_argument("inputs", nargs="+", help="ruu.vi URL or hex payload")
    ap.add_argument("--manufacturer", action="store_true", help="Hex input includes the 2-byte company id")
    args = ap.parse_args(argv)

    failed = 0
    for text in args.inputs:
        try:
            reading = decode_input(text, manufacturer=args.manufacturer)
        except DecodeError as e:
            failed += 1
            print(f"{text}: {e}", file=sys.stderr)
            continue
        print(json.dumps(reading.to_record()))
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
