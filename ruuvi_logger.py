#!/usr/bin/env python3
"""
RuuviTag measurement logger.

Decodes RuuviTag advertisements (data formats 2, 3, 4, 5) and appends one
timestamped JSON record per reading to a JSONL file.
Does NOT require pairing; it passively scans.

Examples:
  python3 ruuvi_logger.py --out logs/ruuvi_$(date +%Y%m%d_%H%M%S).jsonl
  python3 ruuvi_logger.py --out logs/ruuvi.jsonl --mac AA:BB:CC:DD:EE:FF --duration 600
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ruuvi_scanner import RuuviScanner, RuuviTag


def utc_iso_from_unix_ns(t_unix_ns: int) -> str:
    return datetime.fromtimestamp(t_unix_ns / 1e9, tz=timezone.utc).isoformat(timespec="microseconds")


@dataclass
class ReadingRecord:
    t_unix_ns: int
    t_utc: str
    address: str
    rssi: Optional[int]
    data_format: int
    measurement: Dict[str, Any]
    local_name: Optional[str] = None


def build_record(tag: RuuviTag, reading: Dict[str, Any], t_unix_ns: Optional[int] = None) -> ReadingRecord:
    if t_unix_ns is None:
        t_unix_ns = time.time_ns()
    measurement = {k: v for k, v in reading.items() if k not in ("rssi", "dataFormat")}
    return ReadingRecord(
        t_unix_ns=t_unix_ns,
        t_utc=utc_iso_from_unix_ns(t_unix_ns),
        address=tag.address.lower(),
        rssi=reading.get("rssi"),
        data_format=int(reading["dataFormat"]),
        measurement=measurement,
        local_name=tag.local_name,
    )


def make_filter(mac: str = "", name: str = ""):
    mac_filter = mac.strip().lower()
    name_filter = name.strip().lower()

    def accept(tag: RuuviTag) -> bool:
        if mac_filter and tag.address.lower() != mac_filter:
            return False
        if name_filter and (not tag.local_name or name_filter not in tag.local_name.lower()):
            return False
        return True

    return accept


async def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Log decoded RuuviTag readings to JSONL.")
    ap.add_argument("--out", required=True, help="Output JSONL path")
    ap.add_argument("--mac", default="", help="Filter by MAC address (optional)")
    ap.add_argument("--name", default="", help="Filter by local name (optional substring match)")
    ap.add_argument("--adapter", default="", help="Bluetooth adapter (optional, e.g. hci0)")
    ap.add_argument("--duration", type=float, default=0.0, help="Run for N seconds then stop (0=run forever)")
    ap.add_argument("--verbose", action="store_true", help="Log dropped advertisements")
    args = ap.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    accept = make_filter(args.mac, args.name)
    out_path = args.out
    fh = open(out_path, "a", buffering=1, encoding="utf-8")
    print(f"RuuviTag logging to: {out_path}")
    if args.mac:
        print(f"Filter: mac={args.mac.strip().lower()}")
    if args.name:
        print(f"Filter: name contains '{args.name.strip().lower()}'")

    def on_found(tag: RuuviTag) -> None:
        if accept(tag):
            print(f"Found RuuviTag {tag.address} ({tag.local_name or 'no name'})")

    def on_updated(tag: RuuviTag, reading: Dict[str, Any]) -> None:
        if not accept(tag):
            return
        fh.write(json.dumps(asdict(build_record(tag, reading))) + "\n")

    scanner = RuuviScanner(on_found=on_found, on_updated=on_updated, adapter=args.adapter or None)
    await scanner.start()
    try:
        if args.duration and args.duration > 0:
            await asyncio.sleep(args.duration)
        else:
            while True:
                await asyncio.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        await scanner.stop()
        fh.flush()
        fh.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
