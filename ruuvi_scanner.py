"""
Passive RuuviTag discovery on top of bleak.

RuuviTags broadcast either manufacturer data (company id 0x0499, formats 3
and 5) or an Eddystone-URL frame pointing at ruu.vi (formats 2 and 4). Both
are decoded into a measurement record; the scanner keeps one RuuviTag per
address and reports:

  on_found(tag)            first decodable advertisement from an address
  on_updated(tag, record)  every decodable advertisement, record includes rssi

No pairing or connection is made.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from bleak import BleakScanner

from ruuvi_errors import DecodeError, NoBeaconsFound
from ruuvi_formats import RUUVI_COMPANY_ID, Reading, decode
from ruuvi_url import parse_url

logger = logging.getLogger("ruuvi")

EDDYSTONE_UUIDS = ("0000feaa-0000-1000-8000-00805f9b34fb", "feaa")
EDDYSTONE_URL_FRAME = 0x10
FIND_TAGS_SCAN_TIME = 5.0

URL_SCHEMES = ("http://www.", "https://www.", "http://", "https://")
URL_EXPANSIONS = (
    ".com/", ".org/", ".edu/", ".net/", ".info/", ".biz/", ".gov/",
    ".com", ".org", ".edu", ".net", ".info", ".biz", ".gov",
)

FoundCallback = Callable[["RuuviTag"], None]
UpdatedCallback = Callable[["RuuviTag", Dict[str, Any]], None]


@dataclass
class RuuviTag:
    id: str
    address: str
    local_name: Optional[str] = None
    last_reading: Optional[Dict[str, Any]] = None


def tag_id(address: str) -> str:
    return address.replace(":", "").replace("-", "").lower()


def eddystone_url(service_data: Dict[str, bytes]) -> Optional[str]:
    """
    Rebuild the URL from an Eddystone-URL frame:
      0x10 [txPower][scheme][encoded url...]
    Bytes 0x00..0x0d in the encoded part are expansion codes.
    """
    for k, v in service_data.items():
        if k.lower() not in EDDYSTONE_UUIDS:
            continue
        if not v or len(v) < 3 or v[0] != EDDYSTONE_URL_FRAME:
            return None
        if v[2] >= len(URL_SCHEMES):
            return None
        parts = [URL_SCHEMES[v[2]]]
        for c in v[3:]:
            parts.append(URL_EXPANSIONS[c] if c < len(URL_EXPANSIONS) else chr(c))
        return "".join(parts)
    return None


def decode_advertisement(manufacturer_data: Dict[int, bytes], service_data: Dict[str, bytes]) -> Optional[Reading]:
    """
    Decode whatever Ruuvi payload an advertisement carries, or return None.

    bleak strips the company id from manufacturer data, so the bytes start
    with the format tag.
    """
    payload = manufacturer_data.get(RUUVI_COMPANY_ID)
    if payload:
        return decode(payload)
    url = eddystone_url(service_data)
    if url is not None:
        return parse_url(url)
    return None


class RuuviScanner:
    def __init__(
        self,
        on_found: Optional[FoundCallback] = None,
        on_updated: Optional[UpdatedCallback] = None,
        adapter: Optional[str] = None,
    ):
        self.on_found = on_found
        self.on_updated = on_updated
        self.adapter = adapter
        self.tags: Dict[str, RuuviTag] = {}
        self._scanner: Optional[BleakScanner] = None

    def handle_advertisement(self, device, adv_data) -> Optional[Dict[str, Any]]:
        addr = device.address or ""
        try:
            reading = decode_advertisement(adv_data.manufacturer_data or {}, adv_data.service_data or {})
        except DecodeError as e:
            logger.debug("Dropping advertisement from %s: %s", addr, e)
            return None
        if reading is None:
            return None

        tag = self.tags.get(addr)
        if tag is None:
            tag = RuuviTag(id=tag_id(addr), address=addr, local_name=adv_data.local_name or None)
            self.tags[addr] = tag
            logger.debug("Found RuuviTag %s (data format %d)", addr, reading.data_format)
            if self.on_found:
                self.on_found(tag)

        record = reading.to_record()
        record["rssi"] = adv_data.rssi
        tag.last_reading = record
        if self.on_updated:
            self.on_updated(tag, record)
        return record

    async def start(self) -> None:
        self._scanner = BleakScanner(self.handle_advertisement, adapter=self.adapter)
        await self._scanner.start()

    async def stop(self) -> None:
        if self._scanner is not None:
            await self._scanner.stop()
            self._scanner = None

    async def __aenter__(self) -> "RuuviScanner":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    async def find_tags(self, scan_time: float = FIND_TAGS_SCAN_TIME) -> List[RuuviTag]:
        """Scan for scan_time seconds and return the tags seen."""
        await self.start()
        try:
            await asyncio.sleep(scan_time)
        finally:
            await self.stop()
        if not self.tags:
            raise NoBeaconsFound(scan_time)
        return list(self.tags.values())
