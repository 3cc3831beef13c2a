import asyncio
from types import SimpleNamespace

import pytest

import ruuvi_scanner
from ruuvi_errors import NoBeaconsFound
from ruuvi_scanner import RuuviScanner, decode_advertisement, eddystone_url, tag_id

DF5 = bytes.fromhex("0512fc5394c37c0004fffc040cac364200cdcbb8334c8801")
DF3 = bytes.fromhex("0375153ac8643a02dbed02440b8e")
EDDYSTONE = "0000feaa-0000-1000-8000-00805f9b34fb"
# 0x10 URL frame, tx power -8, scheme https://, "ruu.vi/#ApgVAMAw"
URL_FRAME = bytes([0x10, 0xF8, 0x03]) + b"ruu.vi/#ApgVAMAw"


def _device(address="CB:B8:33:4C:88:01"):
    return SimpleNamespace(address=address, name=None)


def _adv(manufacturer_data=None, service_data=None, rssi=-60, local_name=None):
    return SimpleNamespace(
        manufacturer_data=manufacturer_data or {},
        service_data=service_data or {},
        rssi=rssi,
        local_name=local_name,
        tx_power=None,
    )


def test_tag_id_strips_separators():
    assert tag_id("CB:B8:33:4C:88:01") == "cbb8334c8801"


def test_eddystone_url_rebuilds_link():
    assert eddystone_url({EDDYSTONE: URL_FRAME}) == "https://ruu.vi/#ApgVAMAw"


def test_eddystone_url_expansion_codes():
    frame = bytes([0x10, 0x00, 0x02]) + b"example" + bytes([0x07])
    assert eddystone_url({"FEAA": frame}) == "http://example.com"


def test_eddystone_url_ignores_other_frames():
    uid_frame = bytes([0x00, 0xF8]) + bytes(16)
    assert eddystone_url({EDDYSTONE: uid_frame}) is None
    assert eddystone_url({"0000180f-0000-1000-8000-00805f9b34fb": URL_FRAME}) is None


def test_decode_advertisement_manufacturer_data():
    reading = decode_advertisement({0x0499: DF5}, {})
    assert reading.to_record()["mac"] == "CB:B8:33:4C:88:01"


def test_decode_advertisement_ignores_other_vendors():
    assert decode_advertisement({0x004C: bytes([0x02, 0x15]) + bytes(21)}, {}) is None


def test_found_then_updated():
    found = []
    updated = []
    scanner = RuuviScanner(on_found=found.append, on_updated=lambda tag, r: updated.append((tag, r)))

    scanner.handle_advertisement(_device(), _adv({0x0499: DF5}, rssi=-70))
    scanner.handle_advertisement(_device(), _adv({0x0499: DF5}, rssi=-65))

    assert len(found) == 1
    assert found[0].id == "cbb8334c8801"
    assert found[0].address == "CB:B8:33:4C:88:01"
    assert len(updated) == 2
    assert updated[1][1]["rssi"] == -65
    assert updated[1][1]["temperature"] == 24.3
    assert found[0].last_reading["rssi"] == -65


def test_updated_record_keys_per_format():
    records = {}
    scanner = RuuviScanner(on_updated=lambda tag, r: records.__setitem__(tag.address, r))

    scanner.handle_advertisement(_device("AA:AA:AA:AA:AA:AA"), _adv({0x0499: DF3}))
    scanner.handle_advertisement(_device("BB:BB:BB:BB:BB:BB"), _adv(service_data={EDDYSTONE: URL_FRAME}))

    assert {"humidity", "temperature", "pressure", "rssi", "accelerationX", "accelerationY",
            "accelerationZ", "battery"} <= set(records["AA:AA:AA:AA:AA:AA"])
    assert {"humidity", "temperature", "pressure", "rssi"} <= set(records["BB:BB:BB:BB:BB:BB"])
    assert "battery" not in records["BB:BB:BB:BB:BB:BB"]


def test_undecodable_advertisement_is_dropped():
    found = []
    scanner = RuuviScanner(on_found=found.append)

    result = scanner.handle_advertisement(_device(), _adv({0x0499: bytes([0x05, 0x00])}))

    assert result is None
    assert found == []
    assert scanner.tags == {}


class _FakeBleakScanner:
    advertisements = []

    def __init__(self, callback, adapter=None):
        self.callback = callback
        self.adapter = adapter
        self.stopped = False

    async def start(self):
        for device, adv in self.advertisements:
            self.callback(device, adv)

    async def stop(self):
        self.stopped = True


def test_find_tags_returns_seen_tags(monkeypatch):
    monkeypatch.setattr(ruuvi_scanner, "BleakScanner", _FakeBleakScanner)
    monkeypatch.setattr(
        _FakeBleakScanner,
        "advertisements",
        [
            (_device("AA:AA:AA:AA:AA:AA"), _adv({0x0499: DF3})),
            (_device("BB:BB:BB:BB:BB:BB"), _adv({0x0499: DF5})),
            (_device("CC:CC:CC:CC:CC:CC"), _adv({0x004C: b"\x02\x15"})),
        ],
    )

    tags = asyncio.run(RuuviScanner().find_tags(scan_time=0))

    assert sorted(t.address for t in tags) == ["AA:AA:AA:AA:AA:AA", "BB:BB:BB:BB:BB:BB"]


def test_find_tags_without_tags_raises(monkeypatch):
    monkeypatch.setattr(ruuvi_scanner, "BleakScanner", _FakeBleakScanner)
    monkeypatch.setattr(_FakeBleakScanner, "advertisements", [])

    with pytest.raises(NoBeaconsFound, match="No beacons found"):
        asyncio.run(RuuviScanner().find_tags(scan_time=0))
