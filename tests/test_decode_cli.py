import json

import pytest

from decode_ruuvi import decode_input, main, parse_hex
from ruuvi_errors import InvalidData

DF5_MANUFACTURER = "99 04 05 12 FC 53 94 C3 7C 00 04 FF FC 04 0C AC 36 42 00 CD CB B8 33 4C 88 01"


def test_parse_hex_accepts_separators():
    assert parse_hex("99:04:03") == bytes([0x99, 0x04, 0x03])
    assert parse_hex("0x990403") == bytes([0x99, 0x04, 0x03])


def test_parse_hex_rejects_garbage():
    with pytest.raises(InvalidData):
        parse_hex("zz")


def test_decode_input_url():
    assert decode_input("https://ruu.vi/#ApgVAMAw").to_record()["humidity"] == 76


def test_main_prints_records(capsys):
    assert main(["--manufacturer", DF5_MANUFACTURER]) == 0

    record = json.loads(capsys.readouterr().out)
    assert record["mac"] == "CB:B8:33:4C:88:01"
    assert record["battery"] == 2977


def test_main_reports_failures(capsys):
    assert main(["https://bad.url.com/#foo", "https://ruu.vi/#ApgVAMAw"]) == 1

    captured = capsys.readouterr()
    assert "Not a ruuviTag url" in captured.err
    assert json.loads(captured.out)["pressure"] == 992
