"""
RuuviTag sensor payload decoder.

A payload starts with a one-byte data format tag followed by a fixed layout
of big-endian fields:

  format 2/4 (URL, legacy):   [2|4][humidity u8][temp whole u8][temp frac u8][pressure u16] (+ format 4 id)
  format 3 (RAWv1):           [3][humidity u8][temp whole u8][temp frac u8][pressure u16]
                              [accX i16][accY i16][accZ i16][battery u16]
  format 5 (RAWv2):           [5][temp i16][humidity u16][pressure u16][accX i16][accY i16][accZ i16]
                              [power u16][movement u8][sequence u16][mac 6]

Formats 3 and 5 are broadcast as manufacturer data behind the 2-byte Ruuvi
company id (0x0499, little-endian on air as 99 04). Use decode() when the
bytes start with the format tag and decode_manufacturer_data() when the
company id is still in front of it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union

from ruuvi_errors import InvalidData, TruncatedPayload, UnsupportedFormat

RUUVI_COMPANY_ID = 0x0499
MANUFACTURER_PREFIX_LEN = 2

Payload = Union[bytes, bytearray, memoryview]


class DataFormat(IntEnum):
    URL_V2 = 2
    RAW_V1 = 3
    URL_V4 = 4
    RAW_V2 = 5


# Minimum bytes counted from the format tag (inclusive).
PAYLOAD_LENGTHS: Dict[DataFormat, int] = {
    DataFormat.URL_V2: 6,
    DataFormat.RAW_V1: 14,
    DataFormat.URL_V4: 6,
    DataFormat.RAW_V2: 24,
}

URL_FORMATS: Tuple[DataFormat, ...] = (DataFormat.URL_V2, DataFormat.URL_V4)
MANUFACTURER_FORMATS: Tuple[DataFormat, ...] = (DataFormat.RAW_V1, DataFormat.RAW_V2)


def _u16(b: bytes, offset: int) -> int:
    return int.from_bytes(b[offset:offset + 2], "big")


def _i16(b: bytes, offset: int) -> int:
    return int.from_bytes(b[offset:offset + 2], "big", signed=True)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def sign_magnitude_temperature(whole: int, fraction: int) -> float:
    """
    Legacy (formats 2/3/4) temperature: whole degrees plus hundredths, with
    values above 128 meaning "negative, magnitude = value - 128".
    """
    temperature = whole + fraction / 100
    if temperature > 128:
        temperature = -(temperature - 128)
    return round(temperature, 2)


def twos_complement_temperature(raw: int) -> float:
    """Format 5 temperature: signed 16-bit in 0.005 degC steps."""
    return round(raw * 0.005, 2)


@dataclass(frozen=True)
class Reading:
    """Base for the per-format results; to_record() gives the flat mapping."""

    data_format: ClassVar[DataFormat]

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"dataFormat": int(self.data_format)}
        for key, value in asdict(self).items():
            if value is not None:
                record[_camel(key)] = value
        return record


@dataclass(frozen=True)
class DataFormat2Reading(Reading):
    humidity: float
    temperature: float
    pressure: float  # hPa

    data_format: ClassVar[DataFormat] = DataFormat.URL_V2


@dataclass(frozen=True)
class DataFormat4Reading(Reading):
    humidity: float
    temperature: float
    pressure: float  # hPa
    eddystone_id: Optional[str] = None

    data_format: ClassVar[DataFormat] = DataFormat.URL_V4


@dataclass(frozen=True)
class DataFormat3Reading(Reading):
    humidity: float
    temperature: float
    pressure: int  # Pa
    acceleration_x: int  # milli-g
    acceleration_y: int
    acceleration_z: int
    battery: int  # mV

    data_format: ClassVar[DataFormat] = DataFormat.RAW_V1


@dataclass(frozen=True)
class DataFormat5Reading(Reading):
    temperature: float
    humidity: float
    pressure: int  # Pa
    acceleration_x: int  # milli-g
    acceleration_y: int
    acceleration_z: int
    battery: int  # mV
    tx_power: int  # dBm
    movement_counter: int
    measurement_sequence_number: int
    mac: str

    data_format: ClassVar[DataFormat] = DataFormat.RAW_V2


def _legacy_fields(b: bytes) -> Dict[str, float]:
    return {
        "humidity": b[1] / 2.0,
        "temperature": sign_magnitude_temperature(b[2], b[3]),
        "pressure": round((_u16(b, 4) + 50000) / 100, 2),
    }


def _decode_df2(b: bytes) -> DataFormat2Reading:
    return DataFormat2Reading(**_legacy_fields(b))


def _decode_df4(b: bytes) -> DataFormat4Reading:
    # Anything after the legacy layout is the tag's identifier.
    eddystone_id = b[6:].hex() if len(b) > 6 else None
    return DataFormat4Reading(eddystone_id=eddystone_id, **_legacy_fields(b))


def _decode_df3(b: bytes) -> DataFormat3Reading:
    return DataFormat3Reading(
        humidity=b[1] / 2.0,
        temperature=sign_magnitude_temperature(b[2], b[3]),
        pressure=_u16(b, 4) + 50000,
        acceleration_x=_i16(b, 6),
        acceleration_y=_i16(b, 8),
        acceleration_z=_i16(b, 10),
        battery=_u16(b, 12),
    )


def _decode_df5(b: bytes) -> DataFormat5Reading:
    power_info = _u16(b, 13)
    return DataFormat5Reading(
        temperature=twos_complement_temperature(_i16(b, 1)),
        humidity=round(_u16(b, 3) * 0.0025, 2),
        pressure=_u16(b, 5) + 50000,
        acceleration_x=_i16(b, 7),
        acceleration_y=_i16(b, 9),
        acceleration_z=_i16(b, 11),
        # top 11 bits: battery above 1.6 V, bottom 5 bits: tx power in 2 dBm steps from -40
        battery=(power_info >> 5) + 1600,
        tx_power=(power_info & 0x1F) * 2 - 40,
        movement_counter=b[15],
        measurement_sequence_number=_u16(b, 16),
        mac=":".join(f"{x:02X}" for x in b[18:24]),
    )


DECODERS: Dict[DataFormat, Callable[[bytes], Reading]] = {
    DataFormat.URL_V2: _decode_df2,
    DataFormat.RAW_V1: _decode_df3,
    DataFormat.URL_V4: _decode_df4,
    DataFormat.RAW_V2: _decode_df5,
}


def _data_format(selector: int, allowed: Optional[Tuple[DataFormat, ...]] = None) -> DataFormat:
    try:
        fmt = DataFormat(selector)
    except ValueError:
        raise UnsupportedFormat(selector) from None
    if allowed is not None and fmt not in allowed:
        raise UnsupportedFormat(selector)
    return fmt


def decode(payload: Payload, formats: Optional[Tuple[DataFormat, ...]] = None) -> Reading:
    """
    Decode a payload whose first byte is the data format tag.

    formats limits the accepted tags (all four when None).
    Raises InvalidData for an empty buffer, UnsupportedFormat for an unknown
    or disallowed tag and TruncatedPayload when the buffer is shorter than
    the layout.
    """
    b = bytes(payload)
    if not b:
        raise InvalidData("empty payload")
    fmt = _data_format(b[0], formats)
    expected = PAYLOAD_LENGTHS[fmt]
    if len(b) < expected:
        raise TruncatedPayload(fmt, expected, len(b))
    return DECODERS[fmt](b)


def decode_manufacturer_data(data: Payload) -> Reading:
    """
    Decode manufacturer-specific data that still carries the 2-byte company
    id in front of the format tag (formats 3 and 5 only).
    """
    b = bytes(data)
    if len(b) <= MANUFACTURER_PREFIX_LEN:
        raise InvalidData(f"manufacturer data too short ({len(b)} bytes)")
    fmt = _data_format(b[MANUFACTURER_PREFIX_LEN], MANUFACTURER_FORMATS)
    expected = MANUFACTURER_PREFIX_LEN + PAYLOAD_LENGTHS[fmt]
    if len(b) < expected:
        raise TruncatedPayload(fmt, expected, len(b))
    return DECODERS[fmt](b[MANUFACTURER_PREFIX_LEN:])
