"""
RuuviTag short-link (Eddystone-URL) payload extraction.

Tags in URL mode advertise links like:
  https://ruu.vi/#BJgVAMAwP

The fragment is base64 (standard or URL-safe alphabet) of a data format 2
or 4 payload. Format 4 links carry one extra character after the 8 base64
characters: a random tag identifier. It is decoded to its 6-bit base64
value and appended to the payload so the decoder sees it as a trailing byte.
Any other format with a leftover character is rejected as InvalidData.
"""

from __future__ import annotations

import base64
import binascii
import re

from ruuvi_errors import InvalidData, InvalidUrl, NotRuuviUrl
from ruuvi_formats import URL_FORMATS, DataFormat, Reading, decode

RUUVI_HOST = "ruu.vi"

_B64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_URLSAFE = str.maketrans("-_", "+/")
_HOST_RE = re.compile(r"^(?:[a-z][a-z0-9+.\-]*://)?(?P<host>[^/?#:]*)", re.IGNORECASE)


def _host(url: str) -> str:
    m = _HOST_RE.match(url.strip())
    return m.group("host").lower() if m else ""


def _decode_fragment(fragment: str) -> bytes:
    fragment = fragment.translate(_URLSAFE)
    tail = b""
    if len(fragment) % 4 == 1:
        fragment, tag = fragment[:-1], fragment[-1]
        if tag not in _B64_ALPHABET:
            raise InvalidData(f"bad identifier character {tag!r}")
        tail = bytes([_B64_ALPHABET.index(tag)])
    try:
        data = base64.b64decode(fragment, validate=True)
    except binascii.Error as e:
        raise InvalidData(str(e)) from e
    if not data:
        raise InvalidData("empty fragment")
    if tail and data[0] != DataFormat.URL_V4:
        raise InvalidData(f"identifier character on data format {data[0]} link")
    return data + tail


def extract(url: str) -> bytes:
    """
    Return the raw payload carried by a ruu.vi link.

    Checks run in order: host (NotRuuviUrl), fragment present and non-empty
    (InvalidUrl), fragment decodes to at least one byte (InvalidData).
    """
    if _host(url) != RUUVI_HOST:
        raise NotRuuviUrl(url)
    _, sep, fragment = url.partition("#")
    if not sep or not fragment:
        raise InvalidUrl(url)
    return _decode_fragment(fragment.strip())


def parse_url(url: str) -> Reading:
    """Decode a ruu.vi link. Only data formats 2 and 4 travel in links."""
    return decode(extract(url), formats=URL_FORMATS)
