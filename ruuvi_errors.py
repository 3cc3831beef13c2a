"""
Errors raised while turning RuuviTag URLs and payloads into readings.

Every decode failure is a ValueError subclass so callers that only care
about "bad input" can catch ValueError; callers that want to branch on the
reason catch the specific class.
"""

from __future__ import annotations

from typing import Optional


class DecodeError(ValueError):
    pass


class NotRuuviUrl(DecodeError):
    def __init__(self, url: str):
        super().__init__("Not a ruuviTag url")
        self.url = url


class InvalidUrl(DecodeError):
    def __init__(self, url: str):
        super().__init__("Invalid url")
        self.url = url


class InvalidData(DecodeError):
    def __init__(self, detail: str = ""):
        super().__init__(f"Invalid data: {detail}" if detail else "Invalid data")
        self.detail = detail


class UnsupportedFormat(DecodeError):
    def __init__(self, selector: int):
        super().__init__(f"Unsupported data format: {selector}")
        self.selector = selector


class TruncatedPayload(DecodeError):
    def __init__(self, data_format: int, expected: int, actual: int):
        super().__init__(
            f"Truncated payload for data format {int(data_format)}: expected {expected} bytes, got {actual}"
        )
        self.data_format = int(data_format)
        self.expected = expected
        self.actual = actual


class NoBeaconsFound(RuntimeError):
    def __init__(self, scan_time: Optional[float] = None):
        super().__init__("No beacons found")
        self.scan_time = scan_time
