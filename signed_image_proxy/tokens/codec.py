# signed_image_proxy/tokens/codec.py
"""
URL-safe encoding of locators into token segments.

A segment is unpadded base64url of the UTF-8 locator, so it only ever uses
``A-Z a-z 0-9 - _`` and can never contain the ``.`` token delimiter.
"""

from __future__ import annotations
import base64, binascii, re

_SEGMENT_RE = re.compile(r"[A-Za-z0-9_-]*")


class DecodeError(ValueError):
    """Raised when a segment is not something ``encode`` could have produced."""


def _b64u(data: bytes) -> str:
    """
    Convert bytes to URL-safe base64 string (no padding).
    """
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64u_dec(s: str) -> bytes:
    """
    Convert URL-safe base64 string back to bytes.
    Handles missing padding by adding it back; rejects anything else.
    """
    if not _SEGMENT_RE.fullmatch(s):
        raise DecodeError("segment contains characters outside the base64url alphabet")
    if len(s) % 4 == 1:
        raise DecodeError("segment has an impossible length")
    pad = "=" * (-len(s) % 4)
    try:
        data = base64.urlsafe_b64decode(s + pad)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(str(e)) from e
    # non-zero trailing bits decode fine but would give a second spelling of the same bytes
    if _b64u(data) != s:
        raise DecodeError("segment is not canonically encoded")
    return data


def encode(locator: str) -> str:
    return _b64u(locator.encode("utf-8"))


def decode(segment: str) -> str:
    data = _b64u_dec(segment)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError("segment does not hold UTF-8 text") from e
