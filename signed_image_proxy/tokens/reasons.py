# signed_image_proxy/tokens/reasons.py
from __future__ import annotations

from enum import Enum


class FailureReason(str, Enum):
    """Why a token was rejected. Logged server-side, never sent to clients."""
    INVALID_FORMAT   = "invalid-format"
    BAD_EXPIRY       = "bad-expiry"
    EXPIRED          = "expired"
    BAD_SIGNATURE    = "bad-signature"
    BAD_URL          = "bad-url"
    HOST_NOT_ALLOWED = "host-not-allowed"
