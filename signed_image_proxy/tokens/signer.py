# signed_image_proxy/tokens/signer.py
"""
Token signing for the image proxy.

Token Structure: <b64url_locator>.<expiry>.<hex_signature>
- b64url_locator: unpadded base64url of the locator (see codec.py)
- expiry: unix timestamp (seconds) after which the token is rejected
- signature: HMAC-SHA256 of "locator|expiry" using the server secret

The signature is deterministic: same locator, expiry and secret always give
the same token. The expiry is the only state needed to bound replay.
Rotating the secret invalidates every outstanding token.
"""

from __future__ import annotations
import hmac, time
from dataclasses import dataclass
from hashlib import sha256
from typing import Callable

from .codec import encode

DELIMITER = "."


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: int


class Signer:
    def __init__(self, secret: str, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("IMAGE_PROXY_SECRET is required")
        self._key = secret.encode("utf-8")
        self._clock = clock

    @classmethod
    def from_config(cls, config, clock: Callable[[], float] = time.time) -> "Signer":
        return cls(config.secret, clock=clock)

    def now(self) -> int:
        return int(self._clock())

    def sign(self, locator: str, expiry: int) -> str:
        """
        Compute the hex HMAC-SHA256 over the canonical string "locator|expiry".
        """
        msg = f"{locator}|{int(expiry)}".encode("utf-8")
        return hmac.new(self._key, msg, sha256).hexdigest()

    def issue_token(self, locator: str, ttl_seconds: int) -> IssuedToken:
        """
        Create a token authorizing ``locator`` for ``ttl_seconds``.

        Args:
            locator: Absolute URL or root-relative path (e.g. "/uploads/a.png")
            ttl_seconds: Lifetime of the token, must be positive

        Returns:
            IssuedToken with the wire token and its expiry timestamp
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        expires_at = self.now() + int(ttl_seconds)
        sig = self.sign(locator, expires_at)
        token = DELIMITER.join((encode(locator), str(expires_at), sig))
        return IssuedToken(token=token, expires_at=expires_at)
