# signed_image_proxy/tokens/verifier.py
"""
Token verification: the single place where every security check lives.

Checks run in order and stop at the first failure:
1. Token splits into exactly three non-empty parts       -> invalid-format
2. Locator segment decodes                                -> invalid-format
3. Expiry is an integer                                   -> bad-expiry
4. Token has not expired                                  -> expired
5. Signature matches (constant-time)                      -> bad-signature
6. Locator passes the host policy                         -> bad-url / host-not-allowed

``verify`` never raises for attacker-controlled input.
"""

from __future__ import annotations
import hmac, logging, re, time
from dataclasses import dataclass
from typing import Callable, Optional

from .codec import DecodeError, decode
from .policy import HostPolicy
from .reasons import FailureReason
from .signer import DELIMITER, Signer

logger = logging.getLogger(__name__)

# canonical decimal only; "0123" would otherwise share a signature with "123"
_EXPIRY_RE = re.compile(r"0|[1-9][0-9]{0,19}")


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    locator: Optional[str] = None
    reason: Optional[FailureReason] = None

    @classmethod
    def success(cls, locator: str) -> "VerifyResult":
        return cls(ok=True, locator=locator)

    @classmethod
    def failure(cls, reason: FailureReason) -> "VerifyResult":
        return cls(ok=False, reason=reason)


class Verifier:
    def __init__(self, signer: Signer, policy: HostPolicy, clock: Optional[Callable[[], float]] = None):
        self.signer = signer
        self.policy = policy
        self._clock = clock

    def _now(self) -> int:
        if self._clock is not None:
            return int(self._clock())
        return self.signer.now()

    def verify(self, token: str) -> VerifyResult:
        try:
            return self._verify(token)
        except Exception:
            logger.exception("Unexpected error while verifying token")
            return VerifyResult.failure(FailureReason.INVALID_FORMAT)

    def _verify(self, token: str) -> VerifyResult:
        if not isinstance(token, str):
            return VerifyResult.failure(FailureReason.INVALID_FORMAT)

        parts = token.split(DELIMITER)
        if len(parts) != 3 or not all(parts):
            return VerifyResult.failure(FailureReason.INVALID_FORMAT)
        encoded_locator, expiry_str, sig = parts

        try:
            locator = decode(encoded_locator)
        except DecodeError:
            return VerifyResult.failure(FailureReason.INVALID_FORMAT)

        if not _EXPIRY_RE.fullmatch(expiry_str):
            return VerifyResult.failure(FailureReason.BAD_EXPIRY)
        expires_at = int(expiry_str)

        if self._now() > expires_at:
            return VerifyResult.failure(FailureReason.EXPIRED)

        expected = self.signer.sign(locator, expires_at)
        # bytes, so non-ASCII input cannot make compare_digest raise
        if not hmac.compare_digest(sig.encode("utf-8"), expected.encode("ascii")):
            return VerifyResult.failure(FailureReason.BAD_SIGNATURE)

        reason = self.policy.check(locator)
        if reason is not None:
            return VerifyResult.failure(reason)

        return VerifyResult.success(locator)
