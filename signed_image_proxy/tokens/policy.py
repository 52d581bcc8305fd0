# signed_image_proxy/tokens/policy.py
"""
Host authorization for locators.

Shared by the verifier and the issuance endpoint so both sides apply the
exact same rule.
"""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlsplit, SplitResult

from .reasons import FailureReason


def is_root_relative(locator: str) -> bool:
    # "//host/path" is scheme-relative, not same-origin
    return locator.startswith("/") and not locator.startswith("//")


def parse_absolute(locator: str) -> Optional[SplitResult]:
    """Parse an absolute http(s) locator, or return None."""
    try:
        parts = urlsplit(locator)
        host = parts.hostname
        parts.port  # raises ValueError on a garbage port
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not host:
        return None
    return parts


class HostPolicy:
    def __init__(self, allowed_hosts: Iterable[str] = (), same_origin_host: Optional[str] = None):
        self.allowed_hosts = frozenset(h.strip().lower() for h in allowed_hosts if h.strip())
        self.same_origin_host = same_origin_host.lower() if same_origin_host else None

    @classmethod
    def from_config(cls, config) -> "HostPolicy":
        return cls(config.allowed_hosts, same_origin_host=config.public_host)

    def check(self, locator: str) -> Optional[FailureReason]:
        """
        Return None when the locator is allowed, else the failure reason.

        An absolute locator counts as same-origin only against the configured
        public host. The Host header of a request is client-controlled and is
        never consulted.
        """
        if is_root_relative(locator):
            return None

        parts = parse_absolute(locator)
        if parts is None:
            return FailureReason.BAD_URL

        host = parts.hostname.lower()
        if self.same_origin_host and host == self.same_origin_host:
            return None

        if self.allowed_hosts and host not in self.allowed_hosts:
            return FailureReason.HOST_NOT_ALLOWED
        return None
