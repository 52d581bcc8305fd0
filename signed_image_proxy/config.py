# signed_image_proxy/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Tuple
from urllib.parse import urlsplit

from dotenv import dotenv_values


DEFAULT_CACHE_CONTROL = "public, max-age=3600"


def _split_hosts(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(h.strip().lower() for h in raw.split(",") if h.strip())


@dataclass(frozen=True)
class Config:
    # --- token signing ---
    secret: str
    token_ttl_seconds: int = 300
    max_token_ttl_seconds: int = 86400

    # --- policy ---
    allowed_hosts: Tuple[str, ...] = ()   # empty = no restriction beyond same-origin
    public_base_url: Optional[str] = None  # e.g. https://shop.example.com

    # --- upstream fetch ---
    upstream_connect_timeout: float = 5.0
    upstream_read_timeout: float = 10.0
    upstream_total_timeout: float = 30.0
    default_cache_control: str = DEFAULT_CACHE_CONTROL
    user_agent: str = "image-proxy/1.0"

    # --- issuance ---
    issue_rate_limit_per_minute: int = 0   # 0 disables the dedicated limit
    jwt_secret: Optional[str] = None

    # --- misc ---
    uploads_dir: Optional[Path] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.secret:
            raise ValueError("IMAGE_PROXY_SECRET is required")
        if self.token_ttl_seconds <= 0:
            raise ValueError("IMAGE_PROXY_TOKEN_TTL must be positive")
        if self.max_token_ttl_seconds < self.token_ttl_seconds:
            raise ValueError("IMAGE_PROXY_MAX_TOKEN_TTL must be >= IMAGE_PROXY_TOKEN_TTL")
        for name in ("upstream_connect_timeout", "upstream_read_timeout", "upstream_total_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.issue_rate_limit_per_minute < 0:
            raise ValueError("IMAGE_PROXY_ISSUE_RATE_LIMIT must be >= 0")
        if self.public_base_url is not None:
            parts = urlsplit(self.public_base_url)
            if parts.scheme not in ("http", "https") or not parts.hostname:
                raise ValueError(
                    f"IMAGE_PROXY_PUBLIC_BASE_URL must be an absolute http(s) URL (got: {self.public_base_url!r})"
                )

    # ---------- helpers ----------

    @property
    def restricts_hosts(self) -> bool:
        return bool(self.allowed_hosts)

    @property
    def public_origin(self) -> Optional[str]:
        """Scheme and host of PUBLIC_BASE_URL without a trailing slash."""
        if not self.public_base_url:
            return None
        return self.public_base_url.rstrip("/")

    @property
    def public_host(self) -> Optional[str]:
        if not self.public_base_url:
            return None
        return urlsplit(self.public_base_url).hostname

    # ---------- construction ----------

    @staticmethod
    def _load_env_file(env_file_path: Optional[Path]) -> Dict[str, str]:
        """Load KEY=VALUE pairs from an env file if provided."""
        if env_file_path is None or not Path(env_file_path).exists():
            return {}
        return {k: v for k, v in dotenv_values(env_file_path).items() if v is not None}

    @staticmethod
    def _get_env_value(name: str, default: str = None, env_vars: Optional[Dict[str, str]] = None) -> str:
        """Get environment variable value, checking file first, then system env."""
        if env_vars and name in env_vars:
            return env_vars[name]
        return os.getenv(name, default)

    @classmethod
    def _get_env_number(cls, name: str, cast, default, env_vars: Optional[Dict[str, str]] = None):
        raw = cls._get_env_value(name, None, env_vars)
        if raw is None or raw.strip() == "":
            return default
        try:
            return cast(raw.strip())
        except ValueError:
            raise ValueError(f"{name} must be a number (got: {raw!r})")

    @classmethod
    def from_env(cls, env_file_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from environment variables, optionally from a file.

        Args:
            env_file_path: Optional path to environment file. If provided, variables
                         from the file take precedence over system environment variables.

        Environment variables:
          - IMAGE_PROXY_SECRET          (required)
          - IMAGE_PROXY_TOKEN_TTL       = 300
          - IMAGE_PROXY_MAX_TOKEN_TTL   = 86400
          - IMAGE_PROXY_ALLOWLIST       = cdn.example.com,res.cloudinary.com
          - IMAGE_PROXY_PUBLIC_BASE_URL = https://shop.example.com
          - IMAGE_PROXY_CONNECT_TIMEOUT = 5
          - IMAGE_PROXY_READ_TIMEOUT    = 10
          - IMAGE_PROXY_TOTAL_TIMEOUT   = 30
          - IMAGE_PROXY_CACHE_CONTROL   = public, max-age=3600
          - IMAGE_PROXY_USER_AGENT      = image-proxy/1.0
          - IMAGE_PROXY_ISSUE_RATE_LIMIT= 0
          - JWT_SECRET
          - UPLOADS_DIR
          - LOG_LEVEL                   = INFO

        Raises:
            ValueError: if the secret is missing or a value is malformed.
        """
        env_vars = cls._load_env_file(env_file_path)

        secret = (cls._get_env_value("IMAGE_PROXY_SECRET", "", env_vars) or "").strip()
        if not secret:
            raise ValueError("IMAGE_PROXY_SECRET is required")

        uploads_env = cls._get_env_value("UPLOADS_DIR", None, env_vars)
        public_base_url = (cls._get_env_value("IMAGE_PROXY_PUBLIC_BASE_URL", "", env_vars) or "").strip()

        return cls(
            secret=secret,
            token_ttl_seconds=cls._get_env_number("IMAGE_PROXY_TOKEN_TTL", int, 300, env_vars),
            max_token_ttl_seconds=cls._get_env_number("IMAGE_PROXY_MAX_TOKEN_TTL", int, 86400, env_vars),
            allowed_hosts=_split_hosts(cls._get_env_value("IMAGE_PROXY_ALLOWLIST", "", env_vars)),
            public_base_url=public_base_url or None,
            upstream_connect_timeout=cls._get_env_number("IMAGE_PROXY_CONNECT_TIMEOUT", float, 5.0, env_vars),
            upstream_read_timeout=cls._get_env_number("IMAGE_PROXY_READ_TIMEOUT", float, 10.0, env_vars),
            upstream_total_timeout=cls._get_env_number("IMAGE_PROXY_TOTAL_TIMEOUT", float, 30.0, env_vars),
            default_cache_control=cls._get_env_value("IMAGE_PROXY_CACHE_CONTROL", DEFAULT_CACHE_CONTROL, env_vars),
            user_agent=cls._get_env_value("IMAGE_PROXY_USER_AGENT", "image-proxy/1.0", env_vars),
            issue_rate_limit_per_minute=cls._get_env_number("IMAGE_PROXY_ISSUE_RATE_LIMIT", int, 0, env_vars),
            jwt_secret=cls._get_env_value("JWT_SECRET", None, env_vars) or None,
            uploads_dir=Path(uploads_env).resolve() if uploads_env else None,
            log_level=(cls._get_env_value("LOG_LEVEL", "INFO", env_vars) or "INFO").upper(),
        )
