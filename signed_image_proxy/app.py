# signed_image_proxy/app.py
"""
FastAPI application factory.

Everything the endpoints need (config, signer, verifier, policy, outbound
client, authenticator) is built here from an explicit ``Config`` and hung on
``app.state``. Nothing reads the environment after start-up, so tests can run
several apps side by side with different secrets.
"""

from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from . import __version__
from .api import BearerJWTAuthenticator, issue_router, proxy_router
from .api.auth import Authenticator
from .api.rate_limit import SlidingWindowLimiter
from .config import Config
from .tokens import HostPolicy, Signer, Verifier
from .upstream import UpstreamFetcher, build_client

logger = logging.getLogger(__name__)


def create_app(
    config: Config,
    *,
    authenticator: Optional[Authenticator] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Build the image proxy app.

    Args:
        config: Loaded configuration
        authenticator: Caller check for token issuance (default: bearer JWT
                       verified with ``config.jwt_secret``)
        upstream_transport: httpx transport for outbound fetches (tests)
        clock: Time source for issuing and checking expiry (tests)
    """
    signer = Signer.from_config(config, clock=clock)
    policy = HostPolicy.from_config(config)

    if authenticator is None:
        if not config.jwt_secret:
            logger.warning("JWT_SECRET not set: image token issuance will reject every caller")
        authenticator = BearerJWTAuthenticator(config.jwt_secret)
    if not config.restricts_hosts:
        logger.warning("IMAGE_PROXY_ALLOWLIST is empty: tokens may be issued for any host")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = build_client(config, transport=upstream_transport)
        app.state.fetcher = UpstreamFetcher(client, config)
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(title="Signed Image Proxy", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.signer = signer
    app.state.policy = policy
    app.state.verifier = Verifier(signer, policy)
    app.state.authenticator = authenticator
    app.state.issue_limiter = (
        SlidingWindowLimiter(config.issue_rate_limit_per_minute, clock=clock)
        if config.issue_rate_limit_per_minute > 0
        else None
    )

    app.include_router(issue_router)
    app.include_router(proxy_router)

    @app.get("/api/health")
    async def health() -> dict:
        return {"ok": True}

    if config.uploads_dir is not None:
        config.uploads_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/uploads", StaticFiles(directory=str(config.uploads_dir)), name="uploads")

    return app
