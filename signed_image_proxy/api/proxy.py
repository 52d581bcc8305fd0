# signed_image_proxy/api/proxy.py
"""
Public image proxy endpoint.

GET /api/image/{token}

Usage: <img src="/api/image/{token}" />

No authentication: safety rests entirely on token verification. Every
verification failure gets the same 403 so clients cannot learn which check
failed; the reason is only logged. Upstream failures become a generic 502 and
the upstream error body is never forwarded.
"""

from __future__ import annotations
import asyncio, logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

from ..tokens.policy import is_root_relative, parse_absolute
from ..upstream import UpstreamErrorStatus, UpstreamFetcher, UpstreamResponse, UpstreamUnreachable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["image-proxy"])

DISCONNECT_POLL_SECONDS = 0.25

# nginx's code for "client closed request"; nobody is left to read it
CLIENT_CLOSED_REQUEST = 499


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "-"


def service_origin(request: Request, config) -> Optional[str]:
    """
    Origin root-relative locators are fetched from: PUBLIC_BASE_URL, else the
    address this server accepted the connection on. The Host header is never
    used, so a client cannot point a same-origin token at another machine.
    """
    if config.public_origin:
        return config.public_origin
    server = request.scope.get("server")
    if not server or server[1] is None:
        # unix socket
        return None
    host, port = server[0], server[1]
    scheme = request.scope.get("scheme", "http")
    if ":" in host:
        host = f"[{host}]"
    if port == (443 if scheme == "https" else 80):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def resolve_target(locator: str, request: Request, config) -> Optional[str]:
    """Turn a verified locator into an absolute http(s) URL, or None."""
    if is_root_relative(locator):
        origin = service_origin(request, config)
        if origin is None:
            return None
        locator = origin + locator
    if parse_absolute(locator) is None:
        return None
    return locator


async def _wait_for_disconnect(request: Request, poll_interval: float) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(poll_interval)


async def open_while_connected(
    request: Request,
    fetcher: UpstreamFetcher,
    url: str,
    poll_interval: float = DISCONNECT_POLL_SECONDS,
) -> Optional[UpstreamResponse]:
    """
    Open the upstream response unless the client goes away first.

    Returns None when the client disconnected; the pending upstream request is
    cancelled, which makes httpx drop its connection. Upstream errors propagate
    as raised by ``fetcher.open``.
    """
    fetch = asyncio.ensure_future(fetcher.open(url))
    watch = asyncio.ensure_future(_wait_for_disconnect(request, poll_interval))
    try:
        await asyncio.wait({fetch, watch}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        fetch.cancel()
        raise
    finally:
        watch.cancel()

    if fetch.done():
        return fetch.result()

    logger.info("Client %s disconnected before upstream answered; cancelling fetch", _client_ip(request))
    fetch.cancel()
    (outcome,) = await asyncio.gather(fetch, return_exceptions=True)
    if isinstance(outcome, UpstreamResponse):
        await outcome.aclose()
    return None


@router.get("/image/")
async def image_token_missing():
    raise HTTPException(status_code=400, detail="token required")


@router.get("/image/{token}")
async def proxy_image(token: str, request: Request) -> Response:
    """
    Verify the token, fetch the authorized resource and stream it back.

    Returns:
        StreamingResponse with the upstream body, Content-Type from upstream and
        Cache-Control forwarded or defaulted

    Raises:
        HTTPException: 400 missing token or unparsable locator, 403 invalid token,
                      502 upstream unreachable or non-2xx
    """
    state = request.app.state
    config = state.config

    if not token.strip():
        raise HTTPException(status_code=400, detail="token required")

    # 1) Verify token
    result = state.verifier.verify(token)
    if not result.ok:
        logger.warning("Image token verify failed: %s (client %s)", result.reason.value, _client_ip(request))
        raise HTTPException(status_code=403, detail="invalid token")

    # 2) Resolve fetch target
    target = resolve_target(result.locator, request, config)
    if target is None:
        raise HTTPException(status_code=400, detail="bad url")

    # 3) Open upstream
    try:
        upstream = await open_while_connected(request, state.fetcher, target)
    except ValueError:
        raise HTTPException(status_code=400, detail="bad url")
    except UpstreamErrorStatus:
        raise HTTPException(status_code=502, detail="upstream fetch failed")
    except UpstreamUnreachable:
        raise HTTPException(status_code=502, detail="proxy error")
    if upstream is None:
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    # 4) Stream it
    headers = {
        "Content-Type": upstream.content_type or "application/octet-stream",
        "Cache-Control": upstream.cache_control or config.default_cache_control,
    }
    if upstream.content_encoding:
        headers["Content-Encoding"] = upstream.content_encoding

    # background close covers a client disconnect that cancels the body iterator
    return StreamingResponse(
        upstream.iter_body(),
        headers=headers,
        background=BackgroundTask(upstream.aclose),
    )
