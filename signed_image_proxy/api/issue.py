# signed_image_proxy/api/issue.py
"""
Token issuance endpoint.

POST /api/image-token   (authenticated)
Body:     {"url": "/uploads/shoe.png", "ttlSeconds": 300}
Response: {"token": "...", "expiresAt": 1700000300}

With IMAGE_PROXY_PUBLIC_BASE_URL configured, a root-relative url is resolved
against it before signing, so the token names an unambiguous fetch target.
Without it the path is signed as given; the Host header of the issuing request
never ends up inside a token. The host policy is applied here too; a
disallowed host never gets a token minted for it.
"""

from __future__ import annotations
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from ..tokens import FailureReason
from ..tokens.policy import is_root_relative
from .auth import Caller, require_caller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["image-proxy"])


class IssuedTokenResponse(BaseModel):
    token: str
    expiresAt: int


def normalize_locator(url: str, config) -> str:
    if is_root_relative(url) and config.public_origin:
        return config.public_origin + url
    return url


def _resolve_ttl(raw: Any, config) -> int:
    if raw is None:
        return config.token_ttl_seconds
    if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
        raise HTTPException(status_code=400, detail="ttlSeconds must be a positive integer")
    return min(raw, config.max_token_ttl_seconds)


@router.post("/image-token", response_model=IssuedTokenResponse)
async def issue_image_token(request: Request, caller: Caller = Depends(require_caller)) -> IssuedTokenResponse:
    state = request.app.state
    config = state.config

    limiter = state.issue_limiter
    if limiter is not None and not limiter.allow(caller.id):
        logger.warning("Image token issuance rate limited for caller %s", caller.id)
        raise HTTPException(status_code=429, detail="rate limited")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="url required")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="url required")

    url = payload.get("url")
    if not isinstance(url, str) or not url.strip():
        raise HTTPException(status_code=400, detail="url required")
    ttl = _resolve_ttl(payload.get("ttlSeconds"), config)

    final_url = normalize_locator(url.strip(), config)
    reason = state.policy.check(final_url)
    if reason is FailureReason.BAD_URL:
        raise HTTPException(status_code=400, detail="bad url")
    if reason is FailureReason.HOST_NOT_ALLOWED:
        logger.warning("Caller %s asked for a token for a disallowed host", caller.id)
        raise HTTPException(status_code=403, detail="host not allowed")

    issued = state.signer.issue_token(final_url, ttl)
    logger.info("Issued image token for caller %s (expires %s)", caller.id, issued.expires_at)
    return IssuedTokenResponse(token=issued.token, expiresAt=issued.expires_at)
