# signed_image_proxy/api/auth.py
"""
Caller authentication for the issuance endpoint.

The user system lives outside this service; all the proxy needs from it is
"who is calling, and are they signed in". That boundary is an
``Authenticator``: any callable taking the request and returning a
``Caller``, or raising HTTPException(401).

The default ``BearerJWTAuthenticator`` accepts the storefront's login JWTs
(``Authorization: Bearer <jwt>``, HS256, ``id`` or ``sub`` claim).
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import jwt
from fastapi import HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    id: str
    role: Optional[str] = None


Authenticator = Callable[[Request], Caller]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class BearerJWTAuthenticator:
    def __init__(self, secret: Optional[str], algorithms: Sequence[str] = ("HS256",)):
        self.secret = secret
        self.algorithms = list(algorithms)

    def __call__(self, request: Request) -> Caller:
        scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
        if scheme.lower() != "bearer" or not token:
            raise _unauthorized("Not authorized, token missing")
        if not self.secret:
            # no JWT_SECRET configured: nobody can be verified
            raise _unauthorized("Not authorized, token failed")

        try:
            payload = jwt.decode(token, self.secret, algorithms=self.algorithms)
        except jwt.ExpiredSignatureError:
            raise _unauthorized("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning("Bearer token rejected: %s", type(e).__name__)
            raise _unauthorized("Not authorized, token failed")

        caller_id = payload.get("id") or payload.get("sub")
        if not caller_id:
            raise _unauthorized("Invalid token payload")
        return Caller(id=str(caller_id), role=payload.get("role"))


def require_caller(request: Request) -> Caller:
    """FastAPI dependency: authenticate with the app's configured authenticator."""
    return request.app.state.authenticator(request)
