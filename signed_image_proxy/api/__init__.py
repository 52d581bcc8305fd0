# signed_image_proxy/api/__init__.py

from .auth import Caller, BearerJWTAuthenticator, require_caller
from .issue import router as issue_router
from .proxy import router as proxy_router

__all__ = [
    "Caller",
    "BearerJWTAuthenticator",
    "require_caller",
    "issue_router",
    "proxy_router",
]
