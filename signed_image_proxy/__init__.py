# signed_image_proxy/__init__.py

__version__ = "0.1.0"

from .config import Config
from .tokens import Signer, Verifier, HostPolicy, FailureReason
from .app import create_app

__all__ = [
    "Config",
    "Signer",
    "Verifier",
    "HostPolicy",
    "FailureReason",
    "create_app",
]
