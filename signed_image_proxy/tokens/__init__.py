# signed_image_proxy/tokens/__init__.py

from .codec import encode, decode, DecodeError
from .policy import HostPolicy
from .reasons import FailureReason
from .signer import Signer, IssuedToken
from .verifier import Verifier, VerifyResult

__all__ = [
    "encode",
    "decode",
    "DecodeError",
    "HostPolicy",
    "FailureReason",
    "Signer",
    "IssuedToken",
    "Verifier",
    "VerifyResult",
]
