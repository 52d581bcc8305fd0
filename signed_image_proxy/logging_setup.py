# signed_image_proxy/logging_setup.py
from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send this package's logs to stderr. Safe to call more than once."""
    root = logging.getLogger("signed_image_proxy")
    root.setLevel(level.upper())
    if not any(getattr(h, "_image_proxy", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._image_proxy = True
        root.addHandler(handler)
    root.propagate = False
