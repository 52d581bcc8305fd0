#!/usr/bin/env python3
"""
Signed Image Proxy - Main Entry Point

Usage:
    signed-image-proxy                          # Serve on 0.0.0.0:8000
    signed-image-proxy --env-file proxy.env     # Load configuration from a file
    python -m signed_image_proxy.main --help    # Show help
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from .app import create_app
from .config import Config
from .logging_setup import configure_logging

logger = logging.getLogger("signed_image_proxy.main")


def main(argv=None):
    """Load configuration once, build the app and serve it."""
    parser = argparse.ArgumentParser(description="Signed Image Proxy - token-gated image streaming")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--env-file", type=Path, default=Path("proxy.env"),
                        help="env file whose values override the process environment (default: proxy.env)")
    args = parser.parse_args(argv)

    env_file = args.env_file if args.env_file.exists() else None
    try:
        cfg = Config.from_env(env_file_path=env_file)
    except ValueError as e:
        # config-missing-secret and friends: refuse to start
        configure_logging("INFO")
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    configure_logging(cfg.log_level)
    if env_file:
        logger.info("Loaded configuration from %s", env_file)
    logger.info(
        "Token TTL %ss (max %ss), allow-list: %s",
        cfg.token_ttl_seconds,
        cfg.max_token_ttl_seconds,
        ", ".join(cfg.allowed_hosts) or "<any host>",
    )

    app = create_app(cfg)
    uvicorn.run(app, host=args.host, port=args.port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
