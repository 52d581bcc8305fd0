#!/usr/bin/env python3
"""
Signed Image Proxy - Main Entry Point

Usage:
    python main.py                       # Serve on 0.0.0.0:8000
    python main.py --env-file proxy.env  # Load configuration from a file
    python main.py --help                # Show help
"""

from signed_image_proxy.main import main

if __name__ == "__main__":
    main()
