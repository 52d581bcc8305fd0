#!/usr/bin/env python3
"""
Setup script for signed-image-proxy package
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

# Read requirements
requirements = []
with open(this_directory / 'requirements.txt', 'r') as f:
    for line in f:
        line = line.strip()
        if line and not line.startswith('#'):
            requirements.append(line)

setup(
    name="signed-image-proxy",
    version="0.1.0",
    description="Signed, time-limited image access tokens and a streaming image proxy",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["signed_image_proxy", "signed_image_proxy.*"]),
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    entry_points={
        "console_scripts": [
            "signed-image-proxy=signed_image_proxy.main:main",
        ],
    },
)
