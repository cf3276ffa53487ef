#!/usr/bin/env python3
"""
KV-Bridge Setup Script
======================
Allows installation of the kv-bridge package.

Usage:
    pip install -e .           # Development install
    pip install -e .[test]     # Development install with test tools
"""

from setuptools import setup, find_packages

setup(
    name="kv-bridge",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
)
