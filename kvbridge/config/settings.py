"""
KV-Bridge Configuration Settings

This module contains the configuration constants for the bridge and its
in-process key-value client. Values can be overridden through environment
variables prefixed with KV_BRIDGE_.
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Bridge and client configuration settings."""

    # Cluster layout
    NUM_NODES: int = int(os.environ.get("KV_BRIDGE_NUM_NODES", "3"))
    NUM_SHARDS: int = int(os.environ.get("KV_BRIDGE_NUM_SHARDS", "3"))

    # Per-node storage limits
    MAX_KEYS: int = int(os.environ.get("KV_BRIDGE_MAX_KEYS", "10000"))
    MAX_KEY_LENGTH: int = 250
    MAX_VALUE_LENGTH: int = 20 * 1024 * 1024

    # Logging settings
    DEBUG: bool = os.environ.get("KV_BRIDGE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KV_BRIDGE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()


def setup_logging(debug: Optional[bool] = None) -> None:
    """Configure logging based on the debug flag (defaults to settings.DEBUG)."""
    if debug is None:
        debug = settings.DEBUG
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )
