"""In-process asynchronous key-value client."""

from .client import AsyncKVClient

__all__ = ["AsyncKVClient"]
