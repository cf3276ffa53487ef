"""Node storage module for KV-Bridge."""

from .store import Item, KVStore

__all__ = ["Item", "KVStore"]
