"""
Node Storage Module

This module implements the per-node item storage used by the in-process
key-value client.

Items carry a value, opaque flags, a CAS token and an optional expiry.
Every operation reports an ErrorCode instead of raising, mirroring how the
client library reports per-operation failures.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..config.settings import settings
from ..protocol.commands import ErrorCode, StorageMode

COUNTER_MODULUS = 2 ** 64


@dataclass
class Item:
    """A stored value with its metadata."""
    value: bytes
    flags: int = 0
    cas: int = 0
    expires_at: float = 0  # 0 means no expiration

    def is_expired(self, now: float) -> bool:
        return bool(self.expires_at) and self.expires_at <= now


class KVStore:
    """
    In-memory item store with CAS, TTL and LRU eviction support.

    Internal Storage:
        Uses OrderedDict for O(1) operations with LRU ordering.
        Format: key -> Item

    Every successful mutation stamps the item with a fresh CAS token taken
    from a strictly increasing per-store counter.

    Attributes:
        max_size: Maximum number of keys allowed in the store
        max_value_length: Largest value accepted by store operations
    """

    def __init__(self, max_size: int = None, max_value_length: int = None):
        """
        Initialize the store.

        Args:
            max_size: Maximum number of keys (default from settings.MAX_KEYS)
            max_value_length: Maximum value size (default from settings.MAX_VALUE_LENGTH)
        """
        self.max_size = max_size if max_size is not None else settings.MAX_KEYS
        self.max_value_length = (
            max_value_length if max_value_length is not None else settings.MAX_VALUE_LENGTH
        )

        self._store: "OrderedDict[bytes, Item]" = OrderedDict()
        self._last_cas = 0

    def _next_cas(self) -> int:
        self._last_cas += 1
        return self._last_cas

    @staticmethod
    def _expiry(exptime: int) -> float:
        return time.time() + exptime if exptime and exptime > 0 else 0

    def _lookup(self, key: bytes) -> Optional[Item]:
        """Return the live item for key, dropping it if it has expired."""
        item = self._store.get(key)
        if item is None:
            return None
        if item.is_expired(time.time()):
            # Lazy expiration
            self._store.pop(key, None)
            return None
        return item

    def _put(self, key: bytes, item: Item) -> None:
        if key in self._store:
            self._store[key] = item
            self._store.move_to_end(key)
            return

        # Evict LRU if at capacity
        if len(self._store) >= self.max_size:
            self._store.popitem(last=False)

        self._store[key] = item

    def get(self, key: bytes) -> Tuple[ErrorCode, Optional[Item]]:
        """
        Retrieve the item for a given key.

        Returns:
            (SUCCESS, item) if found and not expired, (KEY_ENOENT, None) otherwise
        """
        item = self._lookup(key)
        if item is None:
            return ErrorCode.KEY_ENOENT, None

        # Mark as most recently used
        self._store.move_to_end(key)
        return ErrorCode.SUCCESS, item

    def store(
            self,
            mode: StorageMode,
            key: bytes,
            value: bytes,
            flags: int = 0,
            exptime: int = 0,
            cas: int = 0,
    ) -> Tuple[ErrorCode, int]:
        """
        Store a value according to the storage mode.

        Args:
            mode: ADD, REPLACE, SET, APPEND or PREPEND
            key: The key to store
            value: The bytes to store
            flags: Opaque flags kept with the value (ignored by APPEND/PREPEND)
            exptime: Time-to-live in seconds (0 = no expiration)
            cas: Expected CAS of the existing item (0 = unconditional)

        Returns:
            (error, new_cas); new_cas is 0 on failure
        """
        if len(value) > self.max_value_length:
            return ErrorCode.E2BIG, 0

        current = self._lookup(key)

        if mode == StorageMode.ADD:
            if current is not None:
                return ErrorCode.KEY_EEXISTS, 0
        elif mode in (StorageMode.APPEND, StorageMode.PREPEND):
            if current is None:
                return ErrorCode.NOT_STORED, 0
        elif current is None and (mode == StorageMode.REPLACE or cas):
            return ErrorCode.KEY_ENOENT, 0

        if cas and current is not None and current.cas != cas:
            return ErrorCode.KEY_EEXISTS, 0

        if mode == StorageMode.APPEND:
            value = current.value + value
        elif mode == StorageMode.PREPEND:
            value = value + current.value

        if mode in (StorageMode.APPEND, StorageMode.PREPEND):
            if len(value) > self.max_value_length:
                return ErrorCode.E2BIG, 0
            item = Item(value=value, flags=current.flags, cas=self._next_cas(),
                        expires_at=current.expires_at)
        else:
            item = Item(value=value, flags=flags, cas=self._next_cas(),
                        expires_at=self._expiry(exptime))

        self._put(key, item)
        return ErrorCode.SUCCESS, item.cas

    def remove(self, key: bytes, cas: int = 0) -> Tuple[ErrorCode, int]:
        """
        Delete an item.

        Returns:
            (SUCCESS, cas_of_removed_item), (KEY_ENOENT, 0) if missing,
            (KEY_EEXISTS, 0) if cas is given and does not match
        """
        item = self._lookup(key)
        if item is None:
            return ErrorCode.KEY_ENOENT, 0
        if cas and item.cas != cas:
            return ErrorCode.KEY_EEXISTS, 0

        self._store.pop(key, None)
        return ErrorCode.SUCCESS, item.cas

    def touch(self, key: bytes, exptime: int = 0) -> Tuple[ErrorCode, int]:
        """Update an item's expiry without changing its value."""
        item = self._lookup(key)
        if item is None:
            return ErrorCode.KEY_ENOENT, 0

        item.expires_at = self._expiry(exptime)
        item.cas = self._next_cas()
        self._store.move_to_end(key)
        return ErrorCode.SUCCESS, item.cas

    def arithmetic(
            self,
            key: bytes,
            delta: int,
            initial: Optional[int] = None,
            exptime: int = 0,
    ) -> Tuple[ErrorCode, int, int]:
        """
        Increment (delta > 0) or decrement (delta < 0) a decimal counter.

        Args:
            key: The counter key
            delta: Signed amount to add
            initial: Value to create the counter with when missing;
                     None means a missing counter is an error
            exptime: Expiry applied when the counter is created

        Returns:
            (error, new_value, new_cas). Increments wrap at 2**64,
            decrements stop at zero.
        """
        item = self._lookup(key)

        if item is None:
            if initial is None:
                return ErrorCode.KEY_ENOENT, 0, 0
            value = initial % COUNTER_MODULUS
            item = Item(value=str(value).encode(), cas=self._next_cas(),
                        expires_at=self._expiry(exptime))
            self._put(key, item)
            return ErrorCode.SUCCESS, value, item.cas

        try:
            current = int(item.value.decode("ascii"))
        except (UnicodeDecodeError, ValueError):
            return ErrorCode.DELTA_BADVAL, 0, 0
        if current < 0:
            return ErrorCode.DELTA_BADVAL, 0, 0

        if delta >= 0:
            value = (current + delta) % COUNTER_MODULUS
        else:
            value = max(current + delta, 0)

        item.value = str(value).encode()
        item.cas = self._next_cas()
        self._store.move_to_end(key)
        return ErrorCode.SUCCESS, value, item.cas

    def size(self) -> int:
        """
        Get the current number of keys in the store.

        Note: This may include expired keys that haven't been cleaned up yet.
        """
        return len(self._store)

    def clear(self) -> None:
        """Remove all keys from the store."""
        self._store.clear()

    def cleanup_expired(self) -> int:
        """
        Remove all expired keys from the store (active expiration).

        Returns:
            Number of keys removed
        """
        now = time.time()
        to_delete = [k for k, item in self._store.items() if item.is_expired(now)]
        for key in to_delete:
            self._store.pop(key, None)
        return len(to_delete)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing total_keys, expired_keys, active_keys,
            max_size, utilization and last_cas
        """
        now = time.time()
        total = len(self._store)
        expired = sum(1 for item in self._store.values() if item.is_expired(now))

        return {
            "total_keys": total,
            "expired_keys": expired,
            "active_keys": total - expired,
            "max_size": self.max_size,
            "utilization": total / self.max_size if self.max_size > 0 else 0,
            "last_cas": self._last_cas,
        }
