"""
Response Record Definitions

Records delivered by the key-value client to its registered callbacks.
Every record starts with a structural ``version`` tag; version 0 is the
only layout defined here.
"""

from dataclasses import dataclass


@dataclass
class GetResponse:
    """
    Result of a single-key read.

    Attributes:
        version: Layout version of this record
        key: The key that was read
        value: Stored bytes (empty on failure)
        flags: Opaque 32-bit flags stored alongside the value
        cas: CAS token of the item
    """
    version: int = 0
    key: bytes = b""
    value: bytes = b""
    flags: int = 0
    cas: int = 0


@dataclass
class StoreResponse:
    """Result of a store operation (add/replace/set/append/prepend)."""
    version: int = 0
    key: bytes = b""
    cas: int = 0


@dataclass
class ArithmeticResponse:
    """Result of an increment or decrement; ``value`` is the new counter."""
    version: int = 0
    key: bytes = b""
    value: int = 0
    cas: int = 0


@dataclass
class RemoveResponse:
    """Result of a remove operation."""
    version: int = 0
    key: bytes = b""
    cas: int = 0


@dataclass
class TouchResponse:
    """Result of a touch (expiry update) operation."""
    version: int = 0
    key: bytes = b""
    cas: int = 0
