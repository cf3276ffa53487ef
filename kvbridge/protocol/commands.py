"""
Operation and Status Definitions

Enumerations shared by the key-value client and the completion bridge.
Numeric values follow the libcouchbase 2.x C headers so that codes handed
to user callbacks are the ones callers already know.
"""

from enum import Enum, IntEnum, auto


class OperationType(Enum):
    """Enumeration of operation kinds that report completions."""
    GET = auto()
    STORE = auto()
    ARITHMETIC = auto()
    REMOVE = auto()
    TOUCH = auto()


class StorageMode(IntEnum):
    """Enumeration of store operation modes."""
    ADD = 1
    REPLACE = 2
    SET = 3
    APPEND = 4
    PREPEND = 5


class ConfigurationStatus(IntEnum):
    """Status reported by the configuration callback."""
    NEW = 0
    CHANGED = 1
    UNCHANGED = 2


class ErrorCode(IntEnum):
    """
    Operation error codes.

    SUCCESS is the only non-failure value. Every other member identifies a
    specific failure kind and is passed through to callbacks unchanged.
    """
    SUCCESS = 0x00
    AUTH_CONTINUE = 0x01
    AUTH_ERROR = 0x02
    DELTA_BADVAL = 0x03
    E2BIG = 0x04
    EBUSY = 0x05
    EINTERNAL = 0x06
    EINVAL = 0x07
    ENOMEM = 0x08
    ERANGE = 0x09
    ERROR = 0x0A
    ETMPFAIL = 0x0B
    KEY_EEXISTS = 0x0C
    KEY_ENOENT = 0x0D
    LIBEVENT_ERROR = 0x0E
    NETWORK_ERROR = 0x0F
    NOT_MY_VBUCKET = 0x10
    NOT_STORED = 0x11
    NOT_SUPPORTED = 0x12
    UNKNOWN_COMMAND = 0x13
    UNKNOWN_HOST = 0x14
    PROTOCOL_ERROR = 0x15
    ETIMEDOUT = 0x16
    CONNECT_ERROR = 0x17
    BUCKET_ENOENT = 0x18
    CLIENT_ENOMEM = 0x19
