"""
KV-Bridge: Asynchronous Completion Bridge

Adapts a single-threaded, callback-driven key-value client to Python
callables. One completion cookie is created per logical call and every
underlying completion is dispatched to the user's callback with a
fixed-arity argument list.
"""

from .bridge.errors import (
    KVBridgeError,
    OperationScheduleError,
    ReferenceDisposedError,
    UnknownCookieError,
    UnsupportedResponseVersion,
)
from .bridge.host import Cas, create_cas
from .bucket import Bucket
from .client.client import AsyncKVClient
from .config.settings import settings, setup_logging
from .protocol.commands import ConfigurationStatus, ErrorCode, StorageMode

__version__ = "1.0.0"

__all__ = [
    "AsyncKVClient",
    "Bucket",
    "Cas",
    "ConfigurationStatus",
    "ErrorCode",
    "KVBridgeError",
    "OperationScheduleError",
    "ReferenceDisposedError",
    "StorageMode",
    "UnknownCookieError",
    "UnsupportedResponseVersion",
    "create_cas",
    "settings",
    "setup_logging",
]
