"""Client-library interface types for KV-Bridge."""

from .commands import ConfigurationStatus, ErrorCode, OperationType, StorageMode
from .responses import (
    ArithmeticResponse,
    GetResponse,
    RemoveResponse,
    StoreResponse,
    TouchResponse,
)

__all__ = [
    "ArithmeticResponse",
    "ConfigurationStatus",
    "ErrorCode",
    "GetResponse",
    "OperationType",
    "RemoveResponse",
    "StorageMode",
    "StoreResponse",
    "TouchResponse",
]
