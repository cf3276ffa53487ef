"""Completion bridge: cookies, dispatch and callback registration."""

from .callbacks import SUPPORTED_RESPONSE_VERSION, setup_callbacks
from .cookie import (
    ArithmeticResult,
    CompletionCookie,
    GetResult,
    RemoveResult,
    StoreResult,
    TouchResult,
)
from .registry import CookieRegistry

__all__ = [
    "SUPPORTED_RESPONSE_VERSION",
    "ArithmeticResult",
    "CompletionCookie",
    "CookieRegistry",
    "GetResult",
    "RemoveResult",
    "StoreResult",
    "TouchResult",
    "setup_callbacks",
]
