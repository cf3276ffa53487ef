"""
Bucket Module

The Bucket is the object applications talk to. Every public operation
creates one CompletionCookie, registers it under a fresh call id and
schedules the underlying single-key operations on the client with that id
as their cookie. The registration shim delivers each completion back to
the user's callback and retires the cookie after its last completion.

Callback argument layouts:

    get / touch / remove   see kvbridge.bridge.cookie
    set, add, replace,
    append, prepend        (data, error, key, cas)
    incr, decr             (data, error, key, cas, value)

``error`` is False on success and an ErrorCode otherwise, so callbacks
should test it for truthiness.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .bridge.callbacks import setup_callbacks
from .bridge.cookie import CompletionCookie
from .bridge.errors import OperationScheduleError
from .bridge.registry import CookieRegistry
from .client.client import AsyncKVClient
from .protocol.commands import ConfigurationStatus, ErrorCode, StorageMode

logger = logging.getLogger(__name__)

Key = Union[str, bytes]

BYTES_LIKE = (bytes, bytearray, memoryview)

EVENTS = ("connect", "error")


def encode_key(key: Key) -> bytes:
    """Keys given as text are stored as their UTF-8 bytes."""
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, BYTES_LIKE):
        return bytes(key)
    raise TypeError(f"Key must be str or bytes-like, not {type(key).__name__}")


def encode_value(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, BYTES_LIKE):
        return bytes(value)
    raise TypeError(f"Value must be str or bytes-like, not {type(value).__name__}")


def _as_key_list(keys: Union[Key, Sequence[Key]]) -> List[bytes]:
    if isinstance(keys, (str,) + BYTES_LIKE):
        return [encode_key(keys)]
    return [encode_key(key) for key in keys]


class Bucket:
    """
    Callback-style key-value API on top of AsyncKVClient.

    Usage:
        bucket = Bucket()
        bucket.on("connect", lambda config: ...)
        bucket.connect()
        bucket.set("k1", "v1", on_stored)
        bucket.get(["k1", "k2"], on_value, data={"request": 7})
        bucket.wait()

    Attributes:
        client: The underlying key-value client
        cookies: Registry of outstanding calls
    """

    def __init__(self, client: AsyncKVClient = None):
        """
        Initialize the bucket.

        Args:
            client: Client to drive (creates a new one if not provided)
        """
        self.client = client if client is not None else AsyncKVClient()
        self.cookies = CookieRegistry()
        self._handlers: Dict[str, List[Callable]] = {event: [] for event in EVENTS}
        self.configuration: Optional[ConfigurationStatus] = None

        self.client.set_cookie(self)
        setup_callbacks(self.client)

    # ------------------------------------------------------------------
    # Instance events
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Callable) -> None:
        """Register a handler for "connect" (config) or "error" (error, errinfo)."""
        if event not in self._handlers:
            raise ValueError(f"Unknown event: {event!r}. Must be one of {EVENTS}")
        self._handlers[event].append(handler)

    def on_connect(self, config: ConfigurationStatus) -> None:
        """Called by the client whenever a cluster configuration is received."""
        self.configuration = config
        logger.info(f"Cluster configuration received: {ConfigurationStatus(config).name}")
        for handler in list(self._handlers["connect"]):
            handler(config)

    def on_error(self, error: int, errinfo: str) -> None:
        """Called by the client for instance-level failures."""
        logger.error(f"Client error {error!r}: {errinfo}")
        for handler in list(self._handlers["error"]):
            handler(error, errinfo)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        self._check("connect", self.client.connect())

    def wait(self) -> None:
        """Pump the client until every outstanding operation has completed."""
        self.client.wait()

    async def wait_async(self) -> None:
        """Like wait(), but lets the running asyncio loop drive the pump."""
        await self.client.drain()

    @property
    def outstanding(self) -> int:
        """Number of calls with completions still pending."""
        return len(self.cookies)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @staticmethod
    def _check(operation: str, code: ErrorCode) -> None:
        if code != ErrorCode.SUCCESS:
            raise OperationScheduleError(operation, code)

    def _issue(
            self,
            operation: str,
            expected: int,
            callback: Callable[..., Any],
            data: Any,
            schedule: Callable[[int], ErrorCode],
    ) -> int:
        cookie = CompletionCookie(self, callback, data, remaining=expected)
        call_id = self.cookies.register(cookie)

        code = schedule(call_id)
        if code != ErrorCode.SUCCESS:
            self.cookies.discard(call_id)
            logger.warning(f"Failed to schedule {operation}: {ErrorCode(code).name}")
            raise OperationScheduleError(operation, code)

        logger.debug(f"Issued {operation} as call {call_id} ({expected} completion(s))")
        return call_id

    def get(self, keys: Union[Key, Sequence[Key]], callback: Callable, data: Any = None) -> int:
        """
        Read one or more keys. The callback fires once per key.

        Returns:
            The call id of the issued call
        """
        key_list = _as_key_list(keys)
        return self._issue("get", len(key_list), callback, data,
                           lambda call_id: self.client.get(call_id, key_list))

    def _store(self, mode: StorageMode, key: Key, value, callback, data,
               flags: int, exptime: int, cas: int) -> int:
        raw_key, raw_value = encode_key(key), encode_value(value)
        return self._issue(
            mode.name.lower(), 1, callback, data,
            lambda call_id: self.client.store(call_id, mode, raw_key, raw_value,
                                              flags=flags, exptime=exptime, cas=int(cas)),
        )

    def set(self, key: Key, value, callback: Callable, data: Any = None,
            flags: int = 0, exptime: int = 0, cas: int = 0) -> int:
        return self._store(StorageMode.SET, key, value, callback, data, flags, exptime, cas)

    def add(self, key: Key, value, callback: Callable, data: Any = None,
            flags: int = 0, exptime: int = 0, cas: int = 0) -> int:
        return self._store(StorageMode.ADD, key, value, callback, data, flags, exptime, cas)

    def replace(self, key: Key, value, callback: Callable, data: Any = None,
                flags: int = 0, exptime: int = 0, cas: int = 0) -> int:
        return self._store(StorageMode.REPLACE, key, value, callback, data, flags, exptime, cas)

    def append(self, key: Key, value, callback: Callable, data: Any = None,
               flags: int = 0, exptime: int = 0, cas: int = 0) -> int:
        return self._store(StorageMode.APPEND, key, value, callback, data, flags, exptime, cas)

    def prepend(self, key: Key, value, callback: Callable, data: Any = None,
                flags: int = 0, exptime: int = 0, cas: int = 0) -> int:
        return self._store(StorageMode.PREPEND, key, value, callback, data, flags, exptime, cas)

    def incr(self, key: Key, callback: Callable, data: Any = None, delta: int = 1,
             initial: Optional[int] = None, exptime: int = 0) -> int:
        """Increment a counter, creating it with ``initial`` if given and missing."""
        raw_key = encode_key(key)
        return self._issue(
            "incr", 1, callback, data,
            lambda call_id: self.client.arithmetic(call_id, raw_key, abs(delta),
                                                   initial=initial, exptime=exptime),
        )

    def decr(self, key: Key, callback: Callable, data: Any = None, delta: int = 1,
             initial: Optional[int] = None, exptime: int = 0) -> int:
        """Decrement a counter; counters never go below zero."""
        raw_key = encode_key(key)
        return self._issue(
            "decr", 1, callback, data,
            lambda call_id: self.client.arithmetic(call_id, raw_key, -abs(delta),
                                                   initial=initial, exptime=exptime),
        )

    def remove(self, key: Key, callback: Callable, data: Any = None, cas: int = 0) -> int:
        raw_key = encode_key(key)
        return self._issue("remove", 1, callback, data,
                           lambda call_id: self.client.remove(call_id, raw_key, cas=int(cas)))

    def touch(self, keys: Union[Key, Sequence[Key]], callback: Callable, data: Any = None,
              exptime: int = 0) -> int:
        """Update the expiry of one or more keys. The callback fires once per key."""
        key_list = _as_key_list(keys)
        return self._issue("touch", len(key_list), callback, data,
                           lambda call_id: self.client.touch(call_id, key_list, exptime=exptime))

    def __repr__(self) -> str:
        return f"Bucket(client={self.client!r}, outstanding={self.outstanding})"
