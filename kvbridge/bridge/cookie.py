"""
Completion Cookie Module

One CompletionCookie is created per logical asynchronous call. It keeps
the issuing object alive, remembers the user's callback and opaque data,
and turns every underlying completion into one callback invocation.

Callback argument layouts (error is False on success, else the error code;
payload slots are None on failure):

    get         (data, error, key, cas, flags, value)
    store       (data, error, key, cas)
    arithmetic  (data, error, key, cas, value)
    remove      (data, error, key)
    touch       (data, error, key)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Tuple, Union

from ..protocol.commands import ErrorCode
from .host import PersistentRef, create_cas, execution_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GetResult:
    """Completion of a single-key read."""
    key: bytes
    cas: int = 0
    flags: int = 0
    value: bytes = b""

    kind = "get"
    width = 3

    def payload(self) -> Tuple:
        return (create_cas(self.cas), self.flags, bytes(self.value))


@dataclass(frozen=True)
class StoreResult:
    """Completion of a store; carries the new CAS."""
    key: bytes
    cas: int = 0

    kind = "store"
    width = 1

    def payload(self) -> Tuple:
        return (create_cas(self.cas),)


@dataclass(frozen=True)
class ArithmeticResult:
    """Completion of an increment/decrement; carries the new counter value."""
    key: bytes
    value: int = 0
    cas: int = 0

    kind = "arithmetic"
    width = 2

    def payload(self) -> Tuple:
        return (create_cas(self.cas), self.value)


@dataclass(frozen=True)
class RemoveResult:
    """Completion of a remove."""

    key: bytes

    kind = "remove"
    width = 0

    def payload(self) -> Tuple:
        return ()


@dataclass(frozen=True)
class TouchResult:
    """Completion of a touch."""

    key: bytes

    kind = "touch"
    width = 0

    def payload(self) -> Tuple:
        return ()


ResultPayload = Union[GetResult, StoreResult, ArithmeticResult, RemoveResult, TouchResult]


class CompletionCookie:
    """
    Per-call completion context.

    The cookie owns one reference each to the parent object, the callback
    and the user data. It never decrements ``remaining`` and never disposes
    itself; whoever registered it decides when the call is finished
    (see CookieRegistry.complete).

    Usage:
        cookie = CompletionCookie(bucket, on_done, data="ctx", remaining=2)
        cookie.result(ErrorCode.SUCCESS, GetResult(b"k1", cas=42, value=b"v1"))
        cookie.dispose()

    Attributes:
        remaining: Underlying completions still expected for this call
    """

    def __init__(
            self,
            parent: Any,
            callback: Callable[..., Any],
            data: Any = None,
            remaining: int = 1,
    ):
        """
        Initialize the cookie.

        Args:
            parent: Object issuing the call; kept alive until disposal
            callback: Invoked once per underlying completion
            data: Opaque value passed back as the first callback argument
            remaining: Number of completions the caller expects
        """
        self.remaining = remaining
        self._parent = PersistentRef(parent)
        self._data = PersistentRef(data)
        self._callback = PersistentRef(callback)

    @property
    def parent(self) -> Any:
        return self._parent.get()

    @property
    def data(self) -> Any:
        return self._data.get()

    @property
    def callback(self) -> Callable[..., Any]:
        return self._callback.get()

    @property
    def disposed(self) -> bool:
        return self._parent.is_empty and self._data.is_empty and self._callback.is_empty

    def build_arguments(self, error: int, payload: ResultPayload) -> List[Any]:
        """
        Build the fixed-arity argument list for one completion.

        Slot 0 is the user data, slot 1 the error indicator, slot 2 the key.
        The remaining ``payload.width`` slots hold the payload on success
        and None on failure.
        """
        argv: List[Any] = [self.data, False, bytes(payload.key)]

        if error != ErrorCode.SUCCESS:
            argv[1] = error
            argv.extend([None] * payload.width)
        else:
            argv.extend(payload.payload())

        return argv

    def result(self, error: int, payload: ResultPayload) -> Any:
        """
        Deliver one underlying completion to the callback.

        The callback runs synchronously and may issue new operations,
        including on the same client, before this method returns. Its
        return value is passed back; exceptions it raises propagate.

        Args:
            error: ErrorCode (or raw integer code) reported by the client
            payload: One of the result variants

        Raises:
            ReferenceDisposedError: If the cookie has already been disposed
        """
        with execution_scope(self):
            argv = self.build_arguments(error, payload)
            logger.debug(f"Dispatching {payload.kind} completion for {argv[2]!r} (error={error!r})")
            return self.callback(*argv)

    def dispose(self) -> None:
        """Release the owned references. Safe to call more than once."""
        self._parent.dispose()
        self._data.dispose()
        self._callback.dispose()

    def __enter__(self) -> "CompletionCookie":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else f"remaining={self.remaining}"
        return f"CompletionCookie({state})"
