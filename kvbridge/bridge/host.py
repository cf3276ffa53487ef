"""
Host Invocation Primitives

Small building blocks the completion dispatcher uses to hand results to
Python callables: owning references with idempotent disposal, the
per-invocation execution scope and the boxed CAS value.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List

from .errors import ReferenceDisposedError

MAX_CAS = 2 ** 64 - 1

_EMPTY = object()

# Owners of the scopes currently open, innermost last
_active_scopes: List[Any] = []


class PersistentRef:
    """
    Owning reference that outlives a single callback frame.

    The reference is either empty or holds exactly one value. ``dispose``
    empties it and may be called any number of times.

    Usage:
        ref = PersistentRef(callback)
        ref.get()(...)
        ref.dispose()
    """

    __slots__ = ("_value",)

    def __init__(self, value: Any = _EMPTY):
        self._value = value

    @property
    def is_empty(self) -> bool:
        return self._value is _EMPTY

    def get(self) -> Any:
        """Return the held value; raise ReferenceDisposedError if empty."""
        if self._value is _EMPTY:
            raise ReferenceDisposedError("persistent reference is empty")
        return self._value

    def dispose(self) -> bool:
        """Release the held value. Returns False if there was nothing to release."""
        if self._value is _EMPTY:
            return False
        self._value = _EMPTY
        return True

    def __enter__(self) -> "PersistentRef":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        if self.is_empty:
            return "PersistentRef(<empty>)"
        return f"PersistentRef({self._value!r})"


@contextmanager
def execution_scope(owner: Any) -> Iterator[None]:
    """
    Open an invocation scope for the duration of a callback.

    Scopes nest when a callback reenters the client; each one is popped on
    every exit path.
    """
    _active_scopes.append(owner)
    try:
        yield
    finally:
        _active_scopes.pop()


def scope_depth() -> int:
    """Number of invocation scopes currently open."""
    return len(_active_scopes)


def current_scope_owner() -> Any:
    """Owner of the innermost open scope, or None outside any scope."""
    return _active_scopes[-1] if _active_scopes else None


@dataclass(frozen=True)
class Cas:
    """Boxed 64-bit compare-and-swap token."""
    value: int

    def __post_init__(self):
        if not 0 <= self.value <= MAX_CAS:
            raise ValueError(f"CAS token out of range: {self.value}")

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


def create_cas(token: int) -> Cas:
    """Wrap a raw CAS token as a value callbacks can hold on to."""
    return Cas(int(token))
