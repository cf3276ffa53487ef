"""
Cookie Registry Module

Maps generated call ids to live completion cookies. The client library
only ever sees the call id; completions are correlated by looking the id
up here, and the registry owns the decrement-and-dispose protocol.
"""

import itertools
import logging
from typing import Dict

from .cookie import CompletionCookie
from .errors import UnknownCookieError

logger = logging.getLogger(__name__)


class CookieRegistry:
    """
    Registry of outstanding calls.

    A cookie stays registered until ``complete`` has been called once for
    every completion it expects, at which point it is removed and disposed.

    Usage:
        call_id = registry.register(cookie)
        ...  # for every completion delivered for call_id:
        registry.lookup(call_id).result(error, payload)
        registry.complete(call_id)
    """

    def __init__(self):
        self._cookies: Dict[int, CompletionCookie] = {}
        self._ids = itertools.count(1)

    def register(self, cookie: CompletionCookie) -> int:
        """Store a cookie and return its call id."""
        call_id = next(self._ids)
        self._cookies[call_id] = cookie
        return call_id

    def lookup(self, call_id: int) -> CompletionCookie:
        """
        Get the cookie for a call id.

        Raises:
            UnknownCookieError: If the id is not registered
        """
        try:
            return self._cookies[call_id]
        except KeyError:
            raise UnknownCookieError(call_id) from None

    def complete(self, call_id: int) -> bool:
        """
        Account for one delivered completion.

        Returns:
            True if this was the last expected completion and the cookie
            has been disposed, False otherwise

        Raises:
            UnknownCookieError: If the id is not registered
        """
        cookie = self.lookup(call_id)
        cookie.remaining -= 1
        if cookie.remaining > 0:
            return False

        del self._cookies[call_id]
        cookie.dispose()
        logger.debug(f"Call {call_id} finished; {len(self._cookies)} outstanding")
        return True

    def discard(self, call_id: int) -> None:
        """Drop and dispose a cookie whatever its remaining count. Unknown ids are ignored."""
        cookie = self._cookies.pop(call_id, None)
        if cookie is not None:
            cookie.dispose()

    def __len__(self) -> int:
        return len(self._cookies)

    def __contains__(self, call_id) -> bool:
        return call_id in self._cookies
