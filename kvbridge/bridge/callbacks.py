"""
Callback Registration Module

Trampolines registered with the key-value client. Each per-operation
trampoline checks the response layout version, resolves the completion
cookie from the call id it was handed, and forwards the unpacked fields to
the cookie. The error and configuration callbacks are instance-wide and go
straight to the owning object stored in the client's user-data slot.

The owning object must provide:
    cookies      CookieRegistry used to resolve call ids
    on_connect(config)
    on_error(error, errinfo)
"""

import logging
import weakref

from .cookie import (
    ArithmeticResult,
    GetResult,
    RemoveResult,
    StoreResult,
    TouchResult,
)
from .errors import UnsupportedResponseVersion

logger = logging.getLogger(__name__)

SUPPORTED_RESPONSE_VERSION = 0

_configured_instances = weakref.WeakSet()


def _check_version(kind: str, resp) -> None:
    if resp.version != SUPPORTED_RESPONSE_VERSION:
        logger.critical(f"Unsupported {kind} response version {resp.version}")
        raise UnsupportedResponseVersion(kind, resp.version)


def _deliver(instance, call_id, error, payload) -> None:
    """Forward one completion to its cookie, then account for it."""
    registry = instance.get_cookie().cookies
    cookie = registry.lookup(call_id)
    try:
        cookie.result(error, payload)
    finally:
        registry.complete(call_id)


def error_callback(instance, error, errinfo) -> None:
    instance.get_cookie().on_error(error, errinfo)


def get_callback(instance, cookie, error, resp) -> None:
    _check_version("get", resp)
    _deliver(instance, cookie, error,
             GetResult(resp.key, cas=resp.cas, flags=resp.flags, value=resp.value))


def store_callback(instance, cookie, operation, error, resp) -> None:
    _check_version("store", resp)
    _deliver(instance, cookie, error, StoreResult(resp.key, cas=resp.cas))


def arithmetic_callback(instance, cookie, error, resp) -> None:
    _check_version("arithmetic", resp)
    _deliver(instance, cookie, error,
             ArithmeticResult(resp.key, value=resp.value, cas=resp.cas))


def remove_callback(instance, cookie, error, resp) -> None:
    _check_version("remove", resp)
    _deliver(instance, cookie, error, RemoveResult(resp.key))


def touch_callback(instance, cookie, error, resp) -> None:
    _check_version("touch", resp)
    _deliver(instance, cookie, error, TouchResult(resp.key))


def configuration_callback(instance, config) -> None:
    instance.get_cookie().on_connect(config)


def setup_callbacks(instance) -> bool:
    """
    Register every trampoline on a client instance.

    Registration happens once per instance; later calls are no-ops.

    Returns:
        True if the callbacks were installed by this call
    """
    if instance in _configured_instances:
        logger.debug(f"Callbacks already installed on {instance!r}")
        return False

    instance.set_error_callback(error_callback)
    instance.set_get_callback(get_callback)
    instance.set_store_callback(store_callback)
    instance.set_arithmetic_callback(arithmetic_callback)
    instance.set_remove_callback(remove_callback)
    instance.set_touch_callback(touch_callback)
    instance.set_configuration_callback(configuration_callback)

    _configured_instances.add(instance)
    return True
