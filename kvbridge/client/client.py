"""
Asynchronous Key-Value Client Module

An in-process, single-threaded, callback-driven key-value client backed by
a small sharded cluster of KVStore nodes.

Operations are never executed when they are scheduled. They are queued on
the node that owns the key and completed later, during an event pump
(wait(), or the asyncio loop once the client is attached). Every
completion is reported through the callback registered for its operation
kind, together with the opaque cookie handed in at scheduling time.

Callback signatures:
    get         (instance, cookie, error, GetResponse)
    store       (instance, cookie, mode, error, StoreResponse)
    arithmetic  (instance, cookie, error, ArithmeticResponse)
    remove      (instance, cookie, error, RemoveResponse)
    touch       (instance, cookie, error, TouchResponse)
    error       (instance, error, errinfo)
    configuration (instance, ConfigurationStatus)
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, Optional, Tuple

from ..cache.store import KVStore
from ..cluster.config import ClusterConfig
from ..config.settings import settings
from ..protocol.commands import ConfigurationStatus, ErrorCode, OperationType, StorageMode
from ..protocol.responses import (
    ArithmeticResponse,
    GetResponse,
    RemoveResponse,
    StoreResponse,
    TouchResponse,
)

logger = logging.getLogger(__name__)


@dataclass
class PendingOperation:
    """A queued single-key operation."""
    kind: OperationType
    cookie: Any
    key: bytes
    params: Dict[str, Any] = field(default_factory=dict)


class AsyncKVClient:
    """
    Event-loop-driven key-value client.

    Completions for keys owned by different nodes are interleaved one
    operation per node per round, so the completions of a multi-key call
    do not necessarily arrive in issue order. Operations scheduled from
    inside a callback are completed by the same pump.

    Usage:
        client = AsyncKVClient()
        client.set_get_callback(on_get)
        client.connect()
        client.get(cookie, [b"k1", b"k2"])
        client.wait()

    Attributes:
        config: Key-to-node layout
        response_version: Layout version stamped on every response record
    """

    def __init__(
            self,
            cluster_config: ClusterConfig = None,
            max_keys: int = None,
            response_version: int = 0,
    ):
        """
        Initialize the client.

        Args:
            cluster_config: Cluster layout (default: ClusterConfig())
            max_keys: Per-node key capacity (default from settings.MAX_KEYS)
            response_version: Version tag placed on response records
        """
        self.config = cluster_config if cluster_config is not None else ClusterConfig()
        self.response_version = response_version

        self._nodes: Dict[int, KVStore] = {
            node_id: KVStore(max_size=max_keys) for node_id in self.config.node_ids
        }
        self._queues: Dict[int, Deque[PendingOperation]] = {
            node_id: deque() for node_id in self.config.node_ids
        }
        self._available: Dict[int, bool] = {node_id: True for node_id in self.config.node_ids}
        self._outages_reported = set()
        self._events: Deque[Tuple] = deque()

        self._callbacks: Dict[OperationType, Optional[Callable]] = {
            kind: None for kind in OperationType
        }
        self._error_callback: Optional[Callable] = None
        self._configuration_callback: Optional[Callable] = None
        self._cookie: Any = None

        self._connected = False
        self._pumping = False

        # asyncio integration
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pump_scheduled = False
        self._pump_errors: Deque[BaseException] = deque()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def set_cookie(self, cookie: Any) -> None:
        """Store the instance-wide user data slot."""
        self._cookie = cookie

    def get_cookie(self) -> Any:
        return self._cookie

    def set_get_callback(self, callback: Callable) -> None:
        self._callbacks[OperationType.GET] = callback

    def set_store_callback(self, callback: Callable) -> None:
        self._callbacks[OperationType.STORE] = callback

    def set_arithmetic_callback(self, callback: Callable) -> None:
        self._callbacks[OperationType.ARITHMETIC] = callback

    def set_remove_callback(self, callback: Callable) -> None:
        self._callbacks[OperationType.REMOVE] = callback

    def set_touch_callback(self, callback: Callable) -> None:
        self._callbacks[OperationType.TOUCH] = callback

    def set_error_callback(self, callback: Callable) -> None:
        self._error_callback = callback

    def set_configuration_callback(self, callback: Callable) -> None:
        self._configuration_callback = callback

    def get_callback(self, kind: OperationType) -> Optional[Callable]:
        """Return the callback registered for an operation kind."""
        return self._callbacks[kind]

    # ------------------------------------------------------------------
    # Connection and node state
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> ErrorCode:
        """
        Bootstrap the client.

        The configuration callback is notified on the next pump: NEW the
        first time, UNCHANGED afterwards. If no node is reachable the error
        callback receives CONNECT_ERROR instead and the client stays
        disconnected.
        """
        if not any(self._available.values()):
            self._post_event("error", ErrorCode.CONNECT_ERROR, "no cluster node is reachable")
            return ErrorCode.SUCCESS

        status = ConfigurationStatus.UNCHANGED if self._connected else ConfigurationStatus.NEW
        self._connected = True
        self._post_event("configuration", status)
        return ErrorCode.SUCCESS

    def set_node_available(self, node_id: int, available: bool) -> None:
        """Mark a node up or down. Operations on a down node fail with NETWORK_ERROR."""
        if node_id not in self._available:
            raise ValueError(f"Unknown node_id: {node_id}")
        self._available[node_id] = available
        if available:
            self._outages_reported.discard(node_id)
        logger.info(f"Node {node_id} marked {'available' if available else 'unavailable'}")

    def node(self, node_id: int) -> KVStore:
        """Get the storage of a node."""
        return self._nodes[node_id]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    @staticmethod
    def _valid_key(key) -> bool:
        return isinstance(key, bytes) and 0 < len(key) <= settings.MAX_KEY_LENGTH

    def _can_schedule(self, keys: Iterable[bytes]) -> bool:
        keys = list(keys)
        if not self._connected:
            logger.debug("Refusing to schedule: client is not connected")
            return False
        return bool(keys) and all(self._valid_key(key) for key in keys)

    def _enqueue(self, kind: OperationType, cookie: Any, key: bytes, **params) -> None:
        node_id = self.config.get_node_for_key(key)
        self._queues[node_id].append(PendingOperation(kind, cookie, key, params))
        logger.debug(f"Queued {kind.name} {key!r} on node {node_id}")
        self._schedule_pump()

    def get(self, cookie: Any, keys: Iterable[bytes]) -> ErrorCode:
        """Schedule a read of every key in keys."""
        keys = list(keys)
        if not self._can_schedule(keys):
            return ErrorCode.EINVAL
        for key in keys:
            self._enqueue(OperationType.GET, cookie, key)
        return ErrorCode.SUCCESS

    def store(
            self,
            cookie: Any,
            mode: StorageMode,
            key: bytes,
            value: bytes,
            flags: int = 0,
            exptime: int = 0,
            cas: int = 0,
    ) -> ErrorCode:
        """Schedule a store of value under key."""
        if not self._can_schedule([key]) or not isinstance(value, bytes):
            return ErrorCode.EINVAL
        self._enqueue(OperationType.STORE, cookie, key, mode=StorageMode(mode),
                      value=value, flags=flags, exptime=exptime, cas=cas)
        return ErrorCode.SUCCESS

    def arithmetic(
            self,
            cookie: Any,
            key: bytes,
            delta: int,
            initial: Optional[int] = None,
            exptime: int = 0,
    ) -> ErrorCode:
        """Schedule a counter update; initial=None means do not create."""
        if not self._can_schedule([key]):
            return ErrorCode.EINVAL
        self._enqueue(OperationType.ARITHMETIC, cookie, key,
                      delta=delta, initial=initial, exptime=exptime)
        return ErrorCode.SUCCESS

    def remove(self, cookie: Any, key: bytes, cas: int = 0) -> ErrorCode:
        """Schedule removal of key."""
        if not self._can_schedule([key]):
            return ErrorCode.EINVAL
        self._enqueue(OperationType.REMOVE, cookie, key, cas=cas)
        return ErrorCode.SUCCESS

    def touch(self, cookie: Any, keys: Iterable[bytes], exptime: int = 0) -> ErrorCode:
        """Schedule an expiry update for every key in keys."""
        keys = list(keys)
        if not self._can_schedule(keys):
            return ErrorCode.EINVAL
        for key in keys:
            self._enqueue(OperationType.TOUCH, cookie, key, exptime=exptime)
        return ErrorCode.SUCCESS

    # ------------------------------------------------------------------
    # Event pump
    # ------------------------------------------------------------------

    @property
    def pending(self) -> int:
        """Number of queued operations and notifications."""
        return len(self._events) + sum(len(queue) for queue in self._queues.values())

    def wait(self) -> None:
        """
        Run the event loop until nothing is pending.

        Exceptions raised by callbacks propagate; operations that were not
        reached stay queued for the next pump.

        Raises:
            RuntimeError: If called from inside a callback
        """
        if self._pumping:
            raise RuntimeError("wait() called from within a callback")

        self._pumping = True
        try:
            while self.pending:
                self._run_round()
        finally:
            self._pumping = False

    def _run_round(self) -> None:
        while self._events:
            self._deliver_event(self._events.popleft())

        for node_id, queue in self._queues.items():
            if queue:
                self._execute(node_id, queue.popleft())

    def _post_event(self, *event) -> None:
        self._events.append(event)
        self._schedule_pump()

    def _deliver_event(self, event: Tuple) -> None:
        if event[0] == "configuration":
            if self._configuration_callback is not None:
                self._configuration_callback(self, event[1])
        elif self._error_callback is not None:
            self._error_callback(self, event[1], event[2])
        else:
            logger.error(f"Unhandled client error {event[1]!r}: {event[2]}")

    def _execute(self, node_id: int, op: PendingOperation) -> None:
        """
        Complete one operation through its registered callback.

        With no callback registered for the operation kind the completion is
        dropped, so whatever the owner tracks under that cookie is never
        retired.
        """
        callback = self._callbacks[op.kind]
        store = self._nodes[node_id]
        version = self.response_version

        if not self._available[node_id]:
            if node_id not in self._outages_reported:
                self._outages_reported.add(node_id)
                self._deliver_event(("error", ErrorCode.NETWORK_ERROR,
                                     f"node {node_id} is unreachable"))
            error = ErrorCode.NETWORK_ERROR
            store = None

        if callback is None:
            logger.warning(f"No callback registered for {op.kind.name}; dropping completion")
            return

        if op.kind == OperationType.GET:
            item = None
            if store is not None:
                error, item = store.get(op.key)
            if item is not None:
                resp = GetResponse(version, op.key, item.value, item.flags, item.cas)
            else:
                resp = GetResponse(version, op.key)
            callback(self, op.cookie, error, resp)

        elif op.kind == OperationType.STORE:
            cas = 0
            if store is not None:
                error, cas = store.store(**op.params, key=op.key)
            callback(self, op.cookie, op.params["mode"], error,
                     StoreResponse(version, op.key, cas))

        elif op.kind == OperationType.ARITHMETIC:
            value, cas = 0, 0
            if store is not None:
                error, value, cas = store.arithmetic(op.key, **op.params)
            callback(self, op.cookie, error, ArithmeticResponse(version, op.key, value, cas))

        elif op.kind == OperationType.REMOVE:
            cas = 0
            if store is not None:
                error, cas = store.remove(op.key, **op.params)
            callback(self, op.cookie, error, RemoveResponse(version, op.key, cas))

        elif op.kind == OperationType.TOUCH:
            cas = 0
            if store is not None:
                error, cas = store.touch(op.key, **op.params)
            callback(self, op.cookie, error, TouchResponse(version, op.key, cas))

    # ------------------------------------------------------------------
    # asyncio integration
    # ------------------------------------------------------------------

    def attach(self, loop: asyncio.AbstractEventLoop = None) -> None:
        """
        Drive completions from an asyncio event loop.

        Once attached, queued work is pumped with loop.call_soon.
        """
        self._loop = loop if loop is not None else asyncio.get_running_loop()
        if self.pending:
            self._schedule_pump()

    def detach(self) -> None:
        self._loop = None

    def _schedule_pump(self) -> None:
        if self._loop is None or self._pump_scheduled or self._pumping:
            return
        self._pump_scheduled = True
        self._loop.call_soon(self._pump_from_loop)

    def _pump_from_loop(self) -> None:
        self._pump_scheduled = False
        if self._pumping:
            return
        try:
            self.wait()
        except Exception as exc:
            logger.error(f"Event pump failed: {exc}")
            self._pump_errors.append(exc)

    async def drain(self) -> None:
        """
        Wait until every queued operation has completed.

        Attaches to the running loop if needed. Exceptions raised by
        callbacks during loop-driven pumps are queued and re-raised here in
        the order they occurred, one per call.
        """
        if self._loop is None:
            self.attach()

        while True:
            if self._pump_errors:
                raise self._pump_errors.popleft()
            if not self.pending and not self._pump_scheduled:
                return
            self._schedule_pump()
            await asyncio.sleep(0)

    def get_stats(self) -> dict:
        """
        Get client statistics.

        Returns:
            Dictionary with connection state, pending work and per-node store stats
        """
        return {
            "connected": self._connected,
            "pending": self.pending,
            "nodes": {
                node_id: {
                    "available": self._available[node_id],
                    "queued": len(self._queues[node_id]),
                    "store_stats": store.get_stats(),
                }
                for node_id, store in self._nodes.items()
            },
        }

    def __repr__(self) -> str:
        return f"AsyncKVClient(nodes={self.config.num_nodes}, connected={self._connected})"
