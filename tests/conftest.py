"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

from typing import Any, List, Tuple

import pytest

from kvbridge.bucket import Bucket
from kvbridge.cache.store import KVStore
from kvbridge.client.client import AsyncKVClient
from kvbridge.cluster.config import ClusterConfig


def find_key_on_node(config: ClusterConfig, node_id: int, prefix: str = "key") -> bytes:
    """Return the first key of the form <prefix><n> owned by node_id."""
    for n in range(10000):
        key = f"{prefix}{n}".encode()
        if config.get_node_for_key(key) == node_id:
            return key
    raise AssertionError(f"no key found for node {node_id}")


class Recorder:
    """
    Callable that records the arguments of every invocation.

    Usage:
        rec = Recorder()
        bucket.get("k1", rec)
        bucket.wait()
        data, error, key, cas, flags, value = rec.calls[0]
    """

    def __init__(self, side_effect=None):
        self.calls: List[Tuple[Any, ...]] = []
        self.side_effect = side_effect

    def __call__(self, *args):
        self.calls.append(args)
        if self.side_effect is not None:
            return self.side_effect(*args)
        return None

    @property
    def count(self) -> int:
        return len(self.calls)


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def store() -> KVStore:
    """Create a fresh KVStore instance (100 keys)."""
    return KVStore(max_size=100)


@pytest.fixture
def small_store() -> KVStore:
    """Create a KVStore with small capacity for eviction testing (5 keys)."""
    return KVStore(max_size=5)


@pytest.fixture
def cluster_config() -> ClusterConfig:
    """Create a three-node, three-shard layout."""
    return ClusterConfig(num_nodes=3, num_shards=3)


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def client(cluster_config: ClusterConfig) -> AsyncKVClient:
    """Create a client with no callbacks registered and not yet connected."""
    return AsyncKVClient(cluster_config=cluster_config, max_keys=100)


@pytest.fixture
def bucket(client: AsyncKVClient) -> Bucket:
    """Create a connected Bucket whose bootstrap notification has been delivered."""
    b = Bucket(client)
    b.connect()
    b.wait()
    return b


@pytest.fixture
def recorder() -> Recorder:
    """Create a fresh recording callback."""
    return Recorder()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
