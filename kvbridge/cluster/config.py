"""
Cluster Configuration Module

Defines the static key-to-node layout of the in-process cluster.
Keys hash onto a fixed number of shards and shards are spread
round-robin across the nodes:

- Shard s is owned by node (s % num_nodes) + 1
- Node ids start at 1
"""

import hashlib
from typing import Dict, List

from ..config.settings import settings


def get_shard_for_key(key: bytes, num_shards: int = None) -> int:
    """
    Calculate which shard owns a given key.

    The same key always maps to the same shard for a given shard count.

    Args:
        key: The key to hash
        num_shards: Number of shards (default from settings.NUM_SHARDS)

    Returns:
        Shard ID in range(num_shards)
    """
    if num_shards is None:
        num_shards = settings.NUM_SHARDS
    hash_digest = hashlib.sha256(key).digest()
    # Convert first 8 bytes to int
    hash_int = int.from_bytes(hash_digest[:8], byteorder='big')
    return hash_int % num_shards


class ClusterConfig:
    """
    Static cluster layout.

    This class provides methods to determine:
    - Which shard a key belongs to
    - Which node owns a shard or a key
    """

    def __init__(self, num_nodes: int = None, num_shards: int = None):
        """
        Initialize the layout.

        Args:
            num_nodes: Number of nodes (default from settings.NUM_NODES)
            num_shards: Number of shards (default from settings.NUM_SHARDS)
        """
        self.num_nodes = num_nodes if num_nodes is not None else settings.NUM_NODES
        self.num_shards = num_shards if num_shards is not None else settings.NUM_SHARDS

        if self.num_nodes < 1:
            raise ValueError(f"Invalid num_nodes: {self.num_nodes}. Must be at least 1")
        if self.num_shards < 1:
            raise ValueError(f"Invalid num_shards: {self.num_shards}. Must be at least 1")

        self.shard_map: Dict[int, int] = {
            shard: shard % self.num_nodes + 1 for shard in range(self.num_shards)
        }

    @property
    def node_ids(self) -> List[int]:
        return list(range(1, self.num_nodes + 1))

    def get_shard(self, key: bytes) -> int:
        """Get the shard ID for a key."""
        return get_shard_for_key(key, self.num_shards)

    def get_node_for_key(self, key: bytes) -> int:
        """Get the node ID that owns the given key."""
        return self.shard_map[self.get_shard(key)]

    def shards_for_node(self, node_id: int) -> List[int]:
        if node_id not in self.node_ids:
            raise ValueError(f"Unknown node_id: {node_id}")
        return [shard for shard, owner in self.shard_map.items() if owner == node_id]

    def __repr__(self) -> str:
        return (f"ClusterConfig(num_nodes={self.num_nodes}, "
                f"num_shards={self.num_shards})")
