"""
Cluster module for the in-process key-value client.

Provides the static shard layout used to route each key to the node
that owns it.
"""

from .config import ClusterConfig, get_shard_for_key

__all__ = ['ClusterConfig', 'get_shard_for_key']
