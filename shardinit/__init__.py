"""Bootstrap a sharded MongoDB cluster: initiate shard replica sets and register them with mongos."""

from shardinit.admin import ClusterAdmin, ClusterAdminError, ShardInitError, WaitTimeoutError
from shardinit.topology import DEFAULT_SHARDS, ReplicaSet, parse_shard

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_SHARDS",
    "ClusterAdmin",
    "ClusterAdminError",
    "ReplicaSet",
    "ShardInitError",
    "WaitTimeoutError",
    "parse_shard",
]
