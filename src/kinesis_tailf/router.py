"""
Partition-key routing over shard hash-key ranges.

Kinesis places a record on the shard whose range contains the MD5 of its
partition key, read as an unsigned 128-bit integer.
"""

from __future__ import annotations

import hashlib
from typing import Optional, Sequence

from .types import ShardInfo


def to_hash_key(partition_key: str) -> int:
    """MD5 of the key as a big-endian unsigned integer."""
    digest = hashlib.md5(partition_key.encode("utf-8")).digest()
    return int.from_bytes(digest, "big")


def resolve_shards(shards: Sequence[ShardInfo], partition_key: Optional[str] = None) -> list[str]:
    """Pick the shards to read.

    Args:
        shards: Shards in stream-description order
        partition_key: Route to the one shard owning this key; empty means all shards

    Returns:
        Shard IDs in description order. At most one ID when a key is given,
        none if no range contains its hash.
    """
    if not partition_key:
        return [s.shard_id for s in shards]

    hash_key = to_hash_key(partition_key)
    for shard in shards:
        if shard.contains(hash_key):
            return [shard.shard_id]
    return []
