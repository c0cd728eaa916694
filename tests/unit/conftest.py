"""
Fixtures for unit tests: an in-memory stream client and KPL helpers.
"""

import hashlib
from collections import Counter
from typing import Optional

import pytest

from kinesis_tailf import RawRecordBatch, ResolutionError, ShardInfo, TransportError
from kinesis_tailf.deaggregate import KPL_MAGIC, AggregatedRecord


class FakeStreamClient:
    """StreamClient over scripted pages.

    pages maps shard id -> list of pages; a page is a list of RawRecord or an
    exception to raise. Past the last page every poll is empty, unless the
    shard is in ``closed``, in which case the last page ends the shard.
    """

    def __init__(
        self,
        shards=(),
        pages=None,
        closed=(),
        fail_describe: bool = False,
        fail_iterator=(),
    ):
        self.shards = list(shards)
        self.pages = pages or {}
        self.closed = set(closed)
        self.fail_describe = fail_describe
        self.fail_iterator = set(fail_iterator)
        self.iterator_requests = []
        self.polls = Counter()
        self.limits = []

    async def describe_shards(self, stream_name: str):
        if self.fail_describe:
            raise ResolutionError("ResourceNotFoundException: no such stream")
        return self.shards

    async def get_shard_iterator(self, stream_name: str, shard_id: str, start=None) -> str:
        self.iterator_requests.append((stream_name, shard_id, start))
        if shard_id in self.fail_iterator:
            raise TransportError("AccessDeniedException: nope")
        return f"{shard_id}|0"

    async def get_records(self, iterator: str, limit: int) -> RawRecordBatch:
        shard_id, idx = iterator.rsplit("|", 1)
        idx = int(idx)
        self.polls[shard_id] += 1
        self.limits.append(limit)

        pages = self.pages.get(shard_id, [])
        page = pages[idx] if idx < len(pages) else []
        if isinstance(page, Exception):
            raise page

        last = idx >= len(pages) - 1
        next_iterator: Optional[str] = f"{shard_id}|{idx + 1}"
        if shard_id in self.closed and last:
            next_iterator = None
        return RawRecordBatch(records=tuple(page), next_iterator=next_iterator)


def build_aggregate(payloads) -> bytes:
    msg = AggregatedRecord()
    msg.partition_key_table.append("pk")
    for p in payloads:
        r = msg.records.add()
        r.partition_key_index = 0
        r.data = p
    body = msg.SerializeToString()
    return KPL_MAGIC + body + hashlib.md5(body).digest()


@pytest.fixture
def fake_client():
    """Factory for FakeStreamClient."""
    return FakeStreamClient


@pytest.fixture
def kpl_aggregate():
    """Build a KPL aggregated record from payloads."""
    return build_aggregate


@pytest.fixture
def four_shards():
    """Four contiguous shards covering the whole 128-bit key space."""
    quarter = 2**126
    return [
        ShardInfo(f"shardId-00000000000{i}", i * quarter, (i + 1) * quarter - 1)
        for i in range(4)
    ]
