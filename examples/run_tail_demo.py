"""
Demo script for Tailer without AWS.

Feeds three in-memory shards (one of them KPL-aggregated) through the real
fan-in pipeline and prints the records to stdout, one per line.
"""

import asyncio
import hashlib
import sys
from datetime import datetime, timedelta, timezone

from loguru import logger

from kinesis_tailf import RawRecord, RawRecordBatch, ShardInfo, Tailer, TailSettings
from kinesis_tailf.deaggregate import KPL_MAGIC, AggregatedRecord

NOW = datetime.now(timezone.utc)


def aggregate(payloads):
    msg = AggregatedRecord()
    msg.partition_key_table.append("demo")
    for p in payloads:
        r = msg.records.add()
        r.partition_key_index = 0
        r.data = p
    body = msg.SerializeToString()
    return KPL_MAGIC + body + hashlib.md5(body).digest()


class MemoryStream:
    """Three shards, each with one batch of records, then closed."""

    def __init__(self):
        third = 2**128 // 3
        self.shards = [
            ShardInfo(f"shardId-00000000000{i}", i * third, (i + 1) * third - 1 if i < 2 else 2**128 - 1)
            for i in range(3)
        ]
        self.data = {
            self.shards[0].shard_id: [b"plain-%d" % i for i in range(3)],
            self.shards[1].shard_id: [aggregate([b"agg-%d" % i for i in range(5)])],
            self.shards[2].shard_id: [b"late"],
        }

    async def describe_shards(self, stream_name):
        return self.shards

    async def get_shard_iterator(self, stream_name, shard_id, start=None):
        return shard_id

    async def get_records(self, iterator, limit):
        await asyncio.sleep(0.01)
        records = tuple(
            RawRecord(NOW - timedelta(seconds=1), d) for d in self.data[iterator][:limit]
        )
        return RawRecordBatch(records=records, next_iterator=None)


async def main():
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")

    tailer = Tailer(
        MemoryStream(),
        "demo",
        sys.stdout.buffer,
        append_newline=True,
        settings=TailSettings(channel_capacity=4, flush_interval=0.05),
    )
    report = await tailer.run(end=NOW)
    logger.info(f"Shards: {[(o.shard_id, o.records) for o in report.shards]}")


if __name__ == "__main__":
    asyncio.run(main())
