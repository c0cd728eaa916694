"""
Single-shard polling loop.

Reads one shard from its start position, expands KPL aggregates, and pushes
every logical record onto the shared channel in shard order. Stops when a
record arrives after the end bound, when enough consecutive empty reads say
the shard is drained, or when the shard is closed.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from .channel import RecordChannel
from .deaggregate import decode_record
from .errors import ShardIterationError, TransportError
from .metrics import POLLS, RECORDS_EMITTED
from .types import IterationSpec, StreamClient


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Termination:
    """End-bound check for one shard; the empty-read count never resets."""

    def __init__(self, end: Optional[datetime], max_empty_reads: int):
        self._end = end
        self._max_empty = max_empty_reads
        self.empty_reads = 0

    def is_over(self, t: datetime, empty: bool = False) -> bool:
        if self._end is None:
            return False
        if empty:
            self.empty_reads += 1
            return self.empty_reads >= self._max_empty
        return t > self._end


class ShardIterator:
    """Reads one shard into a RecordChannel.

    Example:
        it = ShardIterator(client, poll_interval=0.01)
        n = await it.iterate(IterationSpec("events", "shardId-000"), channel)
    """

    def __init__(
        self,
        client: StreamClient,
        *,
        poll_interval: float = 1.0,
        batch_limit: int = 1000,
        max_empty_reads: int = 100,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._client = client
        self._poll_interval = poll_interval
        self._batch_limit = batch_limit
        self._max_empty_reads = max_empty_reads
        self._clock = clock

    async def iterate(self, spec: IterationSpec, channel: RecordChannel[bytes]) -> int:
        """Poll the shard until a stop condition; returns records emitted.

        Raises:
            ShardIterationError: iterator acquisition or a GetRecords call failed
        """
        shard = spec.shard_id
        term = _Termination(spec.end_timestamp, self._max_empty_reads)
        emitted = 0

        try:
            token: Optional[str] = await self._client.get_shard_iterator(
                spec.stream_name, shard, spec.start_timestamp
            )
        except TransportError as e:
            raise ShardIterationError(shard, f"get shard iterator: {e}") from e

        logger.debug(
            f"Iterating {shard} from {spec.start_timestamp or 'LATEST'} "
            f"until {spec.end_timestamp or 'forever'}"
        )

        while token is not None:
            try:
                batch = await self._client.get_records(token, self._batch_limit)
            except TransportError as e:
                raise ShardIterationError(shard, f"get records: {e}") from e
            token = batch.next_iterator

            for record in batch.records:
                if term.is_over(record.arrival_time):
                    logger.debug(f"{shard}: reached end bound after {emitted} records")
                    return emitted
                for payload in decode_record(record.data).payloads:
                    await channel.put(payload)
                    emitted += 1
                    RECORDS_EMITTED.labels(shard=shard).inc()

            if batch.records:
                POLLS.labels(shard=shard, outcome="records").inc()
                continue

            POLLS.labels(shard=shard, outcome="empty").inc()
            if term.is_over(self._clock(), empty=True):
                logger.debug(f"{shard}: drained after {term.empty_reads} empty reads")
                return emitted
            if token is not None:
                await asyncio.sleep(self._poll_interval)

        logger.info(f"{shard}: shard closed, {emitted} records")
        return emitted
