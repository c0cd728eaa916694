"""
Tail orchestration.

Resolves shards, runs one supervised ShardIterator task per shard and a
single FanInWriter, then shuts down in order: shards finish, the flush task
stops, the channel closes, the writer drains.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import BinaryIO, Optional

from loguru import logger

from .channel import RecordChannel
from .errors import ResolutionError
from .iterator import ShardIterator
from .metrics import SHARD_FAILURES
from .router import resolve_shards
from .settings import TailSettings
from .types import IterationSpec, ShardOutcome, StreamClient, TailReport
from .writer import FanInWriter


def as_utc(ts: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are taken as UTC."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class Tailer:
    """Tails one stream into a binary sink.

    Example:
        tailer = Tailer(KinesisStreamClient(), "events", sys.stdout.buffer, append_newline=True)
        report = await tailer.run(end=datetime.now(timezone.utc))
    """

    def __init__(
        self,
        client: StreamClient,
        stream_name: str,
        sink: BinaryIO,
        *,
        append_newline: bool = False,
        decode_msgpack: bool = False,
        settings: Optional[TailSettings] = None,
    ):
        self.client = client
        self.stream_name = stream_name
        self.sink = sink
        self.append_newline = append_newline
        self.decode_msgpack = decode_msgpack
        self.settings = settings or TailSettings()

        self._iterator = ShardIterator(
            client,
            poll_interval=self.settings.poll_interval,
            batch_limit=self.settings.batch_limit,
            max_empty_reads=self.settings.max_empty_reads,
        )

    async def resolve(self, partition_key: Optional[str] = None) -> list[str]:
        """Shard IDs to read for this key (all shards when empty)."""
        try:
            shards = await self.client.describe_shards(self.stream_name)
        except ResolutionError as e:
            logger.error(f"Cannot describe stream {self.stream_name}: {e}")
            raise
        shard_ids = resolve_shards(shards, partition_key)
        if partition_key:
            logger.info(f"Partition key {partition_key!r} routes to {shard_ids or 'no shard'}")
        return shard_ids

    async def run(
        self,
        partition_key: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TailReport:
        """Tail the stream between start and end.

        Naive start/end are taken as UTC. Per-shard failures are logged and
        reported, never raised.

        Raises:
            ResolutionError: the stream could not be described
        """
        start, end = as_utc(start), as_utc(end)
        shard_ids = await self.resolve(partition_key)
        report = TailReport()

        channel = RecordChannel[bytes](
            self.settings.channel_capacity,
            on_high=self._on_backpressure_high,
            on_low=self._on_backpressure_low,
        )
        writer = FanInWriter(
            self.sink,
            append_newline=self.append_newline,
            decode_msgpack=self.decode_msgpack,
            flush_interval=self.settings.flush_interval,
            buffer_size=self.settings.buffer_size,
        )
        writer_task = asyncio.create_task(writer.write(channel))

        logger.info(f"Tailing {self.stream_name}: {len(shard_ids)} shard(s)")
        shard_tasks = [
            asyncio.create_task(
                self._supervise(
                    IterationSpec(self.stream_name, shard_id, start, end),
                    channel,
                )
            )
            for shard_id in shard_ids
        ]
        shards_done = asyncio.gather(*shard_tasks, return_exceptions=True)

        try:
            await asyncio.wait({shards_done, writer_task}, return_when=asyncio.FIRST_COMPLETED)
            if not shards_done.done():
                # writer is gone; nothing will drain the channel again
                report.writer_failed = True
                logger.warning("Writer stopped early, cancelling shard readers")
                for t in shard_tasks:
                    t.cancel()
            results = await shards_done
        except asyncio.CancelledError:
            for t in shard_tasks:
                t.cancel()
            writer_task.cancel()
            await asyncio.gather(*shard_tasks, writer_task, return_exceptions=True)
            await writer.stop_flusher()
            channel.close()
            raise

        await writer.stop_flusher()
        channel.close()
        try:
            await writer_task
        finally:
            report.writer_failed = report.writer_failed or writer.failed
            report.records_written = writer.records_written
            report.writer_error = writer.error

        for shard_id, result in zip(shard_ids, results):
            if isinstance(result, ShardOutcome):
                report.shards.append(result)
            else:
                report.shards.append(ShardOutcome(shard_id, error=result))

        logger.info(
            f"Done: {report.records_written} records written, "
            f"{len(report.failed_shards)}/{len(report.shards)} shard(s) failed"
        )
        return report

    async def _supervise(self, spec: IterationSpec, channel: RecordChannel[bytes]) -> ShardOutcome:
        try:
            n = await self._iterator.iterate(spec, channel)
        except Exception as e:
            logger.warning(f"Shard {spec.shard_id} stopped: {e}")
            SHARD_FAILURES.labels(shard=spec.shard_id).inc()
            return ShardOutcome(spec.shard_id, error=e)
        return ShardOutcome(spec.shard_id, records=n)

    async def _on_backpressure_high(self) -> None:
        logger.debug("Fan-in channel above high watermark, shard readers will block")

    async def _on_backpressure_low(self) -> None:
        logger.debug("Fan-in channel drained below low watermark")
