from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol, Sequence

BackpressureCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ShardInfo:
    """One shard of a stream and the inclusive hash-key range it owns."""

    shard_id: str
    start_hash_key: int
    end_hash_key: int

    def contains(self, hash_key: int) -> bool:
        return self.start_hash_key <= hash_key <= self.end_hash_key


@dataclass(frozen=True)
class IterationSpec:
    """Per-shard read request.

    Attributes:
        stream_name: Stream the shard belongs to
        shard_id: Shard to read
        start_timestamp: Start position; None reads from LATEST
        end_timestamp: Stop once records arrive after this; None never stops on time
    """

    stream_name: str
    shard_id: str
    start_timestamp: Optional[datetime] = None
    end_timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class RawRecord:
    arrival_time: datetime
    data: bytes


@dataclass(frozen=True)
class RawRecordBatch:
    """Result of one GetRecords call. next_iterator is None once the shard is closed."""

    records: tuple[RawRecord, ...] = ()
    next_iterator: Optional[str] = None


@dataclass(frozen=True)
class ShardOutcome:
    shard_id: str
    records: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class TailReport:
    """What a run did, for callers that care. Failures are already logged."""

    shards: list[ShardOutcome] = field(default_factory=list)
    records_written: int = 0
    writer_failed: bool = False
    writer_error: Optional[BaseException] = None

    @property
    def failed_shards(self) -> list[ShardOutcome]:
        return [o for o in self.shards if not o.ok]


class StreamClient(Protocol):
    """Read side of the stream service used by the tailer."""

    async def describe_shards(self, stream_name: str) -> Sequence[ShardInfo]:
        ...

    async def get_shard_iterator(
        self, stream_name: str, shard_id: str, start: Optional[datetime] = None
    ) -> str:
        ...

    async def get_records(self, iterator: str, limit: int) -> RawRecordBatch:
        ...
