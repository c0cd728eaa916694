"""
kinesis-tailf

Tails a Kinesis data stream: resolves shards (optionally by partition key),
reads them concurrently over a time window, expands KPL aggregated records,
and writes every logical record to one binary sink.

Usage:
    from kinesis_tailf import KinesisStreamClient, Tailer

    tailer = Tailer(KinesisStreamClient(), "events", sys.stdout.buffer, append_newline=True)
    await tailer.run(partition_key="user-42", start=start, end=end)
"""

from .channel import ChannelClosed, RecordChannel
from .client import KinesisStreamClient
from .deaggregate import Aggregate, Single, decode_record
from .errors import (
    KinesisTailError,
    PayloadDecodeError,
    ResolutionError,
    ShardIterationError,
    SinkError,
    TransportError,
    WriterFatalError,
)
from .iterator import ShardIterator
from .router import resolve_shards, to_hash_key
from .settings import TailSettings, get_settings
from .tailer import Tailer
from .types import (
    IterationSpec,
    RawRecord,
    RawRecordBatch,
    ShardInfo,
    ShardOutcome,
    StreamClient,
    TailReport,
)
from .writer import FanInWriter

__version__ = "1.0.0"
__all__ = [
    # types
    "ShardInfo",
    "IterationSpec",
    "RawRecord",
    "RawRecordBatch",
    "ShardOutcome",
    "TailReport",
    "StreamClient",
    "Aggregate",
    "Single",
    # errors
    "KinesisTailError",
    "TransportError",
    "ResolutionError",
    "ShardIterationError",
    "WriterFatalError",
    "PayloadDecodeError",
    "SinkError",
    # runtime
    "RecordChannel",
    "ChannelClosed",
    "ShardIterator",
    "FanInWriter",
    "Tailer",
    "KinesisStreamClient",
    "TailSettings",
    "get_settings",
    # functions
    "resolve_shards",
    "to_hash_key",
    "decode_record",
]
