"""
Custom exceptions for kinesis-tailf.

Splits failures by blast radius: a run, a single shard, or the output writer.
"""

from typing import Type


class KinesisTailError(Exception):
    """Base error for kinesis-tailf."""

    pass


class TransportError(KinesisTailError):
    """A stream service request failed."""

    pass


class ResolutionError(TransportError):
    """Stream or shard lookup failed; nothing can be iterated."""

    pass


class ShardIterationError(KinesisTailError):
    """Request failure while reading one shard. Siblings keep running."""

    def __init__(self, shard_id: str, message: str):
        super().__init__(f"{shard_id}: {message}")
        self.shard_id = shard_id


class WriterFatalError(KinesisTailError):
    """The fan-in writer cannot continue."""

    pass


class PayloadDecodeError(WriterFatalError):
    """Payload could not be decoded or re-encoded."""

    pass


class SinkError(WriterFatalError):
    """The output sink rejected a write or flush (e.g. a closed pipe)."""

    pass


def map_client_error(e: Exception, kind: Type[TransportError] = TransportError) -> TransportError:
    from botocore.exceptions import ClientError

    if isinstance(e, ClientError):
        err = e.response.get("Error", {})
        return kind(f"{err.get('Code', 'Unknown')}: {err.get('Message', str(e))}")
    return kind(str(e) or type(e).__name__)
