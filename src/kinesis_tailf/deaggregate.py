"""
KPL aggregated-record expansion.

An aggregated record is ``MAGIC + AggregatedRecord protobuf + md5(protobuf)``.
Anything that does not match that layout is a plain user record.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Union

import aws_kinesis_agg.deaggregator  # noqa: F401  puts config_pb2 on the path for messages_pb2
from aws_kinesis_agg import DIGEST_SIZE
from aws_kinesis_agg import MAGIC as KPL_MAGIC
from aws_kinesis_agg.messages_pb2 import AggregatedRecord
from google.protobuf.message import DecodeError


@dataclass(frozen=True)
class Aggregate:
    records: tuple[bytes, ...]

    @property
    def payloads(self) -> tuple[bytes, ...]:
        return self.records


@dataclass(frozen=True)
class Single:
    payload: bytes

    @property
    def payloads(self) -> tuple[bytes, ...]:
        return (self.payload,)


Decoded = Union[Aggregate, Single]


def decode_record(data: bytes) -> Decoded:
    """Expand a KPL container into its sub-records, or wrap the raw payload."""
    if not data.startswith(KPL_MAGIC) or len(data) - len(KPL_MAGIC) <= DIGEST_SIZE:
        return Single(data)

    body = data[len(KPL_MAGIC) : -DIGEST_SIZE]
    if hashlib.md5(body).digest() != data[-DIGEST_SIZE:]:
        return Single(data)

    message = AggregatedRecord()
    try:
        message.ParseFromString(body)
    except DecodeError:
        return Single(data)

    return Aggregate(tuple(r.data for r in message.records))
