from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ResolutionError, map_client_error
from .types import RawRecord, RawRecordBatch, ShardInfo


class KinesisStreamClient:
    """
    Async facade over a boto3 Kinesis client.

    boto3 is blocking, so each call runs in the default thread pool. Errors
    come back as ResolutionError (describe) or TransportError (reads).

    Usage:

        client = KinesisStreamClient(region_name="eu-west-1")
        shards = await client.describe_shards("events")
    """

    def __init__(
        self,
        kinesis: Any = None,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        self._kinesis = kinesis or boto3.client(
            "kinesis", region_name=region_name, endpoint_url=endpoint_url
        )

    async def describe_shards(self, stream_name: str) -> list[ShardInfo]:
        try:
            return await asyncio.to_thread(self._describe_shards, stream_name)
        except (ClientError, BotoCoreError) as e:
            raise map_client_error(e, ResolutionError) from e

    def _describe_shards(self, stream_name: str) -> list[ShardInfo]:
        shards: list[ShardInfo] = []
        paginator = self._kinesis.get_paginator("describe_stream")
        for page in paginator.paginate(StreamName=stream_name):
            for s in page["StreamDescription"]["Shards"]:
                hkr = s["HashKeyRange"]
                shards.append(
                    ShardInfo(
                        shard_id=s["ShardId"],
                        start_hash_key=int(hkr["StartingHashKey"]),
                        end_hash_key=int(hkr["EndingHashKey"]),
                    )
                )
        return shards

    async def get_shard_iterator(
        self, stream_name: str, shard_id: str, start: Optional[datetime] = None
    ) -> str:
        kwargs: dict[str, Any] = {"StreamName": stream_name, "ShardId": shard_id}
        if start is None:
            kwargs["ShardIteratorType"] = "LATEST"
        else:
            kwargs["ShardIteratorType"] = "AT_TIMESTAMP"
            kwargs["Timestamp"] = start
        try:
            resp = await asyncio.to_thread(self._kinesis.get_shard_iterator, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise map_client_error(e) from e
        return resp["ShardIterator"]

    async def get_records(self, iterator: str, limit: int) -> RawRecordBatch:
        try:
            resp = await asyncio.to_thread(
                self._kinesis.get_records, ShardIterator=iterator, Limit=limit
            )
        except (ClientError, BotoCoreError) as e:
            raise map_client_error(e) from e
        records = tuple(
            RawRecord(arrival_time=r["ApproximateArrivalTimestamp"], data=r["Data"])
            for r in resp.get("Records", [])
        )
        return RawRecordBatch(records=records, next_iterator=resp.get("NextShardIterator"))
