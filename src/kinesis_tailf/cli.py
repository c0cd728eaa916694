from __future__ import annotations

import asyncio
import os
import sys
from datetime import datetime
from typing import Optional

import typer
from loguru import logger

from .client import KinesisStreamClient
from .errors import ResolutionError, SinkError
from .settings import get_settings
from .tailer import Tailer, as_utc

app = typer.Typer(help="Tail a Kinesis data stream to stdout")

TS_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%d %H:%M:%S"]


def configure_logging(level: str) -> None:
    # stdout carries records; logs go to stderr only
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@app.command()
def tail(
    stream: str = typer.Argument(..., help="Stream name"),
    shard_key: Optional[str] = typer.Option(
        None, "--shard-key", "-k", help="Only read the shard this partition key maps to"
    ),
    start: Optional[datetime] = typer.Option(
        None, "--start", formats=TS_FORMATS, help="Read from this time (default: LATEST)"
    ),
    end: Optional[datetime] = typer.Option(
        None, "--end", formats=TS_FORMATS, help="Stop after this time (default: never)"
    ),
    lf: bool = typer.Option(False, "--lf", help="Append a newline after each record"),
    msgpack: bool = typer.Option(
        False, "--msgpack", help="Decode payloads as MessagePack and print them as JSON"
    ),
    region: Optional[str] = typer.Option(None, "--region", envvar="AWS_REGION"),
    endpoint_url: Optional[str] = typer.Option(None, "--endpoint-url", help="Kinesis endpoint"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Default: KTAIL_LOG_LEVEL"),
):
    settings = get_settings()
    configure_logging(log_level or settings.log_level)

    start, end = as_utc(start), as_utc(end)
    if start and end and end < start:
        raise typer.BadParameter("--end must not be before --start")

    client = KinesisStreamClient(
        region_name=region or settings.region,
        endpoint_url=endpoint_url or settings.endpoint_url,
    )
    tailer = Tailer(
        client,
        stream,
        sys.stdout.buffer,
        append_newline=lf,
        decode_msgpack=msgpack,
        settings=settings,
    )

    try:
        report = asyncio.run(tailer.run(shard_key, start, end))
    except ResolutionError:
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        raise typer.Exit(code=130)

    if isinstance(report.writer_error, SinkError):
        # reader went away; keep interpreter shutdown from flushing into the closed pipe
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
