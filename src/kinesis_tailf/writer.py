from __future__ import annotations

import asyncio
from typing import BinaryIO, Optional

from loguru import logger

from .channel import RecordChannel
from .codec import msgpack_to_json
from .errors import SinkError, WriterFatalError
from .metrics import CHANNEL_DEPTH, RECORDS_WRITTEN

LF = b"\n"


class FanInWriter:
    """Single consumer of the fan-in channel, writing to a binary sink.

    Writes go to an in-memory buffer guarded by a lock; a background task
    flushes it every ``flush_interval`` seconds so low-volume output shows up
    promptly. The buffer also flushes itself once it passes ``buffer_size``.

    Example:
        writer = FanInWriter(sys.stdout.buffer, append_newline=True)
        task = asyncio.create_task(writer.write(channel))
        ...
        await writer.stop_flusher()
        channel.close()
        await task
    """

    def __init__(
        self,
        sink: BinaryIO,
        *,
        append_newline: bool = False,
        decode_msgpack: bool = False,
        flush_interval: float = 0.1,
        buffer_size: int = 4096,
    ):
        self._sink = sink
        self._append_newline = append_newline
        self._decode_msgpack = decode_msgpack
        self._flush_interval = flush_interval
        self._buffer_size = buffer_size

        self._buf = bytearray()
        self._lock = asyncio.Lock()
        self._flusher: Optional[asyncio.Task] = None
        self._channel: Optional[RecordChannel[bytes]] = None

        self.records_written = 0
        self.failed = False
        self.error: Optional[WriterFatalError] = None
        self._sink_broken = False

    async def write(self, channel: RecordChannel[bytes]) -> None:
        """Drain the channel until it is closed; stops early on a payload or sink error."""
        self._channel = channel
        self._start_flusher()
        try:
            async for payload in channel:
                CHANNEL_DEPTH.set(channel.size)
                async with self._lock:
                    if self._sink_broken:
                        return
                    try:
                        self._write_record(payload)
                    except WriterFatalError as e:
                        self._fail(e)
                        return
        finally:
            async with self._lock:
                if not self._sink_broken:
                    try:
                        self._flush_locked()
                    except SinkError as e:
                        self._fail(e)

    async def stop_flusher(self) -> None:
        """Cancel and join the periodic flush task. Safe to call repeatedly."""
        task, self._flusher = self._flusher, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Flush task ended with {type(e).__name__}: {e}")

    def _fail(self, e: WriterFatalError) -> None:
        self.failed = True
        self.error = e
        logger.error(f"Writer stopped: {e}")

    def _write_record(self, payload: bytes) -> None:
        if self._decode_msgpack:
            payload = msgpack_to_json(payload)
        self._buf += payload
        if self._append_newline:
            self._buf += LF
        self.records_written += 1
        RECORDS_WRITTEN.inc()
        if len(self._buf) >= self._buffer_size:
            self._flush_locked()

    def _flush_locked(self) -> None:
        try:
            if self._buf:
                self._sink.write(bytes(self._buf))
                self._buf.clear()
            self._sink.flush()
        except OSError as e:
            self._sink_broken = True
            self._buf.clear()
            raise SinkError(f"sink write failed: {type(e).__name__}: {e}") from e

    def _start_flusher(self) -> None:
        if self._flusher is None:
            self._flusher = asyncio.create_task(self._flush_loop())

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            async with self._lock:
                try:
                    self._flush_locked()
                except SinkError as e:
                    self._fail(e)
                    if self._channel is not None:
                        # wake an idle consumer; nothing more can be written
                        self._channel.close()
                    return
