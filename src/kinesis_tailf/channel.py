from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, Optional, TypeVar

from .types import BackpressureCallback

T = TypeVar("T")

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised by get() once the channel is closed and drained, and by put() after close."""


class RecordChannel(Generic[T]):
    """Bounded fan-in channel: many producers, one consumer, closed once.

    put() blocks while ``capacity`` items are pending, so a slow consumer
    stalls producers instead of dropping data. close() never blocks; the
    consumer sees every item put before it, then ChannelClosed.
    """

    def __init__(
        self,
        capacity: int,
        high_watermark: int | None = None,
        low_watermark: int | None = None,
        *,
        on_high: Optional[BackpressureCallback] = None,
        on_low: Optional[BackpressureCallback] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._slots = asyncio.Semaphore(capacity)
        self._q: asyncio.Queue = asyncio.Queue()
        self._size = 0
        self._closed = False

        self._high_wm = (
            high_watermark if high_watermark is not None else max(1, int(0.8 * capacity))
        )
        self._low_wm = low_watermark if low_watermark is not None else int(0.5 * capacity)
        self._on_high = on_high
        self._on_low = on_low
        self._high_fired = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return self._size

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, item: T) -> None:
        """Enqueue, waiting for a free slot; emits high watermark once per crossing."""
        if self._closed:
            raise ChannelClosed("put on closed channel")
        await self._slots.acquire()
        if self._closed:
            self._slots.release()
            raise ChannelClosed("put on closed channel")
        self._q.put_nowait(item)
        self._size += 1
        await self._maybe_signal_high()

    async def get(self) -> T:
        item = await self._q.get()
        if item is _CLOSED:
            # leave the marker for any other waiting getter
            self._q.put_nowait(_CLOSED)
            raise ChannelClosed("channel closed")
        self._size -= 1
        self._slots.release()
        await self._maybe_signal_low()
        return item

    def close(self) -> None:
        """Mark end of stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._q.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.get()
            except ChannelClosed:
                return

    async def _maybe_signal_high(self) -> None:
        if not self._high_fired and self._size >= self._high_wm:
            self._high_fired = True
            if self._on_high:
                await self._on_high()

    async def _maybe_signal_low(self) -> None:
        if self._high_fired and self._size <= self._low_wm:
            self._high_fired = False
            if self._on_low:
                await self._on_low()
