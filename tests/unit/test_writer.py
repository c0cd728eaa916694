"""
Unit tests for FanInWriter output, re-encoding, and flushing.
"""

import asyncio
import io
import json

import msgpack
import pytest

from kinesis_tailf import ChannelClosed, FanInWriter, RecordChannel, SinkError


async def run_writer(payloads, **kw) -> tuple[FanInWriter, bytes]:
    sink = io.BytesIO()
    writer = FanInWriter(sink, **kw)
    ch = RecordChannel[bytes](capacity=max(1, len(payloads)))
    for p in payloads:
        await ch.put(p)
    ch.close()
    await writer.write(ch)
    await writer.stop_flusher()
    return writer, sink.getvalue()


@pytest.mark.asyncio
async def test_newline_separator():
    _, out = await run_writer([b"hello"], append_newline=True)
    assert out == b"hello\n"


@pytest.mark.asyncio
async def test_raw_payloads_are_concatenated_without_separator():
    writer, out = await run_writer([b"a", b"bc", b"", b"d"])
    assert out == b"abcd"
    assert writer.records_written == 4


@pytest.mark.asyncio
async def test_same_sequence_gives_identical_output():
    payloads = [b"x" * 5000, b"\x00\x01", b"tail"]
    _, first = await run_writer(payloads, append_newline=True, buffer_size=64)
    _, second = await run_writer(payloads, append_newline=True, buffer_size=64)
    assert first == second
    assert first == b"x" * 5000 + b"\n\x00\x01\ntail\n"


@pytest.mark.asyncio
async def test_msgpack_payload_is_reencoded_as_json():
    payload = msgpack.packb({"a": 1})
    _, out = await run_writer([payload], decode_msgpack=True, append_newline=True)
    assert out.endswith(b"\n")
    assert json.loads(out) == {"a": 1}


@pytest.mark.asyncio
async def test_invalid_msgpack_stops_writer_and_keeps_earlier_output():
    payloads = [msgpack.packb([1, 2]), b"\xc1", msgpack.packb("never written")]
    writer, out = await run_writer(payloads, decode_msgpack=True, append_newline=True)
    assert writer.failed
    assert writer.records_written == 1
    assert out == b"[1,2]\n"


@pytest.mark.asyncio
async def test_periodic_flush_makes_output_visible_before_close():
    sink = io.BytesIO()
    writer = FanInWriter(sink, append_newline=True, flush_interval=0.01)
    ch = RecordChannel[bytes](capacity=4)
    task = asyncio.create_task(writer.write(ch))

    await ch.put(b"early")
    await asyncio.sleep(0.1)
    assert sink.getvalue() == b"early\n"

    await writer.stop_flusher()
    ch.close()
    await task


@pytest.mark.asyncio
async def test_large_buffer_flushes_without_timer():
    sink = io.BytesIO()
    writer = FanInWriter(sink, flush_interval=60, buffer_size=4)
    ch = RecordChannel[bytes](capacity=4)
    task = asyncio.create_task(writer.write(ch))

    await ch.put(b"hello")
    await asyncio.sleep(0.02)
    assert sink.getvalue() == b"hello"

    await writer.stop_flusher()
    ch.close()
    await task


@pytest.mark.asyncio
async def test_stop_flusher_is_idempotent():
    writer = FanInWriter(io.BytesIO())
    await writer.stop_flusher()
    _, out = await run_writer([b"z"])
    assert out == b"z"


class BrokenPipeSink:
    """Sink whose reader has gone away."""

    def write(self, data):
        raise BrokenPipeError(32, "Broken pipe")

    def flush(self):
        pass


@pytest.mark.asyncio
async def test_closed_pipe_stops_writer_without_raising():
    writer = FanInWriter(BrokenPipeSink(), buffer_size=4)
    ch = RecordChannel[bytes](capacity=4)
    for p in (b"hello", b"again"):
        await ch.put(p)
    ch.close()

    await writer.write(ch)
    await writer.stop_flusher()

    assert writer.failed
    assert isinstance(writer.error, SinkError)
    assert writer.records_written == 1


@pytest.mark.asyncio
async def test_closed_pipe_found_by_timer_ends_idle_writer():
    writer = FanInWriter(BrokenPipeSink(), flush_interval=0.01)
    ch = RecordChannel[bytes](capacity=4)
    task = asyncio.create_task(writer.write(ch))

    await ch.put(b"pending")
    await asyncio.wait_for(task, timeout=5)
    await writer.stop_flusher()

    assert writer.failed
    assert ch.closed
    with pytest.raises(ChannelClosed):
        await ch.put(b"late")
