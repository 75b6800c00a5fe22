"""Tests for the shared bandwidth budget."""

import asyncio
import io

import pytest

from desktop_uploader.throttle import ThrottleGroup, UploadStream


def test_rate_must_be_positive():
    with pytest.raises(ValueError):
        ThrottleGroup(0)


def test_budget_is_shared_between_streams():
    async def scenario():
        group = ThrottleGroup(1000)
        first = group.reserve(500)
        second = group.reserve(500)
        third = group.reserve(1000)
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert first == pytest.approx(0.0, abs=0.01)
    assert second == pytest.approx(0.5, abs=0.01)
    assert third == pytest.approx(1.0, abs=0.01)


def test_throttled_reads_take_at_least_budget_time():
    async def scenario():
        loop = asyncio.get_running_loop()
        group = ThrottleGroup(10_000)
        streams = [group.throttle(io.BytesIO(b"x" * 1000)) for _ in range(2)]
        for stream in streams:
            stream.chunk_size = 250

        async def drain(stream):
            return b"".join([chunk async for chunk in stream])

        start = loop.time()
        bodies = await asyncio.gather(*(drain(s) for s in streams))
        return loop.time() - start, bodies

    elapsed, bodies = asyncio.run(scenario())

    # 2000 bytes at 10 kB/s; the first chunk goes through without waiting
    assert elapsed >= 0.15
    assert bodies == [b"x" * 1000, b"x" * 1000]


def test_unthrottled_stream_reads_everything_and_rewinds():
    async def scenario():
        stream = UploadStream(io.BytesIO(b"abcdef"))
        first = await stream.read()
        stream.rewind()
        second = await stream.read(3)
        return first, second, stream.bytes_read

    first, second, read = asyncio.run(scenario())
    assert first == b"abcdef"
    assert second == b"abc"
    assert read == 3


def test_read_returns_at_most_one_chunk():
    async def scenario():
        stream = UploadStream(io.BytesIO(b"y" * 1000), chunk_size=300)
        return [len(await stream.read()), len(await stream.read(5000)), len(await stream.read(-1))]

    assert asyncio.run(scenario()) == [300, 300, 300]
