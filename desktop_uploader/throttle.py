"""
Shared bandwidth limiting for upload streams.

A ThrottleGroup apportions one bytes-per-second budget across every
stream routed through it. Each read reserves its slot on a shared
virtual clock, so N concurrent streams together never exceed the rate.
"""

import asyncio
import logging
from typing import BinaryIO

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024  # 64 KiB read chunks


class ThrottleGroup:
    """One byte-per-second budget shared by all of its streams."""

    def __init__(self, rate: int):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = int(rate)
        self._next_free = 0.0

    def reserve(self, nbytes: int) -> float:
        """Reserve *nbytes* of budget and return the seconds to wait first."""
        now = asyncio.get_running_loop().time()
        start = max(now, self._next_free)
        self._next_free = start + nbytes / self.rate
        return start - now

    async def consume(self, nbytes: int) -> None:
        delay = self.reserve(nbytes)
        if delay > 0:
            await asyncio.sleep(delay)

    def throttle(self, raw: BinaryIO, length: int | None = None) -> "UploadStream":
        """Wrap *raw* in a stream limited by this group."""
        return UploadStream(raw, group=self, length=length)


class UploadStream:
    """Asynchronous reader over an open binary file.

    Reads are optionally metered by a ThrottleGroup. ``rewind()`` makes the
    same stream usable for another transfer attempt.
    """

    def __init__(
        self,
        raw: BinaryIO,
        group: ThrottleGroup | None = None,
        length: int | None = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        self._raw = raw
        self.group = group
        self.length = length
        self.chunk_size = chunk_size
        self.bytes_read = 0

    @property
    def name(self) -> str:
        return getattr(self._raw, "name", "")

    @property
    def closed(self) -> bool:
        return self._raw.closed

    async def read(self, size: int = -1) -> bytes:
        """Read at most one chunk; *size* below zero means ``chunk_size``.

        The file read runs in a worker thread so other uploads, settle
        timers and saves keep running while this stream is busy.
        """
        if size is None or size < 0 or size > self.chunk_size:
            size = self.chunk_size
        data = await asyncio.to_thread(self._raw.read, size)
        if data and self.group is not None:
            await self.group.consume(len(data))
        self.bytes_read += len(data)
        return data

    async def __aiter__(self):
        while True:
            chunk = await self.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    def rewind(self) -> None:
        self._raw.seek(0)
        self.bytes_read = 0

    def close(self) -> None:
        self._raw.close()
