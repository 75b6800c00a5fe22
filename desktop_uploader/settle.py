"""
Write-completion detection.

A file is considered settled once two consecutive size samples, one
``modify_interval`` apart, agree. This avoids uploading a file mid-write
without relying on OS locking; a file that never stops growing never
settles.
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable

from desktop_uploader.errors import StatError
from desktop_uploader.events import EventBus
from desktop_uploader.registry import PathRegistry

logger = logging.getLogger(__name__)


class SettleDetector:
    """Polls reported paths until their size is stable, then hands them on."""

    def __init__(
        self,
        registry: PathRegistry,
        bus: EventBus,
        on_settled: Callable[[str, str], None],
        interval: float = 5.0,
        stat: Callable[[str], os.stat_result] = os.stat,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._registry = registry
        self._bus = bus
        self._on_settled = on_settled
        self.interval = interval
        self._stat = stat
        self._sleep = sleep
        # path -> running settle task
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_files(self) -> list[str]:
        return list(self._pending)

    def track(self, event: str, path: str) -> asyncio.Task | None:
        """Start settling *path*; a path already being settled is not doubled up."""
        running = self._pending.get(path)
        if running is not None and not running.done():
            logger.debug("Already settling %s (%s)", path, event)
            return None
        self._bus.log("Waiting to finish writes: %s - %s", event, path)
        task = asyncio.get_running_loop().create_task(self._settle(path))
        self._pending[path] = task
        task.add_done_callback(lambda t, p=path: self._done(p, t))
        return task

    async def wait_settled(self, path: str) -> int:
        """Sample the size of *path* until it stops changing; return the size."""
        size, new_size = 0, 1
        while True:
            try:
                st = self._stat(path)
            except OSError as exc:
                raise StatError(path, exc) from exc
            size, new_size = new_size, st.st_size
            await self._sleep(self.interval)
            logger.debug("Checking size of %s (%s vs %s)", path, size, new_size)
            if size == new_size:
                return new_size

    def resolve_root(self, path: str) -> str | None:
        return self._registry.resolve(path)

    async def _settle(self, path: str) -> None:
        try:
            await self.wait_settled(path)
        except StatError as exc:
            self._bus.log(str(exc))
            self._bus.emit("error", exc, path)
            return

        root = self.resolve_root(path)
        if root is None:
            self._bus.log("Skipping %s which is no longer watched", path)
            self._bus.emit("ignore", path)
            return
        self._bus.emit("queue", path, root)
        self._on_settled(path, root)

    def _done(self, path: str, task: asyncio.Task) -> None:
        if self._pending.get(path) is task:
            del self._pending[path]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Settling %s failed", path, exc_info=task.exception())

    async def close(self) -> None:
        """Cancel every pending settle loop."""
        tasks = list(self._pending.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
