"""
Upload task pool for Desktop Uploader.

Settled files are pushed as UploadTasks and dispatched in FIFO order to
at most ``concurrency`` coroutines. Each task re-checks its root, opens
the file (through the shared ThrottleGroup when one is set), records the
file as seen in the cache, then calls the injected transfer step up to
``retries + 1`` times. Completion order between concurrent tasks is not
guaranteed.
"""

import asyncio
import inspect
import logging
import os
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from desktop_uploader.errors import StatError
from desktop_uploader.events import EventBus
from desktop_uploader.registry import PathRegistry
from desktop_uploader.state import StateStore
from desktop_uploader.throttle import ThrottleGroup, UploadStream

logger = logging.getLogger(__name__)


@dataclass
class UploadTask:
    """One settled file on its way to the transfer step."""

    path: str
    root: str
    config: Any = None
    size: int = 0
    mtime: float = 0.0
    stream: UploadStream | None = field(default=None, repr=False)
    attempts: int = 0


# Raising, or returning False, marks an attempt as failed.
TransferStep = Callable[[UploadTask], Union[Awaitable[Any], Any]]


class UploadQueue:
    """Bounded-concurrency FIFO pool with live-tunable concurrency and retries."""

    def __init__(
        self,
        registry: PathRegistry,
        state: StateStore,
        bus: EventBus,
        transfer: TransferStep | None = None,
        concurrency: int = 2,
        retries: int = 0,
        throttle: ThrottleGroup | None = None,
        stat: Callable[[str], os.stat_result] = os.stat,
        opener: Callable[[str], Any] | None = None,
    ):
        self._registry = registry
        self._state = state
        self._bus = bus
        self.transfer = transfer
        self._concurrency = max(1, int(concurrency))
        self.try_count = 1 + max(0, int(retries))
        self.throttle_group = throttle
        self._stat = stat
        self._open = opener or (lambda path: open(path, "rb"))
        self._waiting: deque[UploadTask] = deque()
        self._running: set[asyncio.Task] = set()
        self._paused = False
        self._idle = asyncio.Event()
        self._idle.set()

    # ---- live settings ----

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @concurrency.setter
    def concurrency(self, value: int) -> None:
        self._concurrency = max(1, int(value))
        self._dispatch()

    @property
    def retries(self) -> int:
        return self.try_count - 1

    @retries.setter
    def retries(self, value: int) -> None:
        self.try_count = 1 + max(0, int(value))

    # ---- status ----

    @property
    def tasks(self) -> list[UploadTask]:
        """Tasks waiting for a free slot, in dispatch order."""
        return list(self._waiting)

    @property
    def running(self) -> int:
        return len(self._running)

    @property
    def paused(self) -> bool:
        return self._paused

    def idle(self) -> bool:
        return not self._waiting and not self._running

    # ---- control ----

    def push(self, path: str, root: str) -> UploadTask:
        """Append a task for *path* under *root* and dispatch if a slot is free."""
        task = UploadTask(path=path, root=root)
        self._waiting.append(task)
        self._idle.clear()
        self._dispatch()
        return task

    def pause(self) -> None:
        """Withhold new dispatches; running tasks finish normally."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._dispatch()

    async def join(self) -> None:
        """Wait until nothing is waiting or running."""
        await self._idle.wait()

    async def close(self) -> None:
        """Drop waiting tasks and wait for running ones to finish."""
        self._waiting.clear()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
        self._idle.set()

    # ---- scheduling ----

    def _dispatch(self) -> None:
        loop = None
        while (
            not self._paused
            and self._waiting
            and len(self._running) < self._concurrency
        ):
            if loop is None:
                loop = asyncio.get_running_loop()
            task = self._waiting.popleft()
            worker = loop.create_task(self._run(task))
            self._running.add(worker)
            worker.add_done_callback(self._finished)

    def _finished(self, worker: asyncio.Task) -> None:
        self._running.discard(worker)
        if not worker.cancelled() and worker.exception() is not None:
            logger.error("Upload worker crashed", exc_info=worker.exception())
        self._dispatch()
        if self.idle():
            self._idle.set()
            self._bus.emit("drain")

    async def _run(self, task: UploadTask) -> None:
        if task.root not in self._registry:
            self._bus.log("Skipping %s which is no longer watched", task.path)
            self._bus.emit("ignore", task.path)
            return
        task.config = self._registry.get(task.root)

        try:
            raw = self._open(task.path)
        except OSError as exc:
            self._fail(task, StatError(task.path, exc))
            return

        try:
            group = self.throttle_group
            task.stream = UploadStream(raw, group=group)
            try:
                st = self._stat(task.path)
            except OSError as exc:
                self._fail(task, StatError(task.path, exc))
                return
            task.size = st.st_size
            task.mtime = st.st_mtime
            task.stream.length = st.st_size

            self._state.mark_seen(task.path, st.st_mtime)
            self._state.save()

            self._bus.log("Going to upload %s, %d", task.path, task.size)
            success = await self._transfer_with_retries(task)
        finally:
            raw.close()

        self._bus.emit("processed", task, success)

    async def _transfer_with_retries(self, task: UploadTask) -> bool:
        if self.transfer is None:
            self._bus.emit("upload", task)
            return True

        # try_count is read per attempt so a live change applies to the next retry
        while task.attempts < self.try_count:
            task.attempts += 1
            if task.attempts > 1:
                task.stream.rewind()
            self._bus.emit("upload", task)
            try:
                result = self.transfer(task)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                logger.warning(
                    "Transfer of %s failed (attempt %d/%d): %s",
                    task.path, task.attempts, self.try_count, exc,
                )
                continue
            if result is False:
                logger.warning(
                    "Transfer of %s declined (attempt %d/%d)",
                    task.path, task.attempts, self.try_count,
                )
                continue
            return True
        return False

    def _fail(self, task: UploadTask, exc: StatError) -> None:
        self._bus.log(str(exc))
        self._bus.emit("error", exc, task.path)
