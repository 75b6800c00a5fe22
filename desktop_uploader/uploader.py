"""
Desktop Uploader orchestration.

One ``DesktopUploader`` owns its roots, cache, queue and watcher. Nothing
is module-level, so several instances can run side by side on the same
event loop. `resume()` and everything it drives must run on that loop;
settings and saves requested before the loop runs are written at once.

Usage:
    uploader = DesktopUploader({"config_path": "/var/lib/up"}, transfer=send)
    uploader.watch("/data/outbox", {"bucket": "incoming"})
    uploader.resume()
    ...
    await uploader.close()
"""

import logging
import os
from typing import Any, Callable, Mapping

from desktop_uploader.config import Options
from desktop_uploader.events import EventBus
from desktop_uploader.ignore import IgnoreFilter
from desktop_uploader.registry import PathRegistry
from desktop_uploader.settle import SettleDetector
from desktop_uploader.state import StateStore, state_file_path
from desktop_uploader.throttle import ThrottleGroup
from desktop_uploader.upload_queue import TransferStep, UploadQueue, UploadTask
from desktop_uploader.watcher import ChangeWatcher, WatchdogSource, WatchSource

logger = logging.getLogger(__name__)

_UNSET = object()


class DesktopUploader:
    """Watches roots, settles written files and queues them for transfer.

    Parameters
    ----------
    options : mapping or Options, optional
        Construction options (see ``desktop_uploader.config``).
    transfer : callable, optional
        ``transfer(task)``, sync or async. Raising or returning False fails
        the attempt. Without one every task succeeds immediately.
    watch_source : callable, optional
        Factory for the native watch primitive (default: watchdog).
    """

    def __init__(
        self,
        options: Mapping[str, Any] | Options | None = None,
        transfer: TransferStep | None = None,
        watch_source: Callable[[], WatchSource] = WatchdogSource,
        **overrides: Any,
    ):
        if not isinstance(options, Options):
            options = Options.from_mapping({**dict(options or {}), **overrides})
        self.options = options
        self.bus = EventBus()

        self.state = StateStore(
            state_file_path(options.name, options.config_path),
            save_interval=options.save_interval_seconds,
        )
        self.registry = PathRegistry(self.state.paths)
        self.ignore_filter = IgnoreFilter(self.state, self.bus, options.extensions)
        self.queue = UploadQueue(
            self.registry,
            self.state,
            self.bus,
            transfer=transfer,
            concurrency=options.concurrency,
            retries=options.retries,
        )
        self.settle = SettleDetector(
            self.registry,
            self.bus,
            on_settled=self.queue.push,
            interval=options.modify_interval_seconds,
        )
        self.watcher = ChangeWatcher(
            roots=lambda: list(self.registry),
            ignore=self.ignore_filter,
            bus=self.bus,
            on_change=self.settle.track,
            on_remove=self._on_remove,
            source_factory=watch_source,
        )
        if options.throttle:
            self.throttle = options.throttle

        for root in self.registry:
            if not os.path.isdir(root):
                logger.warning("Restored root no longer exists: %s", root)
        for path in options.paths:
            if self.get(path) is None:
                self.watch(path)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        return self.bus.on(event, handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        self.bus.off(event, handler)

    # ------------------------------------------------------------------
    # Live settings
    # ------------------------------------------------------------------

    @property
    def concurrency(self) -> int:
        return self.queue.concurrency

    @concurrency.setter
    def concurrency(self, value: int) -> None:
        self.queue.concurrency = value

    @property
    def retries(self) -> int:
        return self.queue.retries

    @retries.setter
    def retries(self, value: int) -> None:
        self.queue.retries = value

    @property
    def throttle(self) -> int:
        """Shared upload budget in bytes/sec (0 = unlimited)."""
        group = self.queue.throttle_group
        return group.rate if group else 0

    @throttle.setter
    def throttle(self, rate: int) -> None:
        if rate:
            self.bus.log("Throttling to %.1f kbytes/sec", rate / 1024)
            self.queue.throttle_group = ThrottleGroup(rate)
        else:
            self.queue.throttle_group = None

    @property
    def modify_interval(self) -> float:
        """Seconds between settle samples."""
        return self.settle.interval

    @modify_interval.setter
    def modify_interval(self, seconds: float) -> None:
        self.settle.interval = max(0.0, float(seconds))

    @property
    def tasks(self) -> list[UploadTask]:
        return self.queue.tasks

    @property
    def is_watching(self) -> bool:
        return self.watcher.is_running

    # ------------------------------------------------------------------
    # Roots
    # ------------------------------------------------------------------

    def watch(self, path, config: Any = None) -> str:
        """Register *path* (overwriting its config) and watch it if running."""
        self.bus.log("Watching %s", path)
        root = self.registry.add(path, config)
        self.bus.emit("watch", root, self.registry.get(root))
        self.watcher.add(root)
        self.state.save()
        return root

    def unwatch(self, path=None) -> list[str]:
        """Unregister one root, or every root when *path* is None."""
        if path is None:
            self.bus.log("Unwatching all paths")
            removed = self.registry.clear()
        else:
            self.bus.log("Unwatching %s", path)
            root = self.registry.remove(path)
            removed = [root] if root else []
        self.bus.emit("unwatch", removed)
        for root in removed:
            self.watcher.remove(root)
        self.state.save()
        return removed

    def get(self, path=None) -> Any:
        return self.registry.get(path)

    # ------------------------------------------------------------------
    # Persisted custom settings
    # ------------------------------------------------------------------

    def config(self, name: str, value: Any = _UNSET) -> Any:
        """Read a custom setting, or set it and schedule a save."""
        if value is _UNSET:
            return self.state.custom.get(name)
        self.state.custom[name] = value
        self.state.save()
        return None

    def save(self, immediate: bool = False) -> None:
        if immediate:
            self.bus.log("Writing cache to %s...", self.state.path)
        self.state.save(immediate)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def resume(self) -> None:
        """Start the watcher if it is stopped and un-pause the queue."""
        if not self.watcher.is_running:
            self.bus.emit("resume")
            self.watcher.resume()
        if self.queue.paused:
            self.queue.resume()

    def pause_watcher(self) -> None:
        """Stop watching; registrations are kept for the next resume."""
        self.bus.emit("pause", "watcher")
        self.watcher.pause()

    pause = pause_watcher

    def pause_queue(self) -> None:
        """Stop dispatching new uploads; running ones finish."""
        self.bus.emit("pause", "queue")
        self.queue.pause()

    def resume_queue(self) -> None:
        self.bus.emit("resume", "queue")
        self.queue.resume()

    async def join(self) -> None:
        """Wait until the upload queue is empty and idle."""
        await self.queue.join()

    async def close(self) -> None:
        """Stop watching, cancel pending settles, finish uploads, flush state."""
        self.watcher.pause()
        await self.settle.close()
        await self.queue.close()
        self.state.flush()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_remove(self, path: str) -> None:
        if self.state.forget(path):
            logger.debug("Evicted cache entry for %s", path)
        self.state.save()
