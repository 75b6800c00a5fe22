"""File system watching for Desktop Uploader.

The native recursive watch is a pluggable ``WatchSource``: given roots,
an ignore predicate and a sink, it reports add/change/remove events until
stopped. ``WatchdogSource`` is the default, built on the watchdog
library; its observer thread never touches uploader state and hands
every event to the asyncio loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import Any, Protocol

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from desktop_uploader.events import EventBus
from desktop_uploader.platform_utils import normalize_file_path

logger = logging.getLogger(__name__)

ADD = "add"
CHANGE = "change"
REMOVE = "remove"

JOIN_TIMEOUT = 5.0

EventSink = Callable[[str, str], None]
IgnorePredicate = Callable[[str], bool]


class WatchSource(Protocol):
    """Native recursive watch primitive."""

    def start(self, roots: list[str], ignore: IgnorePredicate, sink: EventSink) -> None: ...

    def add(self, root: str) -> None: ...

    def remove(self, root: str) -> None: ...

    def stop(self) -> None: ...


class _LoopForwardingHandler(FileSystemEventHandler):
    """Watchdog handler that forwards file events onto the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, deliver: EventSink):
        super().__init__()
        self._loop = loop
        self._deliver = deliver

    def _forward(self, kind: str, path: str | bytes) -> None:
        if isinstance(path, bytes):
            path = path.decode()
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._deliver, kind, path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(ADD, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(CHANGE, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(REMOVE, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(REMOVE, event.src_path)
            self._forward(ADD, event.dest_path)


class WatchdogSource:
    """WatchSource backed by a watchdog Observer.

    Must be started from a coroutine running on the loop that should
    receive the events.
    """

    def __init__(self, observer_factory: Callable[[], Any] = Observer):
        self._observer_factory = observer_factory
        self._observer: Any | None = None
        self._handler: _LoopForwardingHandler | None = None
        self._ignore: IgnorePredicate | None = None
        self._sink: EventSink | None = None
        self._watches: dict[str, Any] = {}

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self, roots: list[str], ignore: IgnorePredicate, sink: EventSink) -> None:
        loop = asyncio.get_running_loop()
        self._ignore = ignore
        self._sink = sink
        self._handler = _LoopForwardingHandler(loop, self._deliver)
        observer = self._observer_factory()
        self._observer = observer
        for root in roots:
            if not os.path.isdir(root):
                logger.error("Cannot watch %s: not a directory", root)
                continue
            self.add(root)
        observer.start()

    def add(self, root: str) -> None:
        if self._observer is None or root in self._watches:
            return
        try:
            self._watches[root] = self._observer.schedule(self._handler, root, recursive=True)
        except OSError as exc:
            logger.error("Cannot watch %s: %s", root, exc)
            raise

    def remove(self, root: str) -> None:
        watch = self._watches.pop(root, None)
        if watch is not None and self._observer is not None:
            self._observer.unschedule(watch)

    def stop(self) -> None:
        """Stop the observer; events it still delivers are dropped.

        On a running loop the observer thread is joined in the default
        executor so the loop is not held up while it winds down.
        """
        observer, self._observer = self._observer, None
        self._sink = None
        self._watches.clear()
        self._handler = None
        if observer is None:
            return
        observer.stop()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            observer.join(timeout=JOIN_TIMEOUT)
        else:
            loop.run_in_executor(None, observer.join, JOIN_TIMEOUT)

    def _deliver(self, kind: str, path: str) -> None:
        # Runs on the event loop thread.
        if self._sink is None:
            return
        if kind != REMOVE and self._ignore is not None and self._ignore(path):
            return
        self._sink(kind, path)


class ChangeWatcher:
    """Owns the watch source lifecycle and routes its events.

    Add/change events go to *on_change*; remove events go to *on_remove*
    and bypass settling entirely.
    """

    def __init__(
        self,
        roots: Callable[[], list[str]],
        ignore: IgnorePredicate,
        bus: EventBus,
        on_change: Callable[[str, str], Any],
        on_remove: Callable[[str], Any],
        source_factory: Callable[[], WatchSource] = WatchdogSource,
    ):
        self._roots = roots
        self._ignore = ignore
        self._bus = bus
        self._on_change = on_change
        self._on_remove = on_remove
        self._source_factory = source_factory
        self._source: WatchSource | None = None

    @property
    def is_running(self) -> bool:
        return self._source is not None

    def resume(self) -> bool:
        """Start watching every root; return False when already running."""
        if self._source is not None:
            return False
        roots = self._roots()
        self._bus.log("Creating watcher with %d root(s)", len(roots))
        source = self._source_factory()
        source.start(roots, self._ignore, self._dispatch)
        self._source = source
        for root in roots:
            logger.info("Watching '%s' (recursive)", root)
        return True

    def pause(self) -> bool:
        """Stop and discard the source; return False when not running."""
        if self._source is None:
            return False
        source, self._source = self._source, None
        source.stop()
        logger.info("Watcher stopped.")
        return True

    def add(self, root: str) -> None:
        if self._source is not None:
            self._bus.log("Adding %s", root)
            self._source.add(root)

    def remove(self, root: str) -> None:
        if self._source is not None:
            self._source.remove(root)

    def _dispatch(self, kind: str, path: str) -> None:
        path = normalize_file_path(path)
        if kind == REMOVE:
            self._on_remove(path)
        elif kind in (ADD, CHANGE):
            self._on_change(kind, path)
        else:
            logger.debug("Unknown watch event %r for %s", kind, path)
