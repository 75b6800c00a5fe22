"""Shared fixtures and fakes for the Desktop Uploader tests."""

from __future__ import annotations

import asyncio
import stat
from types import SimpleNamespace
from typing import Any

import pytest

from desktop_uploader.events import EventBus
from desktop_uploader.registry import PathRegistry
from desktop_uploader.state import StateStore


def fake_stat(size: int = 0, mtime: float = 0.0, mode: int = stat.S_IFREG | 0o644):
    """Minimal os.stat_result stand-in."""
    return SimpleNamespace(st_size=size, st_mtime=mtime, st_mode=mode)


async def wait_for_condition(condition_fn, timeout: float = 2.0, interval: float = 0.005) -> bool:
    """Poll *condition_fn* on the running loop until it is true or *timeout* passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if condition_fn():
            return True
        await asyncio.sleep(interval)
    return condition_fn()


class FakeWatchSource:
    """In-memory WatchSource; tests push events with ``emit``."""

    instances: list["FakeWatchSource"] = []

    def __init__(self) -> None:
        self.roots: list[str] = []
        self.ignore = None
        self.sink = None
        self.started = False
        self.stopped = False
        FakeWatchSource.instances.append(self)

    def start(self, roots, ignore, sink) -> None:
        self.roots = list(roots)
        self.ignore = ignore
        self.sink = sink
        self.started = True

    def add(self, root: str) -> None:
        if root not in self.roots:
            self.roots.append(root)

    def remove(self, root: str) -> None:
        if root in self.roots:
            self.roots.remove(root)

    def stop(self) -> None:
        self.stopped = True

    def emit(self, kind: str, path: str) -> bool:
        """Deliver like the native source: ignore predicate first, except removals."""
        if kind != "remove" and self.ignore(str(path)):
            return False
        self.sink(kind, str(path))
        return True


class Recorder:
    """Collects every notification emitted on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []
        for name in ("watch", "unwatch", "resume", "pause", "ignore", "queue",
                     "upload", "processed", "error", "drain"):
            bus.on(name, self._make(name))

    def _make(self, name: str):
        def handler(*args: Any) -> None:
            self.events.append((name, args))
        return handler

    def of(self, name: str) -> list[tuple[Any, ...]]:
        return [args for event, args in self.events if event == name]


@pytest.fixture(autouse=True)
def _reset_fake_sources():
    FakeWatchSource.instances.clear()
    yield
    FakeWatchSource.instances.clear()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus: EventBus) -> Recorder:
    return Recorder(bus)


@pytest.fixture
def state(tmp_path) -> StateStore:
    return StateStore(tmp_path / "state" / ".test.json", save_interval=0.05)


@pytest.fixture
def registry(state: StateStore) -> PathRegistry:
    return PathRegistry(state.paths)
