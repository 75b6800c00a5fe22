"""Tests for size-stability settling and owning-root resolution."""

import asyncio
import os

from desktop_uploader.settle import SettleDetector

from conftest import fake_stat


class SampledFile:
    """Stat function that replays a list of sizes, then repeats the last one."""

    def __init__(self, sizes):
        self.sizes = list(sizes)
        self.calls = 0

    def __call__(self, path):
        size = self.sizes[min(self.calls, len(self.sizes) - 1)]
        self.calls += 1
        return fake_stat(size=size)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        await asyncio.sleep(0)


def _detector(registry, bus, stat, sleep, settled, interval=5.0):
    return SettleDetector(
        registry,
        bus,
        on_settled=lambda path, root: settled.append((path, root)),
        interval=interval,
        stat=stat,
        sleep=sleep,
    )


def test_settles_after_two_equal_samples(tmp_path, registry, bus, recorder):
    root = registry.add(str(tmp_path))
    path = os.path.join(root, "clip.wav")
    stat = SampledFile([0, 10, 10])
    sleep = RecordingSleep()
    settled = []

    async def scenario():
        detector = _detector(registry, bus, stat, sleep, settled)
        await detector.track("add", path)

    asyncio.run(scenario())

    assert stat.calls == 3
    assert sleep.calls == [5.0, 5.0, 5.0]
    assert settled == [(path, root)]
    assert recorder.of("queue") == [(path, root)]


def test_growing_file_never_settles(tmp_path, registry, bus, recorder):
    root = registry.add(str(tmp_path))
    path = os.path.join(root, "stream.ts")
    stat = SampledFile(range(1, 10_000))
    settled = []

    async def scenario():
        enough = asyncio.Event()

        async def sleep(seconds):
            if stat.calls >= 50:
                enough.set()
            await asyncio.sleep(0)

        detector = _detector(registry, bus, stat, sleep, settled)
        detector.track("change", path)
        await enough.wait()
        assert detector.pending_files == [path]
        await detector.close()

    asyncio.run(scenario())

    assert settled == []
    assert recorder.of("queue") == []


def test_stat_failure_reports_error(tmp_path, registry, bus, recorder):
    registry.add(str(tmp_path))
    missing = str(tmp_path / "gone.bin")
    settled = []

    async def scenario():
        detector = _detector(registry, bus, os.stat, RecordingSleep(), settled)
        await detector.track("add", missing)

    asyncio.run(scenario())

    errors = recorder.of("error")
    assert len(errors) == 1
    assert errors[0][1] == missing
    assert settled == []


def test_unregistered_root_is_ignored(tmp_path, registry, bus, recorder):
    root = registry.add(str(tmp_path))
    path = os.path.join(root, "late.txt")
    settled = []

    async def scenario():
        async def sleep(seconds):
            # root disappears mid-settle
            registry.clear()

        detector = _detector(registry, bus, SampledFile([4]), sleep, settled)
        await detector.track("add", path)

    asyncio.run(scenario())

    assert settled == []
    assert recorder.of("ignore") == [(path,)]


def test_sibling_prefix_root_resolves_to_longer_name(tmp_path, registry, bus):
    (tmp_path / "a").mkdir()
    (tmp_path / "ab").mkdir()
    registry.add(str(tmp_path / "a"))
    root_ab = registry.add(str(tmp_path / "ab"))
    path = os.path.join(root_ab, "file.txt")
    settled = []

    async def scenario():
        detector = _detector(registry, bus, SampledFile([3]), RecordingSleep(), settled)
        await detector.track("add", path)

    asyncio.run(scenario())

    assert settled == [(path, root_ab)]


def test_duplicate_events_share_one_settle(tmp_path, registry, bus):
    root = registry.add(str(tmp_path))
    path = os.path.join(root, "dup.txt")
    settled = []

    async def scenario():
        detector = _detector(registry, bus, SampledFile([7]), RecordingSleep(), settled)
        first = detector.track("add", path)
        second = detector.track("change", path)
        assert second is None
        await first
        assert detector.pending_count == 0

    asyncio.run(scenario())

    assert settled == [(path, root)]


def test_one_byte_file_settles_after_single_sample(tmp_path, registry, bus):
    root = registry.add(str(tmp_path))
    path = os.path.join(root, "tiny.txt")
    stat = SampledFile([1])
    settled = []

    async def scenario():
        detector = _detector(registry, bus, stat, RecordingSleep(), settled)
        await detector.track("add", path)

    asyncio.run(scenario())

    # the previous size starts out as 1, matching the first sample
    assert stat.calls == 1
    assert settled == [(path, root)]
