"""Tests for daemon/tracker.py - debounced incremental refresh."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from codeatlas.daemon.tracker import (
    EmbeddingTracker,
    clamp_debounce_ms,
    clamp_files_per_tick,
    should_track,
)

# Long enough that the debounce timer never fires on its own
MANUAL_DEBOUNCE_MS = 60_000


class RecordingRefresher:
    def __init__(self, fail: bool = False) -> None:
        self.batches: list[list[str]] = []
        self.fail = fail

    async def __call__(self, paths: list[str]) -> int:
        self.batches.append(list(paths))
        if self.fail:
            raise RuntimeError("refresh exploded")
        return len(paths)


class TestClamps:
    """Setting clamp tests."""

    @pytest.mark.parametrize(("value", "expected"), [(None, 8), (1, 5), (7.9, 7), (50, 10)])
    def test_files_per_tick(self, value: float | None, expected: int) -> None:
        assert clamp_files_per_tick(value) == expected

    @pytest.mark.parametrize(("value", "expected"), [(None, 700), (10, 100), (250.5, 250)])
    def test_debounce(self, value: float | None, expected: int) -> None:
        assert clamp_debounce_ms(value) == expected

    def test_should_track(self) -> None:
        assert should_track("src/app.py")
        assert not should_track("")
        assert not should_track(".codeatlas/embeddings-cache.json")
        assert not should_track("node_modules/pkg/index.js")
        assert not should_track(".git/HEAD")

    def test_tracker_applies_clamps(self, tmp_path: Path) -> None:
        tracker = EmbeddingTracker(tmp_path, [], debounce_ms=10, max_files_per_tick=50)
        assert tracker.debounce_ms == 100
        assert tracker.max_files_per_tick == 10
        assert not tracker.enabled


class TestQueueAndFlush:
    """Queueing and batching tests."""

    @pytest.mark.asyncio
    async def test_queue_dedupes_in_arrival_order(self, tmp_path: Path) -> None:
        tracker = EmbeddingTracker(tmp_path, [], debounce_ms=MANUAL_DEBOUNCE_MS)
        for path in ["b.py", "a.py", "b.py", "c.py", "\\d.py"]:
            tracker.queue_change(path)
        assert tracker.pending == ["b.py", "a.py", "c.py", "d.py"]
        await tracker.stop()

    @pytest.mark.asyncio
    async def test_ignored_and_outside_paths_skipped(self, tmp_path: Path) -> None:
        tracker = EmbeddingTracker(tmp_path, [], debounce_ms=MANUAL_DEBOUNCE_MS)
        tracker.queue_change(".codeatlas/restore-points.json")
        tracker.queue_change("node_modules/x.js")
        tracker.queue_change(str(tmp_path.parent / "elsewhere.py"))
        tracker.queue_change(str(tmp_path / "src" / "inside.py"))
        assert tracker.pending == ["src/inside.py"]
        await tracker.stop()

    @pytest.mark.asyncio
    async def test_flush_takes_one_batch(self, tmp_path: Path) -> None:
        files, identifiers = RecordingRefresher(), RecordingRefresher()
        tracker = EmbeddingTracker(
            tmp_path, [files, identifiers], debounce_ms=MANUAL_DEBOUNCE_MS, max_files_per_tick=5
        )
        names = [f"f{i}.py" for i in range(7)]
        for name in names:
            tracker.queue_change(name)

        assert await tracker.flush() == 5

        assert files.batches == [names[:5]]
        assert identifiers.batches == [names[:5]]
        assert tracker.pending == names[5:]
        await tracker.stop()

    @pytest.mark.asyncio
    async def test_failing_refresher_does_not_block_others(self, tmp_path: Path) -> None:
        broken, healthy = RecordingRefresher(fail=True), RecordingRefresher()
        tracker = EmbeddingTracker(tmp_path, [broken, healthy], debounce_ms=MANUAL_DEBOUNCE_MS)
        tracker.queue_change("a.py")

        assert await tracker.flush() == 1
        assert healthy.batches == [["a.py"]]
        assert tracker.pending == []
        await tracker.stop()

    @pytest.mark.asyncio
    async def test_flush_idle_returns_zero(self, tmp_path: Path) -> None:
        refresher = RecordingRefresher()
        tracker = EmbeddingTracker(tmp_path, [refresher])
        assert await tracker.flush() == 0
        assert refresher.batches == []

    @pytest.mark.asyncio
    async def test_single_flush_in_flight(self, tmp_path: Path) -> None:
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow(paths: list[str]) -> int:
            started.set()
            await release.wait()
            return len(paths)

        tracker = EmbeddingTracker(tmp_path, [slow], debounce_ms=MANUAL_DEBOUNCE_MS)
        tracker.queue_change("a.py")
        first = asyncio.create_task(tracker.flush())
        await started.wait()
        tracker.queue_change("b.py")

        assert await tracker.flush() == 0

        release.set()
        assert await first == 1
        assert tracker.pending == ["b.py"]
        await tracker.stop()

    @pytest.mark.asyncio
    async def test_stopped_tracker_ignores_changes(self, tmp_path: Path) -> None:
        refresher = RecordingRefresher()
        tracker = EmbeddingTracker(tmp_path, [refresher], debounce_ms=MANUAL_DEBOUNCE_MS)
        tracker.queue_change("a.py")
        await tracker.stop()

        tracker.queue_change("b.py")

        assert tracker.pending == ["a.py"]
        assert await tracker.flush() == 0
        assert refresher.batches == []


class TestDebounce:
    """Timer-driven flush tests."""

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_flush(self, tmp_path: Path) -> None:
        refresher = RecordingRefresher()
        tracker = EmbeddingTracker(tmp_path, [refresher], debounce_ms=100)
        for name in ["a.py", "b.py", "c.py"]:
            tracker.queue_change(name)
            await asyncio.sleep(0.02)

        await asyncio.sleep(0.4)

        assert refresher.batches == [["a.py", "b.py", "c.py"]]
        await tracker.stop()

    @pytest.mark.asyncio
    async def test_remaining_work_rescheduled(self, tmp_path: Path) -> None:
        refresher = RecordingRefresher()
        tracker = EmbeddingTracker(tmp_path, [refresher], debounce_ms=100, max_files_per_tick=5)
        for i in range(8):
            tracker.queue_change(f"f{i}.py")

        await asyncio.sleep(0.6)

        assert [len(batch) for batch in refresher.batches] == [5, 3]
        assert tracker.pending == []
        await tracker.stop()


class TestLifecycle:
    """Watcher start/stop tests."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tmp_path: Path) -> None:
        tracker = EmbeddingTracker(tmp_path, [])
        await tracker.start()
        assert tracker.enabled
        await tracker.stop()
        assert not tracker.enabled


class TestFlushIsolation:
    """Events arriving while refreshers run."""

    @pytest.mark.asyncio
    async def test_change_during_flush_does_not_abort_it(self, tmp_path: Path) -> None:
        release = asyncio.Event()
        started = asyncio.Event()
        finished: list[list[str]] = []

        async def slow(paths: list[str]) -> int:
            started.set()
            await release.wait()
            finished.append(list(paths))
            return len(paths)

        tracker = EmbeddingTracker(tmp_path, [slow], debounce_ms=100)
        tracker.queue_change("a.py")
        await asyncio.wait_for(started.wait(), timeout=2.0)

        tracker.queue_change("b.py")
        await asyncio.sleep(0.2)
        release.set()
        await asyncio.sleep(0.4)

        assert finished == [["a.py"], ["b.py"]]
        assert tracker.pending == []
        await tracker.stop()

    @pytest.mark.asyncio
    async def test_stop_waits_for_running_flush(self, tmp_path: Path) -> None:
        started = asyncio.Event()
        finished: list[list[str]] = []

        async def slow(paths: list[str]) -> int:
            started.set()
            await asyncio.sleep(0.1)
            finished.append(list(paths))
            return len(paths)

        tracker = EmbeddingTracker(tmp_path, [slow], debounce_ms=100)
        tracker.queue_change("a.py")
        await asyncio.wait_for(started.wait(), timeout=2.0)

        await tracker.stop()

        assert finished == [["a.py"]]
