"""Incremental embedding refresh on file-system changes.

watchfiles reports changed paths; each tracked path joins a pending set and
(re)starts a debounce timer. When the timer fires, at most
``max_files_per_tick`` paths are taken off the set and every refresher
re-embeds them concurrently. The timer only sleeps: the flush it triggers
runs as its own task, so restarting the timer never aborts refreshers
already in flight. A busy flag keeps one flush in flight; events arriving
meanwhile wait for the next tick, which is scheduled after 100 ms while work
remains.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from watchfiles import Change, awatch

from codeatlas.config.models import (
    TRACKER_DEBOUNCE_MS_DEFAULT,
    TRACKER_DEBOUNCE_MS_MIN,
    TRACKER_FILES_PER_TICK_DEFAULT,
    TRACKER_FILES_PER_TICK_MAX,
    TRACKER_FILES_PER_TICK_MIN,
    clamp_int,
)
from codeatlas.core.excludes import TRACKER_IGNORE_PREFIXES

log = structlog.get_logger()

Refresher = Callable[[list[str]], Awaitable[int]]

RESCHEDULE_DELAY_SEC = 0.1
FLUSH_DRAIN_TIMEOUT_SEC = 5.0


def normalize_event_path(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


def should_track(relative_path: str) -> bool:
    if not relative_path:
        return False
    return not relative_path.startswith(TRACKER_IGNORE_PREFIXES)


def clamp_files_per_tick(value: float | None) -> int:
    return clamp_int(
        value, TRACKER_FILES_PER_TICK_MIN, TRACKER_FILES_PER_TICK_MAX, TRACKER_FILES_PER_TICK_DEFAULT
    )


def clamp_debounce_ms(value: float | None) -> int:
    if value is None or not math.isfinite(value):
        return TRACKER_DEBOUNCE_MS_DEFAULT
    return max(TRACKER_DEBOUNCE_MS_MIN, math.floor(value))


@dataclass
class EmbeddingTracker:
    """Debounced, batched re-embedding driven by a recursive watcher."""

    root: Path
    refreshers: Sequence[Refresher]
    debounce_ms: float = TRACKER_DEBOUNCE_MS_DEFAULT
    max_files_per_tick: float = TRACKER_FILES_PER_TICK_DEFAULT

    enabled: bool = field(default=False, init=False)
    _pending: dict[str, None] = field(default_factory=dict, init=False)
    _busy: bool = field(default=False, init=False)
    _closed: bool = field(default=False, init=False)
    _timer: asyncio.Task[None] | None = field(default=None, init=False)
    _flush_task: asyncio.Task[int] | None = field(default=None, init=False)
    _watch_task: asyncio.Task[None] | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()
        self.debounce_ms = clamp_debounce_ms(self.debounce_ms)
        self.max_files_per_tick = clamp_files_per_tick(self.max_files_per_tick)

    @property
    def pending(self) -> list[str]:
        """Queued paths in arrival order."""
        return list(self._pending)

    async def start(self) -> None:
        """Start watching. A watcher that cannot start disables tracking."""
        if self._watch_task is not None:
            return
        self._closed = False
        self._stop_event.clear()
        self.enabled = True
        self._watch_task = asyncio.create_task(self._watch_loop())
        log.info(
            "tracker.started",
            root=str(self.root),
            debounce_ms=self.debounce_ms,
            max_files_per_tick=self.max_files_per_tick,
        )

    async def stop(self) -> None:
        self._closed = True
        self.enabled = False
        self._stop_event.set()

        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
        self._timer = None

        if self._flush_task is not None and not self._flush_task.done():
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._flush_task, timeout=FLUSH_DRAIN_TIMEOUT_SEC)
        self._flush_task = None

        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._watch_task, timeout=2.0)
            self._watch_task = None
        log.info("tracker.stopped", dropped=len(self._pending))

    def queue_change(self, path: str) -> None:
        """Queue a root-relative or absolute path and restart the debounce timer."""
        if self._closed:
            return
        rel = self._relative(path)
        if not should_track(rel):
            return
        self._pending[rel] = None
        self._schedule(self.debounce_ms / 1000.0)

    async def flush(self) -> int:
        """Refresh one batch; returns the number of paths taken.

        Returns 0 without doing anything while closed, busy or idle.
        """
        if self._closed or self._busy or not self._pending:
            return 0

        self._busy = True
        batch = list(self._pending)[: int(self.max_files_per_tick)]
        for path in batch:
            del self._pending[path]

        try:
            results = await asyncio.gather(
                *(refresh(batch) for refresh in self.refreshers), return_exceptions=True
            )
            counts: list[int] = []
            for result in results:
                if isinstance(result, BaseException):
                    log.warning(
                        "tracker.refresh_failed",
                        files=len(batch),
                        error=str(result) or type(result).__name__,
                    )
                else:
                    counts.append(result)
            if any(counts):
                log.info("tracker.refreshed", files=len(batch), vectors=counts)
        finally:
            self._busy = False
            if self._pending and not self._closed:
                self._schedule(RESCHEDULE_DELAY_SEC)
        return len(batch)

    def _relative(self, path: str) -> str:
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                return candidate.resolve().relative_to(self.root).as_posix()
            except ValueError:
                return ""
        return normalize_event_path(path)

    def _accepts(self, _change: Change, path: str) -> bool:
        return should_track(self._relative(path))

    def _schedule(self, delay: float) -> None:
        timer = self._timer
        if timer is not None and not timer.done():
            timer.cancel()
        self._timer = asyncio.create_task(self._delayed_flush(delay))

    async def _delayed_flush(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._busy:
            # The running flush reschedules itself when it finishes
            return
        self._flush_task = asyncio.create_task(self.flush())

    async def _watch_loop(self) -> None:
        try:
            async for changes in awatch(
                self.root,
                watch_filter=self._accepts,
                recursive=True,
                stop_event=self._stop_event,
                ignore_permission_denied=True,
            ):
                for _change, path in changes:
                    self.queue_change(path)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.enabled = False
            log.warning("tracker.disabled", root=str(self.root), error=str(e) or type(e).__name__)
