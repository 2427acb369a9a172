"""In-memory index snapshot cache with a time-to-live.

One instance per index kind, owned by the application context. A snapshot is
reused only for the same root and only until the TTL elapses; mutating
operations call ``invalidate``, which also bumps a generation counter so a
build that started before the invalidation is not stored. Rebuilds replace
the snapshot wholesale, so a search holding the previous snapshot keeps a
consistent view.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CachedSnapshot(Generic[T]):
    snapshot: T
    built_at: float
    root_key: str


class IndexCache(Generic[T]):
    """TTL-guarded holder for one index snapshot."""

    def __init__(self, ttl_sec: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._entry: CachedSnapshot[T] | None = None
        self._generation = 0

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def get(self, root_key: str) -> T | None:
        entry = self._entry
        if entry is None or entry.root_key != root_key:
            return None
        if self._clock() - entry.built_at >= self._ttl_sec:
            return None
        return entry.snapshot

    @property
    def generation(self) -> int:
        return self._generation

    def store(self, root_key: str, snapshot: T, *, generation: int | None = None) -> bool:
        """Hold ``snapshot``; returns False when it was built before an invalidation.

        ``generation`` is the value read when the build began.
        """
        if generation is not None and generation != self._generation:
            return False
        self._entry = CachedSnapshot(snapshot=snapshot, built_at=self._clock(), root_key=root_key)
        return True

    def invalidate(self) -> None:
        self._entry = None
        self._generation += 1
