"""Cache-aware vector resolution shared by every index pass."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import structlog

from codeatlas.embedding.cache import CacheEntry, content_hash
from codeatlas.embedding.provider import EmbeddingAdapter

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class VectorRequest:
    """A logical cache key and the exact text embedded for it."""

    key: str
    text: str


@dataclass(frozen=True, slots=True)
class ResolvedVectors:
    vectors: list[np.ndarray | None]
    embedded: int


async def resolve_vectors(
    adapter: EmbeddingAdapter,
    entries: dict[str, CacheEntry],
    requests: Sequence[VectorRequest],
) -> ResolvedVectors:
    """Reuse entries whose hash matches, embed the rest, write them back.

    ``entries`` is updated in place. The result is aligned with ``requests``;
    a slot is None only when its input could not be embedded even after
    shrinking. Cached vectors whose width differs from what the adapter
    currently produces (model changed) are embedded again; before the
    adapter has produced anything, the width of this pass's fresh rows or
    else the most common cached width is the reference.
    """
    hashes = [content_hash(req.text) for req in requests]
    rows: list[list[float] | None] = [None] * len(requests)
    misses: list[int] = []

    for i, req in enumerate(requests):
        entry = entries.get(req.key)
        if entry is not None and entry["hash"] == hashes[i]:
            rows[i] = entry["vector"]
        else:
            misses.append(i)

    embedded = await _embed_into(adapter, entries, requests, hashes, rows, misses)

    dim = adapter.dimension or _dominant_dim(rows, misses)
    stale = [i for i, row in enumerate(rows) if row is not None and len(row) != dim]
    if stale:
        log.info("vectors.dimension_changed", stale=len(stale), dim=dim)
        embedded += await _embed_into(adapter, entries, requests, hashes, rows, stale)

    vectors = [None if row is None else np.asarray(row, dtype=np.float32) for row in rows]
    return ResolvedVectors(vectors=vectors, embedded=embedded)


async def _embed_into(
    adapter: EmbeddingAdapter,
    entries: dict[str, CacheEntry],
    requests: Sequence[VectorRequest],
    hashes: list[str],
    rows: list[list[float] | None],
    indices: list[int],
) -> int:
    if not indices:
        return 0
    fresh = await adapter.embed_each([requests[i].text for i in indices])
    for i, vec in zip(indices, fresh, strict=True):
        if vec is None:
            rows[i] = None
            continue
        row = vec.tolist()
        rows[i] = row
        entries[requests[i].key] = {"hash": hashes[i], "vector": row}
    log.debug("vectors.embedded", count=len(indices), backend=adapter.name)
    return len(indices)


def _dominant_dim(rows: list[list[float] | None], fresh: list[int]) -> int | None:
    """Dimension of freshly embedded rows, else the most common cached one."""
    for i in fresh:
        row = rows[i]
        if row is not None:
            return len(row)
    counts = Counter(len(row) for row in rows if row is not None)
    if not counts:
        return None
    return counts.most_common(1)[0][0]
