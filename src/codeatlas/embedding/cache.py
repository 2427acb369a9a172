"""Content-hash keyed embedding cache persisted as JSON.

One JSON file per namespace under the project's data directory::

    {"<logical key>": {"hash": "<base36 content hash>", "vector": [...]}, ...}

Keys are ``<path>`` for whole-file documents, ``id:<path>:<name>:<line>`` for
identifiers and ``callsite:<path>:<line>`` for call sites. An entry is only
reused while its hash matches the current embedding input. The cache is an
optimization: a missing or corrupt file loads as an empty map.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TypedDict

import structlog

log = structlog.get_logger()

FILE_CACHE_NAMESPACE = "embeddings-cache.json"
IDENTIFIER_CACHE_NAMESPACE = "identifier-embeddings-cache.json"

_DIGITS36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class CacheEntry(TypedDict):
    hash: str
    vector: list[float]


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS36[rem])
    return sign + "".join(reversed(digits))


def content_hash(text: str) -> str:
    """Fast, deterministic change detector over the full embedding input.

    Rolling ``h = h * 31 + unit`` over UTF-16 code units with signed 32-bit
    wraparound, rendered in base 36. Not collision resistant.
    """
    data = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + (data[i] | (data[i + 1] << 8))) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


class DiskEmbeddingCache:
    """Namespaced JSON embedding cache rooted at a data directory."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, namespace: str) -> Path:
        return self._data_dir / namespace

    def load(self, namespace: str) -> dict[str, CacheEntry]:
        path = self.path_for(namespace)
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning("embedding_cache.load_failed", path=str(path), exc_info=True)
            return {}
        if not isinstance(raw, dict):
            log.warning("embedding_cache.unexpected_shape", path=str(path))
            return {}

        entries: dict[str, CacheEntry] = {}
        for key, entry in raw.items():
            if (
                isinstance(entry, dict)
                and isinstance(entry.get("hash"), str)
                and isinstance(entry.get("vector"), list)
            ):
                entries[key] = {"hash": entry["hash"], "vector": entry["vector"]}
        return entries

    def save(self, namespace: str, entries: dict[str, CacheEntry]) -> None:
        """Write the namespace atomically (temp file + rename).

        A failed write is logged and dropped; the next pass recomputes.
        """
        path = self.path_for(namespace)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(entries, separators=(",", ":")), encoding="utf-8")
            os.replace(tmp, path)
        except OSError:
            log.warning("embedding_cache.save_failed", path=str(path), exc_info=True)
            return
        log.debug("embedding_cache.saved", path=str(path), entries=len(entries))
