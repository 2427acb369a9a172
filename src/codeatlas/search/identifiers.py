"""Identifier-level hybrid search with ranked call sites.

The identifier index holds one vector per symbol plus the raw lines of every
code file, which the call-site ranker scans. Identifier and call-site
vectors share one disk cache namespace (``id:`` and ``callsite:`` keys).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import structlog

from codeatlas.config.models import SearchConfig
from codeatlas.core.errors import EmbeddingError
from codeatlas.embedding.cache import IDENTIFIER_CACHE_NAMESPACE, CacheEntry, DiskEmbeddingCache
from codeatlas.embedding.provider import EmbeddingAdapter
from codeatlas.index.documents import (
    IDENTIFIER_KEY_PREFIX,
    IdentifierDocument,
    build_identifier_documents,
    normalize_relative_path,
)
from codeatlas.index.parser import format_line_range, is_supported_file
from codeatlas.index.walker import collect_files
from codeatlas.search.cache import IndexCache
from codeatlas.search.callsites import CALLSITE_KEY_PREFIX, CallSiteRanking, rank_call_sites
from codeatlas.search.file_search import embedding_unavailable
from codeatlas.search.options import IdentifierSearchOptions
from codeatlas.search.ranking import (
    cosine_many,
    keyword_coverage,
    normalize_weight,
    rank,
    score_item,
    to_percent,
    tokenize,
)
from codeatlas.search.vectors import VectorRequest, resolve_vectors

log = structlog.get_logger()

NO_IDENTIFIERS = "No supported identifiers found for semantic identifier search."
NO_KIND_MATCHES = "No identifiers matched the requested kind filters."
NO_IDENTIFIER_MATCHES = "No identifiers matched the given query."


@dataclass(frozen=True, slots=True)
class IdentifierIndex:
    """Parallel ``docs[i] <-> vectors[i]`` plus code file lines by path."""

    docs: list[IdentifierDocument]
    vectors: np.ndarray
    file_lines: dict[str, list[str]]

    def __len__(self) -> int:
        return len(self.docs)


@dataclass(frozen=True, slots=True)
class IdentifierMatch:
    doc: IdentifierDocument
    semantic_score: float
    keyword_score: float
    score: float
    calls: CallSiteRanking = field(default_factory=lambda: CallSiteRanking(sites=[], total=0))


def drop_file_entries(entries: dict[str, CacheEntry], relative_path: str) -> int:
    """Remove identifier and call-site entries scoped to one file."""
    prefixes = (
        f"{IDENTIFIER_KEY_PREFIX}{relative_path}:",
        f"{CALLSITE_KEY_PREFIX}{relative_path}:",
    )
    stale = [key for key in entries if key.startswith(prefixes)]
    for key in stale:
        del entries[key]
    return len(stale)


class IdentifierSearchService:
    """Identifier index lifecycle and queries for one root."""

    def __init__(
        self,
        root: Path,
        config: SearchConfig,
        adapter: EmbeddingAdapter,
        disk_cache: DiskEmbeddingCache,
        index_cache: IndexCache[IdentifierIndex],
    ) -> None:
        self._root = root.resolve()
        self._root_key = str(self._root)
        self._config = config
        self._adapter = adapter
        self._disk_cache = disk_cache
        self._index_cache = index_cache
        self._lock = asyncio.Lock()

    def collect(self) -> tuple[list[IdentifierDocument], dict[str, list[str]]]:
        docs: list[IdentifierDocument] = []
        file_lines: dict[str, list[str]] = {}
        for entry in collect_files(self._root):
            if not is_supported_file(entry.path):
                continue
            try:
                content = entry.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                log.debug("identifier_index.read_failed", path=entry.relative_path)
                continue
            file_lines[entry.relative_path] = content.split("\n")
            docs.extend(build_identifier_documents(self._root, entry.relative_path))
        return docs, file_lines

    async def build_index(self) -> IdentifierIndex:
        cached = self._index_cache.get(self._root_key)
        if cached is not None:
            return cached

        async with self._lock:
            cached = self._index_cache.get(self._root_key)
            if cached is not None:
                return cached

            generation = self._index_cache.generation
            docs, file_lines = self.collect()
            if not docs:
                index = IdentifierIndex(
                    docs=[], vectors=np.zeros((0, 0), dtype=np.float32), file_lines=file_lines
                )
                self._index_cache.store(self._root_key, index, generation=generation)
                return index

            entries = self._disk_cache.load(IDENTIFIER_CACHE_NAMESPACE)
            resolved = await resolve_vectors(
                self._adapter,
                entries,
                [VectorRequest(doc.cache_key, doc.text) for doc in docs],
            )
            if resolved.embedded:
                self._disk_cache.save(IDENTIFIER_CACHE_NAMESPACE, entries)

            kept = [
                (doc, vec) for doc, vec in zip(docs, resolved.vectors, strict=True) if vec is not None
            ]
            index = IdentifierIndex(
                docs=[doc for doc, _ in kept],
                vectors=(
                    np.vstack([vec for _, vec in kept])
                    if kept
                    else np.zeros((0, 0), dtype=np.float32)
                ),
                file_lines=file_lines,
            )
            if not self._index_cache.store(self._root_key, index, generation=generation):
                log.debug("identifier_index.build_superseded", identifiers=len(index))
            log.info(
                "identifier_index.built",
                identifiers=len(index),
                files=len(file_lines),
                embedded=resolved.embedded,
            )
            return index

    async def search(
        self, query: str, options: IdentifierSearchOptions | None = None
    ) -> list[IdentifierMatch]:
        index = await self.build_index()
        return await self._search_index(index, query, options or IdentifierSearchOptions())

    async def search_report(
        self, query: str, options: IdentifierSearchOptions | None = None
    ) -> str:
        opts = options or IdentifierSearchOptions()
        try:
            index = await self.build_index()
            if not len(index):
                return NO_IDENTIFIERS
            kinds = opts.kind_filter()
            if kinds is not None and not any(doc.kind in kinds for doc in index.docs):
                return NO_KIND_MATCHES
            matches = await self._search_index(index, query, opts)
        except EmbeddingError as e:
            log.warning("identifier_search.embedding_failed", code=e.code.value, message=e.message)
            return embedding_unavailable(e)
        return format_identifier_report(query, matches)

    async def _search_index(
        self, index: IdentifierIndex, query: str, opts: IdentifierSearchOptions
    ) -> list[IdentifierMatch]:
        if not len(index):
            return []
        kinds = opts.kind_filter()
        candidates = [
            i for i, doc in enumerate(index.docs) if kinds is None or doc.kind in kinds
        ]
        if not candidates:
            return []

        query_vec = await self._adapter.embed_one(query)
        if index.vectors.shape[1] != len(query_vec):
            # Snapshot built from another model's cached vectors
            log.info(
                "identifier_index.dimension_changed",
                index_dim=index.vectors.shape[1],
                query_dim=len(query_vec),
            )
            self._index_cache.invalidate()
            index = await self.build_index()
            candidates = [
                i for i, doc in enumerate(index.docs) if kinds is None or doc.kind in kinds
            ]
        query_terms = set(tokenize(query))
        sims = cosine_many(index.vectors, query_vec)
        semantic_weight = normalize_weight(
            opts.semantic_weight, self._config.identifier_semantic_weight
        )
        keyword_weight = normalize_weight(opts.keyword_weight, self._config.identifier_keyword_weight)

        scored = [
            score_item(
                index.docs[i],
                float(sims[i]),
                keyword_coverage(query_terms, index.docs[i].keyword_text),
                semantic_weight,
                keyword_weight,
            )
            for i in candidates
        ]
        top = rank(scored, opts.filters(), opts.resolve_top_k(self._config.default_top_k))
        if not top:
            return []

        top_calls = opts.resolve_top_calls(self._config.default_top_calls)
        matches: list[IdentifierMatch] = []
        async with self._lock:
            entries = self._disk_cache.load(IDENTIFIER_CACHE_NAMESPACE)
            before = dict(entries)
            for item in top:
                calls = await rank_call_sites(
                    self._adapter,
                    entries,
                    query_terms,
                    query_vec,
                    item.item,
                    index.file_lines,
                    top_calls,
                    semantic_weight=self._config.callsite_semantic_weight,
                    keyword_weight=self._config.callsite_keyword_weight,
                )
                matches.append(
                    IdentifierMatch(
                        doc=item.item,
                        semantic_score=item.semantic_score,
                        keyword_score=item.keyword_score,
                        score=item.combined_score,
                        calls=calls,
                    )
                )
            if entries != before:
                self._disk_cache.save(IDENTIFIER_CACHE_NAMESPACE, entries)
        return matches

    async def refresh(self, relative_paths: list[str]) -> int:
        """Drop and re-embed the identifiers of changed files; returns identifiers embedded."""
        unique = list(dict.fromkeys(p for p in map(normalize_relative_path, relative_paths) if p))
        if not unique:
            return 0

        async with self._lock:
            entries = self._disk_cache.load(IDENTIFIER_CACHE_NAMESPACE)
            requests: list[VectorRequest] = []
            for rel in unique:
                drop_file_entries(entries, rel)
                requests.extend(
                    VectorRequest(doc.cache_key, doc.text)
                    for doc in build_identifier_documents(self._root, rel)
                )

            resolved = await resolve_vectors(self._adapter, entries, requests)
            self._disk_cache.save(IDENTIFIER_CACHE_NAMESPACE, entries)
            self._index_cache.invalidate()

        log.debug("identifier_index.refreshed", paths=len(unique), embedded=resolved.embedded)
        return resolved.embedded

    def invalidate(self) -> None:
        self._index_cache.invalidate()


def format_identifier_report(query: str, matches: list[IdentifierMatch]) -> str:
    if not matches:
        return NO_IDENTIFIER_MATCHES

    lines = [f'Top {len(matches)} identifier matches for: "{query}"', ""]
    for i, match in enumerate(matches, start=1):
        doc = match.doc
        lines.append(
            f"{i}. {doc.kind.value} {doc.name} - {doc.path} "
            f"({format_line_range(doc.line, doc.end_line)})"
        )
        lines.append(
            f"   Score: {to_percent(match.score)}% | "
            f"Semantic: {to_percent(match.semantic_score)}% | "
            f"Keyword: {to_percent(match.keyword_score)}%"
        )
        lines.append(f"   Signature: {doc.signature}")
        if doc.parent_name:
            lines.append(f"   Parent: {doc.parent_name}")

        if not match.calls.sites:
            lines.append("   Calls: none found")
            lines.append("")
            continue

        lines.append(f"   Calls ({len(match.calls.sites)}/{match.calls.total}):")
        for j, site in enumerate(match.calls.sites, start=1):
            lines.append(f"     {j}. {site.file}:L{site.line} ({to_percent(site.score)}%) {site.context}")
        lines.append("")
    return "\n".join(lines)
