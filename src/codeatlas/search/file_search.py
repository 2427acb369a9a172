"""Whole-file hybrid search.

Index build: walk -> documents -> cached/embedded vectors -> ``SearchIndex``
snapshot held in an ``IndexCache``. Queries score every document against the
snapshot and format a text report.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import structlog

from codeatlas.config.models import SearchConfig
from codeatlas.core.errors import EmbeddingError
from codeatlas.embedding.cache import FILE_CACHE_NAMESPACE, DiskEmbeddingCache
from codeatlas.embedding.provider import EmbeddingAdapter
from codeatlas.index.documents import (
    Document,
    SymbolEntry,
    build_document,
    document_embed_text,
    is_indexable,
    normalize_relative_path,
)
from codeatlas.index.parser import format_line_range
from codeatlas.index.walker import collect_files
from codeatlas.search.cache import IndexCache
from codeatlas.search.options import SearchOptions
from codeatlas.search.ranking import (
    KeywordBlend,
    cosine_many,
    keyword_score,
    normalize_weight,
    rank,
    score_item,
    to_percent,
    tokenize,
)
from codeatlas.search.vectors import VectorRequest, resolve_vectors

log = structlog.get_logger()

NO_FILE_MATCHES = "No matching files found for the given query."


@dataclass(frozen=True, slots=True)
class SearchIndex:
    """Parallel ``documents[i] <-> vectors[i]``; every document has a vector."""

    documents: list[Document]
    vectors: np.ndarray

    def __len__(self) -> int:
        return len(self.documents)

    @classmethod
    def empty(cls) -> SearchIndex:
        return cls(documents=[], vectors=np.zeros((0, 0), dtype=np.float32))


@dataclass(frozen=True, slots=True)
class FileMatch:
    path: str
    header: str
    semantic_score: float
    keyword_score: float
    score: float
    matched_symbols: list[SymbolEntry] = field(default_factory=list)


def keyword_text(doc: Document) -> str:
    return f"{doc.path} {doc.header} {' '.join(doc.symbols)} {doc.content}"


def embedding_unavailable(err: EmbeddingError) -> str:
    return f"Embedding provider not available: {err.message}"


class FileSearchService:
    """File-level index lifecycle and queries for one root."""

    def __init__(
        self,
        root: Path,
        config: SearchConfig,
        adapter: EmbeddingAdapter,
        disk_cache: DiskEmbeddingCache,
        index_cache: IndexCache[SearchIndex],
    ) -> None:
        self._root = root.resolve()
        self._root_key = str(self._root)
        self._config = config
        self._adapter = adapter
        self._disk_cache = disk_cache
        self._index_cache = index_cache
        self._lock = asyncio.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def collect_documents(self) -> list[Document]:
        docs: list[Document] = []
        for entry in collect_files(self._root):
            if not is_indexable(entry.path):
                continue
            doc = build_document(
                self._root, entry.relative_path, text_max_chars=self._config.text_max_chars
            )
            if doc is not None:
                docs.append(doc)
        return docs

    async def build_index(self) -> SearchIndex:
        """Return the live snapshot, rebuilding when absent or expired.

        Raises:
            EmbeddingError: the provider failed for reasons other than an
                oversized input.
        """
        cached = self._index_cache.get(self._root_key)
        if cached is not None:
            return cached

        async with self._lock:
            cached = self._index_cache.get(self._root_key)
            if cached is not None:
                return cached

            generation = self._index_cache.generation
            docs = self.collect_documents()
            entries = self._disk_cache.load(FILE_CACHE_NAMESPACE)
            resolved = await resolve_vectors(
                self._adapter,
                entries,
                [VectorRequest(doc.path, document_embed_text(doc)) for doc in docs],
            )
            if resolved.embedded:
                self._disk_cache.save(FILE_CACHE_NAMESPACE, entries)

            kept = [
                (doc, vec) for doc, vec in zip(docs, resolved.vectors, strict=True) if vec is not None
            ]
            if kept:
                index = SearchIndex(
                    documents=[doc for doc, _ in kept],
                    vectors=np.vstack([vec for _, vec in kept]),
                )
            else:
                index = SearchIndex.empty()

            if not self._index_cache.store(self._root_key, index, generation=generation):
                log.debug("file_index.build_superseded", documents=len(index))
            log.info(
                "file_index.built",
                documents=len(index),
                embedded=resolved.embedded,
                skipped=len(docs) - len(kept),
            )
            return index

    async def search(self, query: str, options: SearchOptions | None = None) -> list[FileMatch]:
        opts = options or SearchOptions()
        index = await self.build_index()
        if not len(index):
            return []

        query_vec = await self._adapter.embed_one(query)
        index = await self._matching_index(index, len(query_vec))
        query_terms = set(tokenize(query))
        sims = cosine_many(index.vectors, query_vec)
        blend = KeywordBlend.from_config(self._config)
        semantic_weight = normalize_weight(opts.semantic_weight, self._config.file_semantic_weight)
        keyword_weight = normalize_weight(opts.keyword_weight, self._config.file_keyword_weight)

        scored = [
            score_item(
                doc,
                float(sim),
                keyword_score(query, query_terms, keyword_text(doc), doc.symbols, blend),
                semantic_weight,
                keyword_weight,
            )
            for doc, sim in zip(index.documents, sims, strict=True)
        ]
        ranked = rank(scored, opts.filters(), opts.resolve_top_k(self._config.default_top_k))

        return [
            FileMatch(
                path=item.item.path,
                header=item.item.header,
                semantic_score=item.semantic_score,
                keyword_score=item.keyword_score,
                score=item.combined_score,
                matched_symbols=[
                    entry
                    for entry in item.item.symbol_entries
                    if query_terms.intersection(tokenize(entry.name))
                ],
            )
            for item in ranked
        ]

    async def _matching_index(self, index: SearchIndex, dim: int) -> SearchIndex:
        """Rebuild once when the snapshot was built from another model's vectors."""
        if index.vectors.shape[1] == dim:
            return index
        log.info("file_index.dimension_changed", index_dim=index.vectors.shape[1], query_dim=dim)
        self._index_cache.invalidate()
        return await self.build_index()

    async def search_report(self, query: str, options: SearchOptions | None = None) -> str:
        try:
            matches = await self.search(query, options)
        except EmbeddingError as e:
            log.warning("file_search.embedding_failed", code=e.code.value, message=e.message)
            return embedding_unavailable(e)
        return format_file_report(query, matches)

    async def refresh(self, relative_paths: list[str]) -> int:
        """Re-embed changed files into the disk cache; returns documents embedded."""
        unique = list(dict.fromkeys(p for p in map(normalize_relative_path, relative_paths) if p))
        if not unique:
            return 0

        async with self._lock:
            entries = self._disk_cache.load(FILE_CACHE_NAMESPACE)
            requests: list[VectorRequest] = []
            for rel in unique:
                entries.pop(rel, None)
                if not is_indexable(rel):
                    continue
                doc = build_document(self._root, rel, text_max_chars=self._config.text_max_chars)
                if doc is not None:
                    requests.append(VectorRequest(doc.path, document_embed_text(doc)))

            resolved = await resolve_vectors(self._adapter, entries, requests)
            self._disk_cache.save(FILE_CACHE_NAMESPACE, entries)
            self._index_cache.invalidate()

        log.debug("file_index.refreshed", paths=len(unique), embedded=resolved.embedded)
        return resolved.embedded

    def invalidate(self) -> None:
        self._index_cache.invalidate()


def format_file_report(query: str, matches: list[FileMatch]) -> str:
    if not matches:
        return NO_FILE_MATCHES

    lines = [f'Top {len(matches)} semantic matches for: "{query}"', ""]
    for i, match in enumerate(matches, start=1):
        lines.append(
            f"{i}. {match.path} (score: {to_percent(match.score)}% | "
            f"semantic: {to_percent(match.semantic_score)}% | "
            f"keyword: {to_percent(match.keyword_score)}%)"
        )
        if match.header:
            lines.append(f"   Header: {match.header}")
        if match.matched_symbols:
            symbols = ", ".join(
                f"{entry.name} ({format_line_range(entry.line, entry.end_line)})"
                for entry in match.matched_symbols
            )
            lines.append(f"   Matched symbols: {symbols}")
        lines.append("")
    return "\n".join(lines)
