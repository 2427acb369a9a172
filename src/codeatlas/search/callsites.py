"""Call-site discovery and two-stage ranking for one identifier.

Stage 1 scores every textual occurrence by keyword coverage only and keeps
the top ``max(30, 4 * limit)``. Stage 2 embeds just those survivors (cache
keys ``callsite:<path>:<line>``) and ranks them by the hybrid score.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import numpy as np

from codeatlas.embedding.cache import CacheEntry
from codeatlas.embedding.provider import EmbeddingAdapter
from codeatlas.index.documents import IdentifierDocument
from codeatlas.index.parser import SymbolKind
from codeatlas.search.ranking import cosine, keyword_coverage, rank, score_item
from codeatlas.search.vectors import VectorRequest, resolve_vectors

CALLSITE_KEY_PREFIX = "callsite:"

# Context lines are trimmed and cut to this length
CONTEXT_MAX_CHARS = 220
MIN_EMBED_BUDGET = 30
EMBED_BUDGET_FACTOR = 4


@dataclass(frozen=True, slots=True)
class CallCandidate:
    file: str
    line: int
    context: str
    keyword_score: float

    @property
    def cache_key(self) -> str:
        return f"{CALLSITE_KEY_PREFIX}{self.file}:{self.line}"

    @property
    def embed_text(self) -> str:
        return f"{self.file} {self.context}"


@dataclass(frozen=True, slots=True)
class CallSite:
    file: str
    line: int
    context: str
    semantic_score: float
    keyword_score: float
    score: float


@dataclass(frozen=True, slots=True)
class CallSiteRanking:
    """Top sites plus the candidate count before truncation."""

    sites: list[CallSite]
    total: int


def call_pattern(name: str, kind: SymbolKind) -> re.Pattern[str]:
    escaped = re.escape(name)
    if kind.is_callable:
        return re.compile(rf"\b{escaped}\s*\(")
    return re.compile(rf"\b{escaped}\b")


def is_definition_line(line: str, name: str) -> bool:
    """Heuristic: the line declares ``name`` rather than using it."""
    escaped = re.escape(name)
    patterns = (
        rf"(?:function|class|enum|interface|struct|type|trait|fn|def|func)\s+{escaped}",
        rf"(?:const|let|var|pub|export)\s+(?:async\s+)?(?:function\s+)?{escaped}",
    )
    return any(re.search(pattern, line) for pattern in patterns)


def embed_budget(limit: int) -> int:
    return max(MIN_EMBED_BUDGET, limit * EMBED_BUDGET_FACTOR)


def find_call_candidates(
    symbol: IdentifierDocument,
    file_lines: dict[str, list[str]],
    query_terms: set[str],
) -> list[CallCandidate]:
    """Occurrences of ``symbol`` that are not its definition, in file order."""
    pattern = call_pattern(symbol.name, symbol.kind)
    candidates: list[CallCandidate] = []
    for file, lines in file_lines.items():
        for i, raw in enumerate(lines):
            if not pattern.search(raw):
                continue
            if file == symbol.path and i + 1 == symbol.line:
                continue
            if is_definition_line(raw, symbol.name):
                continue
            context = raw.strip()[:CONTEXT_MAX_CHARS]
            candidates.append(
                CallCandidate(
                    file=file,
                    line=i + 1,
                    context=context,
                    keyword_score=keyword_coverage(query_terms, f"{file} {context}"),
                )
            )
    return candidates


async def rank_call_sites(
    adapter: EmbeddingAdapter,
    entries: dict[str, CacheEntry],
    query_terms: set[str],
    query_vec: np.ndarray,
    symbol: IdentifierDocument,
    file_lines: dict[str, list[str]],
    limit: int,
    *,
    semantic_weight: float = 0.82,
    keyword_weight: float = 0.18,
) -> CallSiteRanking:
    """Rank call sites of ``symbol``; ``entries`` receives new vectors.

    Only the keyword-ranked sample is embedded. A sampled site whose vector
    could not be produced scores 0 semantically.
    """
    candidates = find_call_candidates(symbol, file_lines, query_terms)
    if not candidates:
        return CallSiteRanking(sites=[], total=0)

    limit = max(1, limit)
    # sorted() is stable: equal keyword scores keep file order
    sampled = sorted(candidates, key=lambda c: -c.keyword_score)[: embed_budget(limit)]

    resolved = await resolve_vectors(
        adapter,
        entries,
        [VectorRequest(c.cache_key, c.embed_text) for c in sampled],
    )

    scored = [
        score_item(
            candidate,
            cosine(query_vec, vec) if vec is not None else 0.0,
            candidate.keyword_score,
            semantic_weight,
            keyword_weight,
        )
        for candidate, vec in zip(sampled, resolved.vectors, strict=True)
    ]
    top = rank(scored, None, limit)

    return CallSiteRanking(
        sites=[
            CallSite(
                file=s.item.file,
                line=s.item.line,
                context=s.item.context,
                semantic_score=s.semantic_score,
                keyword_score=s.keyword_score,
                score=s.combined_score,
            )
            for s in top
        ],
        total=len(candidates),
    )
