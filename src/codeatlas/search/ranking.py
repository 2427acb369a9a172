"""Hybrid semantic + keyword scoring.

Per candidate:
- semantic: cosine(query, item) floored at 0 for blending (raw kept)
- keyword: token-set coverage of the query over the item text, optionally
  blended with matched-symbol coverage and a literal phrase boost
- combined: weighted average of the two, semantic alone when both weights are 0

Ordering is combined desc, then keyword desc, then semantic desc, so literal
keyword hits surface first among equal hybrid scores.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import numpy as np

if TYPE_CHECKING:
    from codeatlas.config.models import SearchConfig

T = TypeVar("T")

_LOWER_UPPER = re.compile(r"([a-z])([A-Z])")
_ACRONYM_WORD = re.compile(r"([A-Z])([A-Z][a-z])")
_SEPARATORS = re.compile(r"[^a-z0-9]+")


def tokenize(text: str) -> list[str]:
    """camelCase / snake_case aware tokens, lowercased, length > 1."""
    spaced = _ACRONYM_WORD.sub(r"\1 \2", _LOWER_UPPER.sub(r"\1 \2", text))
    return [token for token in _SEPARATORS.split(spaced.lower()) if len(token) > 1]


def clamp01(value: float) -> float:
    if value <= 0.0:
        return 0.0
    if value >= 1.0:
        return 1.0
    return value


def keyword_coverage(query_terms: set[str], text: str) -> float:
    """Fraction of query terms present in the text's token set."""
    if not query_terms:
        return 0.0
    doc_terms = set(tokenize(text))
    return len(query_terms & doc_terms) / len(query_terms)


def matched_symbols(query_terms: set[str], symbols: Iterable[str]) -> list[str]:
    """Symbol names sharing at least one token with the query."""
    return [name for name in symbols if query_terms.intersection(tokenize(name))]


@dataclass(frozen=True, slots=True)
class KeywordBlend:
    """Weights of the keyword sub-components."""

    coverage: float = 0.65
    symbol: float = 0.20
    phrase: float = 0.15

    @classmethod
    def from_config(cls, config: SearchConfig) -> KeywordBlend:
        return cls(
            coverage=config.keyword_coverage_weight,
            symbol=config.keyword_symbol_weight,
            phrase=config.keyword_phrase_weight,
        )


def keyword_score(
    query: str,
    query_terms: set[str],
    text: str,
    symbols: Sequence[str] | None = None,
    blend: KeywordBlend | None = None,
) -> float:
    """Blended keyword score in [0, 1].

    Without ``blend`` this is plain coverage. With it, general coverage,
    coverage over the matched symbol names and the phrase boost (the stripped
    lowercased query occurring verbatim in the text) are weighted together.
    An item without symbols reuses general coverage for the symbol component.
    """
    coverage = keyword_coverage(query_terms, text)
    if blend is None:
        return coverage

    if symbols:
        hits = matched_symbols(query_terms, symbols)
        symbol_coverage = keyword_coverage(query_terms, " ".join(hits)) if hits else 0.0
    else:
        symbol_coverage = coverage

    phrase = query.strip().lower()
    boost = blend.phrase if phrase and phrase in text.lower() else 0.0
    return clamp01(blend.coverage * coverage + blend.symbol * symbol_coverage + boost)


def combine_scores(
    semantic: float, keyword: float, semantic_weight: float, keyword_weight: float
) -> float:
    total = semantic_weight + keyword_weight
    if total <= 0.0:
        return semantic
    return clamp01((semantic_weight * semantic + keyword_weight * keyword) / total)


def normalize_threshold(value: float | None) -> float | None:
    """Accept a [0, 1] fraction or a [0, 100] percentage; None disables."""
    if value is None or not math.isfinite(value):
        return None
    if value > 1.0:
        value = value / 100.0
    return clamp01(value)


def normalize_weight(value: float | None, fallback: float) -> float:
    if value is None or not math.isfinite(value) or value < 0.0:
        return fallback
    return float(value)


def to_percent(score: float) -> float:
    """Score as a percentage with one decimal, rounding half up."""
    return math.floor(score * 1000.0 + 0.5) / 10.0


def cosine(a: np.ndarray, b: np.ndarray) -> float:
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)


def cosine_many(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine of every row against ``query``; zero-norm rows score 0."""
    if matrix.size == 0:
        return np.zeros(matrix.shape[0], dtype=np.float32)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, dots / np.where(norms > 0, norms, 1.0), 0.0)
    return scores.astype(np.float32)


@dataclass(frozen=True, slots=True)
class Scored(Generic[T]):
    """A candidate with its three scores. ``raw_semantic`` may be negative."""

    item: T
    raw_semantic: float
    keyword_score: float
    combined_score: float

    @property
    def semantic_score(self) -> float:
        return max(self.raw_semantic, 0.0)


def score_item(
    item: T,
    raw_semantic: float,
    keyword: float,
    semantic_weight: float,
    keyword_weight: float,
) -> Scored[T]:
    semantic = max(raw_semantic, 0.0)
    return Scored(
        item=item,
        raw_semantic=raw_semantic,
        keyword_score=keyword,
        combined_score=combine_scores(semantic, keyword, semantic_weight, keyword_weight),
    )


@dataclass(frozen=True, slots=True)
class RankingFilters:
    """Hard filters applied before ordering. Thresholds are normalized fractions."""

    min_semantic_score: float | None = None
    min_keyword_score: float | None = None
    min_combined_score: float | None = None
    require_keyword_match: bool = False
    require_semantic_match: bool = False

    @classmethod
    def create(
        cls,
        *,
        min_semantic_score: float | None = None,
        min_keyword_score: float | None = None,
        min_combined_score: float | None = None,
        require_keyword_match: bool = False,
        require_semantic_match: bool = False,
    ) -> RankingFilters:
        """Build filters from raw user thresholds (fractions or percentages)."""
        return cls(
            min_semantic_score=normalize_threshold(min_semantic_score),
            min_keyword_score=normalize_threshold(min_keyword_score),
            min_combined_score=normalize_threshold(min_combined_score),
            require_keyword_match=require_keyword_match,
            require_semantic_match=require_semantic_match,
        )

    def accepts(self, scored: Scored[T]) -> bool:
        if self.require_keyword_match and scored.keyword_score <= 0.0:
            return False
        if self.require_semantic_match and scored.semantic_score <= 0.0:
            return False
        if self.min_semantic_score is not None and scored.semantic_score < self.min_semantic_score:
            return False
        if self.min_keyword_score is not None and scored.keyword_score < self.min_keyword_score:
            return False
        return not (
            self.min_combined_score is not None and scored.combined_score < self.min_combined_score
        )


def sort_key(scored: Scored[T]) -> tuple[float, float, float]:
    return (-scored.combined_score, -scored.keyword_score, -scored.semantic_score)


def rank(
    items: Iterable[Scored[T]],
    filters: RankingFilters | None = None,
    top_k: int = 5,
) -> list[Scored[T]]:
    """Filter, order and cap candidates. ``top_k`` is at least 1."""
    active = filters or RankingFilters()
    kept = [scored for scored in items if active.accepts(scored)]
    kept.sort(key=sort_key)
    return kept[: max(1, int(top_k))]
