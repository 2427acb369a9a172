"""Per-query search knobs. Unset values fall back to configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass

from codeatlas.index.parser import SymbolKind
from codeatlas.search.ranking import RankingFilters


@dataclass(frozen=True, slots=True)
class SearchOptions:
    top_k: int | None = None
    semantic_weight: float | None = None
    keyword_weight: float | None = None
    min_semantic_score: float | None = None
    min_keyword_score: float | None = None
    min_combined_score: float | None = None
    require_keyword_match: bool = False
    require_semantic_match: bool = False

    def filters(self) -> RankingFilters:
        return RankingFilters.create(
            min_semantic_score=self.min_semantic_score,
            min_keyword_score=self.min_keyword_score,
            min_combined_score=self.min_combined_score,
            require_keyword_match=self.require_keyword_match,
            require_semantic_match=self.require_semantic_match,
        )

    def resolve_top_k(self, default: int) -> int:
        return _positive_int(self.top_k, default)


@dataclass(frozen=True, slots=True)
class IdentifierSearchOptions(SearchOptions):
    top_calls_per_identifier: int | None = None
    include_kinds: list[str] | None = None

    def resolve_top_calls(self, default: int) -> int:
        return _positive_int(self.top_calls_per_identifier, default)

    def kind_filter(self) -> set[SymbolKind] | None:
        """Requested kinds, or None for no filtering.

        Unknown kind names match nothing, so a filter made only of unknown
        names excludes every identifier.
        """
        if not self.include_kinds:
            return None
        names = [name.strip() for name in self.include_kinds if name and name.strip()]
        if not names:
            return None
        return {kind for name in names if (kind := SymbolKind.parse(name)) is not None}


def _positive_int(value: float | None, default: int) -> int:
    if value is None or not math.isfinite(value):
        return max(1, default)
    return max(1, math.floor(value))
