"""Search module - hybrid semantic + keyword retrieval.

- ``file_search``: whole-file index and queries
- ``identifiers``: per-symbol index, queries and call-site ranking
- ``ranking``: scoring, thresholds and ordering shared by both
"""

from codeatlas.search.cache import IndexCache
from codeatlas.search.callsites import CallSite, CallSiteRanking, rank_call_sites
from codeatlas.search.file_search import FileMatch, FileSearchService, SearchIndex
from codeatlas.search.identifiers import (
    IdentifierIndex,
    IdentifierMatch,
    IdentifierSearchService,
)
from codeatlas.search.options import IdentifierSearchOptions, SearchOptions
from codeatlas.search.ranking import (
    KeywordBlend,
    RankingFilters,
    Scored,
    combine_scores,
    cosine,
    cosine_many,
    keyword_coverage,
    keyword_score,
    normalize_threshold,
    normalize_weight,
    rank,
    to_percent,
    tokenize,
)

__all__ = [
    "CallSite",
    "CallSiteRanking",
    "FileMatch",
    "FileSearchService",
    "IdentifierIndex",
    "IdentifierMatch",
    "IdentifierSearchOptions",
    "IdentifierSearchService",
    "IndexCache",
    "KeywordBlend",
    "RankingFilters",
    "Scored",
    "SearchIndex",
    "SearchOptions",
    "combine_scores",
    "cosine",
    "cosine_many",
    "keyword_coverage",
    "keyword_score",
    "normalize_threshold",
    "normalize_weight",
    "rank",
    "rank_call_sites",
    "to_percent",
    "tokenize",
]
