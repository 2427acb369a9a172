"""Semantic search MCP tools - whole files and identifiers."""

# No `from __future__ import annotations`: FastMCP resolves parameter types at registration

from typing import TYPE_CHECKING, Any

import structlog
from fastmcp import Context
from pydantic import Field

from codeatlas.core.errors import CodeAtlasError
from codeatlas.mcp.tools.base import error_response, report_response
from codeatlas.search.options import IdentifierSearchOptions, SearchOptions

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from codeatlas.mcp.context import AppContext

log = structlog.get_logger(__name__)

_THRESHOLD_HELP = "Accepts 0-1 or 0-100 (values above 1 are read as percentages)."


def register_tools(mcp: "FastMCP", app_ctx: "AppContext") -> None:
    """Register search tools with FastMCP server."""

    @mcp.tool
    async def semantic_code_search(
        ctx: Context,  # noqa: ARG001
        query: str = Field(..., description="Natural-language description of what to find."),
        top_k: int | None = Field(None, description="Number of files to return (default 5)."),
        semantic_weight: float | None = Field(
            None, description="Weight of embedding similarity in the combined score."
        ),
        keyword_weight: float | None = Field(
            None, description="Weight of term overlap in the combined score."
        ),
        min_semantic_score: float | None = Field(
            None, description=f"Minimum semantic score. {_THRESHOLD_HELP}"
        ),
        min_keyword_score: float | None = Field(
            None, description=f"Minimum keyword score. {_THRESHOLD_HELP}"
        ),
        min_combined_score: float | None = Field(
            None, description=f"Minimum combined score. {_THRESHOLD_HELP}"
        ),
        require_keyword_match: bool = Field(
            False, description="Drop files sharing no query term."
        ),
        require_semantic_match: bool = Field(
            False, description="Drop files with non-positive embedding similarity."
        ),
    ) -> dict[str, Any]:
        """Find files by meaning, blending embedding similarity with keyword overlap.

        Each result lists its header, score breakdown and the symbols whose
        names match query terms.
        """
        options = SearchOptions(
            top_k=top_k,
            semantic_weight=semantic_weight,
            keyword_weight=keyword_weight,
            min_semantic_score=min_semantic_score,
            min_keyword_score=min_keyword_score,
            min_combined_score=min_combined_score,
            require_keyword_match=require_keyword_match,
            require_semantic_match=require_semantic_match,
        )
        try:
            report = await app_ctx.file_search.search_report(query, options)
        except CodeAtlasError as e:
            return error_response("semantic_code_search", e)
        return report_response(report)

    @mcp.tool
    async def semantic_identifier_search(
        ctx: Context,  # noqa: ARG001
        query: str = Field(..., description="Natural-language description of the symbol."),
        top_k: int | None = Field(None, description="Number of identifiers to return (default 5)."),
        top_calls_per_identifier: int | None = Field(
            None, description="Call sites listed per identifier (default 10)."
        ),
        include_kinds: list[str] | None = Field(
            None,
            description="Restrict to these kinds, e.g. ['function', 'method', 'class'].",
        ),
        semantic_weight: float | None = Field(
            None, description="Weight of embedding similarity in the combined score."
        ),
        keyword_weight: float | None = Field(
            None, description="Weight of term overlap in the combined score."
        ),
        min_semantic_score: float | None = Field(
            None, description=f"Minimum semantic score. {_THRESHOLD_HELP}"
        ),
        min_keyword_score: float | None = Field(
            None, description=f"Minimum keyword score. {_THRESHOLD_HELP}"
        ),
        min_combined_score: float | None = Field(
            None, description=f"Minimum combined score. {_THRESHOLD_HELP}"
        ),
        require_keyword_match: bool = Field(
            False, description="Drop identifiers sharing no query term."
        ),
        require_semantic_match: bool = Field(
            False, description="Drop identifiers with non-positive embedding similarity."
        ),
    ) -> dict[str, Any]:
        """Find functions, classes and other definitions by meaning.

        Each identifier comes with its signature, parent and ranked call sites
        across the project.
        """
        options = IdentifierSearchOptions(
            top_k=top_k,
            semantic_weight=semantic_weight,
            keyword_weight=keyword_weight,
            min_semantic_score=min_semantic_score,
            min_keyword_score=min_keyword_score,
            min_combined_score=min_combined_score,
            require_keyword_match=require_keyword_match,
            require_semantic_match=require_semantic_match,
            top_calls_per_identifier=top_calls_per_identifier,
            include_kinds=include_kinds,
        )
        try:
            report = await app_ctx.identifier_search.search_report(query, options)
        except CodeAtlasError as e:
            return error_response("semantic_identifier_search", e)
        return report_response(report)
