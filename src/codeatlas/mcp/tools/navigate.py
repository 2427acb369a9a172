"""Semantic navigator MCP tool."""

# No `from __future__ import annotations`: FastMCP resolves parameter types at registration

from typing import TYPE_CHECKING, Any

from fastmcp import Context
from pydantic import Field

from codeatlas.core.errors import CodeAtlasError
from codeatlas.mcp.tools.base import error_response, report_response

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from codeatlas.mcp.context import AppContext


def register_tools(mcp: "FastMCP", app_ctx: "AppContext") -> None:
    """Register navigation tools with FastMCP server."""

    @mcp.tool
    async def semantic_navigate(
        ctx: Context,  # noqa: ARG001
        max_depth: int | None = Field(None, description="Maximum tree depth (default 3)."),
        max_clusters: int | None = Field(
            None, description="Maximum clusters per level (default 20)."
        ),
    ) -> dict[str, Any]:
        """Browse the project by meaning: files grouped into labeled clusters."""
        try:
            report = await app_ctx.navigator.navigate(max_depth=max_depth, max_clusters=max_clusters)
        except CodeAtlasError as e:
            return error_response("semantic_navigate", e)
        return report_response(report)
