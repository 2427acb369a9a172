"""Structural MCP tools - file skeletons, context trees and blast radius."""

# No `from __future__ import annotations`: FastMCP resolves parameter types at registration

import asyncio
from typing import TYPE_CHECKING, Any

from fastmcp import Context
from pydantic import Field

from codeatlas.core.errors import CodeAtlasError
from codeatlas.mcp.tools.base import error_response, report_response
from codeatlas.structure.outline import (
    DEFAULT_MAX_TOKENS,
    blast_radius,
    context_tree,
    file_skeleton,
)

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from codeatlas.mcp.context import AppContext


def register_tools(mcp: "FastMCP", app_ctx: "AppContext") -> None:
    """Register structural tools with FastMCP server."""

    @mcp.tool
    async def get_file_skeleton(
        ctx: Context,  # noqa: ARG001
        file_path: str = Field(..., description="File to inspect, relative to the project root."),
    ) -> dict[str, Any]:
        """Show a file's API surface: definitions, signatures and line ranges, no bodies."""
        try:
            report = await asyncio.to_thread(file_skeleton, app_ctx.root, file_path)
        except CodeAtlasError as e:
            return error_response("get_file_skeleton", e)
        return report_response(report)

    @mcp.tool
    async def get_context_tree(
        ctx: Context,  # noqa: ARG001
        target_path: str | None = Field(
            None, description="Directory to start from, relative to the root (default: root)."
        ),
        depth_limit: int | None = Field(
            None, description="Folder levels to descend; 0 or omitted means unlimited."
        ),
        include_symbols: bool | None = Field(
            None, description="List definitions under each file (default true)."
        ),
        max_tokens: int | None = Field(
            None,
            description=f"Output budget; symbols then headers are pruned to fit "
            f"(default {DEFAULT_MAX_TOKENS}).",
        ),
    ) -> dict[str, Any]:
        """Project tree with file headers and symbols, pruned to a token budget."""
        try:
            report = await asyncio.to_thread(
                context_tree,
                app_ctx.root,
                target_path=target_path,
                depth_limit=max(0, depth_limit or 0),
                include_symbols=include_symbols is not False,
                max_tokens=max_tokens if max_tokens and max_tokens > 0 else DEFAULT_MAX_TOKENS,
            )
        except CodeAtlasError as e:
            return error_response("get_context_tree", e)
        return report_response(report)

    @mcp.tool
    async def get_blast_radius(
        ctx: Context,  # noqa: ARG001
        symbol_name: str = Field(..., description="Function, class or variable name to trace."),
        file_context: str | None = Field(
            None, description="File that defines the symbol; its definition line is excluded."
        ),
    ) -> dict[str, Any]:
        """Every file and line that mentions a symbol, grouped by file."""
        report = await asyncio.to_thread(blast_radius, app_ctx.root, symbol_name, file_context)
        return report_response(report)
