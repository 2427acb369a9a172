"""Restore point MCP tools - list, undo and guarded writes."""

# No `from __future__ import annotations`: FastMCP resolves parameter types at registration

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from fastmcp import Context
from pydantic import Field

from codeatlas.core.errors import CodeAtlasError
from codeatlas.mcp.tools.base import error_response, report_response
from codeatlas.restore.store import RestorePoint, resolve_inside_root

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from codeatlas.mcp.context import AppContext

log = structlog.get_logger(__name__)

NO_RESTORE_POINTS = "No restore points found."
NOTHING_RESTORED = "No files were restored. The backup may be empty."


def format_timestamp(epoch_ms: int) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_restore_points(points: list[RestorePoint]) -> str:
    if not points:
        return NO_RESTORE_POINTS
    lines = [
        f"{p.id} | {format_timestamp(p.timestamp)} | {', '.join(p.files)} | {p.message}"
        for p in points
    ]
    return f"Restore Points ({len(points)}):\n\n" + "\n".join(lines)


def format_restored(files: list[str]) -> str:
    if not files:
        return NOTHING_RESTORED
    return f"Restored {len(files)} file(s):\n" + "\n".join(files)


def register_tools(mcp: "FastMCP", app_ctx: "AppContext") -> None:
    """Register restore point tools with FastMCP server."""

    @mcp.tool
    async def list_restore_points(ctx: Context) -> dict[str, Any]:  # noqa: ARG001
        """List restore points, oldest first, with their files and messages."""
        return report_response(format_restore_points(app_ctx.restore_store.list()))

    @mcp.tool
    async def undo_change(
        ctx: Context,  # noqa: ARG001
        point_id: str = Field(
            ..., description="Restore point id (rp-<timestamp>-<suffix>) from list_restore_points."
        ),
    ) -> dict[str, Any]:
        """Put files back to their state when the restore point was created.

        Does not touch version control history.
        """
        try:
            restored = app_ctx.restore_store.restore(point_id)
        except CodeAtlasError as e:
            return error_response("undo_change", e)
        app_ctx.invalidate_indexes()
        return report_response(format_restored(restored))

    @mcp.tool
    async def commit_file(
        ctx: Context,  # noqa: ARG001
        file_path: str = Field(..., description="Where to save the file, relative to the project root."),
        new_content: str = Field(..., description="Complete new file content."),
        message: str | None = Field(
            None, description="Restore point message (default 'Pre-commit: <file_path>')."
        ),
    ) -> dict[str, Any]:
        """Save a file after recording a restore point of its current content."""
        try:
            target = resolve_inside_root(app_ctx.root, file_path)
            point = app_ctx.restore_store.create([file_path], message or f"Pre-commit: {file_path}")
        except CodeAtlasError as e:
            return error_response("commit_file", e)

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(new_content, encoding="utf-8")
        app_ctx.invalidate_indexes()
        log.info("commit_file.saved", path=file_path, point_id=point.id, chars=len(new_content))
        return report_response(f"File saved: {file_path}\nRestore point: {point.id}")
