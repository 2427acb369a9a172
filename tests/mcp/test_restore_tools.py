"""Tests for mcp/tools/restore.py - restore point handlers."""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from codeatlas.core.errors import ErrorCode
from codeatlas.mcp.context import AppContext
from codeatlas.mcp.tools import restore
from codeatlas.mcp.tools.restore import (
    NO_RESTORE_POINTS,
    NOTHING_RESTORED,
    format_restore_points,
    format_restored,
    format_timestamp,
)
from codeatlas.restore.store import RestorePoint


@pytest.fixture
def list_points(get_tool: Callable[[Any, str], Any]) -> Any:
    return get_tool(restore, "list_restore_points")


@pytest.fixture
def undo_change(get_tool: Callable[[Any, str], Any]) -> Any:
    return get_tool(restore, "undo_change")


@pytest.fixture
def commit_file(get_tool: Callable[[Any, str], Any]) -> Any:
    return get_tool(restore, "commit_file")


class TestFormatting:
    """Report formatting tests."""

    def test_timestamp(self) -> None:
        assert format_timestamp(0) == "1970-01-01T00:00:00.000Z"
        assert format_timestamp(1_700_000_000_123) == "2023-11-14T22:13:20.123Z"

    def test_restore_points(self) -> None:
        point = RestorePoint(id="rp-0-abcdef", timestamp=0, files=["a.py", "b.py"], message="m")
        assert format_restore_points([point]) == (
            "Restore Points (1):\n\nrp-0-abcdef | 1970-01-01T00:00:00.000Z | a.py, b.py | m"
        )
        assert format_restore_points([]) == NO_RESTORE_POINTS

    def test_restored(self) -> None:
        assert format_restored(["a.py"]) == "Restored 1 file(s):\na.py"
        assert format_restored([]) == NOTHING_RESTORED


class TestRestoreTools:
    """list_restore_points, commit_file and undo_change tests."""

    @pytest.mark.asyncio
    async def test_empty_list(self, list_points: Any, mock_ctx: MagicMock) -> None:
        result = await list_points(mock_ctx)
        assert result["report"] == NO_RESTORE_POINTS

    @pytest.mark.asyncio
    async def test_commit_then_undo(
        self,
        commit_file: Any,
        undo_change: Any,
        list_points: Any,
        mock_ctx: MagicMock,
        project: Path,
    ) -> None:
        original = (project / "src" / "auth.py").read_text()

        saved = await commit_file(
            mock_ctx, file_path="src/auth.py", new_content="# rewritten\n", message=None
        )

        match = re.fullmatch(
            r"File saved: src/auth.py\nRestore point: (rp-\d+-[0-9a-z]{6})", saved["report"]
        )
        assert match is not None
        point_id = match.group(1)
        assert (project / "src" / "auth.py").read_text() == "# rewritten\n"

        listed = await list_points(mock_ctx)
        assert listed["summary"] == "Restore Points (1):"
        assert f"{point_id} | " in listed["report"]
        assert listed["report"].endswith("| src/auth.py | Pre-commit: src/auth.py")

        undone = await undo_change(mock_ctx, point_id=point_id)
        assert undone["report"] == "Restored 1 file(s):\nsrc/auth.py"
        assert (project / "src" / "auth.py").read_text() == original

    @pytest.mark.asyncio
    async def test_commit_new_file_with_message(
        self, commit_file: Any, undo_change: Any, mock_ctx: MagicMock, project: Path
    ) -> None:
        saved = await commit_file(
            mock_ctx, file_path="docs/notes.md", new_content="# Notes\n", message="add notes"
        )
        assert (project / "docs" / "notes.md").read_text() == "# Notes\n"

        point_id = saved["report"].rsplit(" ", 1)[-1]
        undone = await undo_change(mock_ctx, point_id=point_id)
        assert undone["report"] == NOTHING_RESTORED

    @pytest.mark.asyncio
    async def test_commit_invalidates_indexes(
        self, commit_file: Any, mock_ctx: MagicMock, app_ctx: AppContext
    ) -> None:
        await app_ctx.file_search.build_index()
        await commit_file(mock_ctx, file_path="src/new.py", new_content="x = 1\n", message=None)
        assert app_ctx.file_index.get(str(app_ctx.root)) is None

    @pytest.mark.asyncio
    async def test_commit_outside_root(
        self, commit_file: Any, mock_ctx: MagicMock, project: Path
    ) -> None:
        result = await commit_file(
            mock_ctx, file_path="../escape.py", new_content="boom", message=None
        )
        assert result["error"]["code"] == ErrorCode.RESTORE_PATH_OUTSIDE_ROOT.value
        assert result["summary"] == "error: RESTORE_PATH_OUTSIDE_ROOT"
        assert not (project.parent / "escape.py").exists()

    @pytest.mark.asyncio
    async def test_undo_unknown_point(self, undo_change: Any, mock_ctx: MagicMock) -> None:
        result = await undo_change(mock_ctx, point_id="rp-1-zzzzzz")
        assert result["error"]["error"] == "RESTORE_POINT_NOT_FOUND"
        assert result["error"]["details"] == {"point_id": "rp-1-zzzzzz"}
