"""Tests for mcp/tools/navigate.py - semantic_navigate handler."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from codeatlas.mcp.tools import navigate
from codeatlas.navigate.navigator import NO_SOURCE_FILES


@pytest.fixture
def semantic_navigate(get_tool: Callable[[Any, str], Any]) -> Any:
    return get_tool(navigate, "semantic_navigate")


class TestSemanticNavigate:
    """semantic_navigate tests."""

    @pytest.mark.asyncio
    async def test_flat_listing(self, semantic_navigate: Any, mock_ctx: MagicMock) -> None:
        result = await semantic_navigate(mock_ctx, max_depth=None, max_clusters=None)
        assert result["summary"] == "Semantic Navigator: 2 files"
        assert "src/auth.py - JWT token verification." in result["report"]
        assert "src/api.py - HTTP request handlers." in result["report"]

    @pytest.mark.asyncio
    async def test_no_sources(
        self, semantic_navigate: Any, mock_ctx: MagicMock, project: Path
    ) -> None:
        for path in (project / "src").iterdir():
            path.unlink()
        result = await semantic_navigate(mock_ctx, max_depth=2, max_clusters=5)
        assert result["report"] == NO_SOURCE_FILES
