"""Tests for mcp/tools/search.py - search tool handlers."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from codeatlas.core.errors import EmbeddingError
from codeatlas.mcp.context import AppContext
from codeatlas.mcp.tools import search
from codeatlas.search.file_search import NO_FILE_MATCHES
from codeatlas.search.identifiers import NO_KIND_MATCHES


def file_search_args(query: str, **overrides: Any) -> dict[str, Any]:
    # Tool functions are called directly, so every Field default must be passed
    args: dict[str, Any] = {
        "query": query,
        "top_k": None,
        "semantic_weight": None,
        "keyword_weight": None,
        "min_semantic_score": None,
        "min_keyword_score": None,
        "min_combined_score": None,
        "require_keyword_match": False,
        "require_semantic_match": False,
    }
    args.update(overrides)
    return args


def identifier_search_args(query: str, **overrides: Any) -> dict[str, Any]:
    args = file_search_args(query)
    args.update({"top_calls_per_identifier": None, "include_kinds": None})
    args.update(overrides)
    return args


@pytest.fixture
def code_search(get_tool: Callable[[Any, str], Any]) -> Any:
    return get_tool(search, "semantic_code_search")


@pytest.fixture
def identifier_search(get_tool: Callable[[Any, str], Any]) -> Any:
    return get_tool(search, "semantic_identifier_search")


class TestSemanticCodeSearch:
    """semantic_code_search tests."""

    @pytest.mark.asyncio
    async def test_returns_report(self, code_search: Any, mock_ctx: MagicMock) -> None:
        result = await code_search(mock_ctx, **file_search_args("jwt token verification"))
        assert result["summary"].startswith("Top ")
        assert "1. src/auth.py" in result["report"]

    @pytest.mark.asyncio
    async def test_top_k(self, code_search: Any, mock_ctx: MagicMock) -> None:
        result = await code_search(mock_ctx, **file_search_args("jwt", top_k=1))
        assert result["summary"] == 'Top 1 semantic matches for: "jwt"'

    @pytest.mark.asyncio
    async def test_no_matches(self, code_search: Any, mock_ctx: MagicMock) -> None:
        result = await code_search(
            mock_ctx, **file_search_args("zebra quantum", require_keyword_match=True)
        )
        assert result == {"report": NO_FILE_MATCHES, "summary": NO_FILE_MATCHES}

    @pytest.mark.asyncio
    async def test_domain_error_becomes_error_payload(
        self, code_search: Any, mock_ctx: MagicMock, app_ctx: AppContext
    ) -> None:
        async def explode(query: str, options: Any) -> str:
            raise EmbeddingError.shape_mismatch("Fake", 1, 0)

        app_ctx.file_search.search_report = explode  # type: ignore[method-assign]
        result = await code_search(mock_ctx, **file_search_args("jwt"))
        assert result["error"]["error"] == "EMBEDDING_SHAPE_MISMATCH"
        assert result["summary"] == "error: EMBEDDING_SHAPE_MISMATCH"


class TestSemanticIdentifierSearch:
    """semantic_identifier_search tests."""

    @pytest.mark.asyncio
    async def test_returns_identifiers_with_calls(
        self, identifier_search: Any, mock_ctx: MagicMock
    ) -> None:
        result = await identifier_search(
            mock_ctx, **identifier_search_args("verify jwt token", top_k=1)
        )
        report = result["report"]
        assert result["summary"] == 'Top 1 identifier matches for: "verify jwt token"'
        assert "1. function verify_jwt_token - src/auth.py" in report
        assert "   Calls (1/1):" in report
        assert "     1. src/api.py:L5" in report

    @pytest.mark.asyncio
    async def test_unknown_kinds(self, identifier_search: Any, mock_ctx: MagicMock) -> None:
        result = await identifier_search(
            mock_ctx, **identifier_search_args("jwt", include_kinds=["widget"])
        )
        assert result["report"] == NO_KIND_MATCHES
