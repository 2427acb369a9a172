"""Shared fixtures for MCP tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from codeatlas.config.models import CodeAtlasConfig, TrackerConfig
from codeatlas.mcp.context import AppContext
from codeatlas.navigate.labeling import CompletionResult, Unavailable

AUTH_PY = '''"""JWT token verification."""


def verify_jwt_token(token):
    return decode(token)
'''

API_PY = '''"""HTTP request handlers."""


def handle_request(request):
    return verify_jwt_token(request.token)
'''


class ScriptedCompletion:
    """Completion provider with a fixed answer; records close."""

    def __init__(self, result: CompletionResult | None = None) -> None:
        self.result = result or Unavailable("offline")
        self.closed = False

    async def complete(self, prompt: str) -> CompletionResult:  # noqa: ARG002
        return self.result

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "auth.py").write_text(AUTH_PY)
    (tmp_path / "src" / "api.py").write_text(API_PY)
    return tmp_path


@pytest.fixture
def completion() -> ScriptedCompletion:
    return ScriptedCompletion()


@pytest.fixture
def app_ctx(project: Path, fake_adapter: Any, completion: ScriptedCompletion) -> AppContext:
    config = CodeAtlasConfig(tracker=TrackerConfig(enabled=False))
    return AppContext.create(project, config, adapter=fake_adapter, completion=completion)


@pytest.fixture
def mock_ctx() -> MagicMock:
    ctx = MagicMock()
    ctx.session_id = "test-session"
    return ctx


@pytest.fixture
def get_tool(app_ctx: AppContext) -> Callable[[Any, str], Any]:
    """Register one tool module against ``app_ctx`` and return a tool's function."""

    def _get(module: Any, name: str) -> Any:
        from fastmcp import FastMCP

        mcp = FastMCP("test")
        module.register_tools(mcp, app_ctx)
        return mcp._tool_manager._tools[name].fn

    return _get
