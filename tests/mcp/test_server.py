"""Tests for mcp/server.py - server wiring."""

from __future__ import annotations

from codeatlas.mcp.context import AppContext
from codeatlas.mcp.server import create_mcp_server

EXPECTED_TOOLS = {
    "semantic_code_search",
    "semantic_identifier_search",
    "semantic_navigate",
    "get_file_skeleton",
    "get_context_tree",
    "get_blast_radius",
    "list_restore_points",
    "undo_change",
    "commit_file",
}


class TestCreateMcpServer:
    """create_mcp_server tests."""

    def test_registers_all_tools(self, app_ctx: AppContext) -> None:
        mcp = create_mcp_server(app_ctx)
        assert set(mcp._tool_manager._tools) == EXPECTED_TOOLS

    def test_server_name(self, app_ctx: AppContext) -> None:
        assert create_mcp_server(app_ctx).name == "codeatlas"
