"""MCP server module - FastMCP tool registration and wiring."""

from codeatlas.mcp.context import AppContext
from codeatlas.mcp.middleware import ToolMiddleware
from codeatlas.mcp.server import create_mcp_server, run_server

__all__ = ["AppContext", "ToolMiddleware", "create_mcp_server", "run_server"]
