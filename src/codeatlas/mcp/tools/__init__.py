"""MCP tool handlers."""

from codeatlas.mcp.tools import navigate, restore, search, structure

__all__ = ["navigate", "restore", "search", "structure"]
