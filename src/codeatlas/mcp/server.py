"""FastMCP server creation and wiring."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from codeatlas.mcp.context import AppContext

log = structlog.get_logger(__name__)

SERVER_LOG_NAME = "mcp-server.log"


def create_mcp_server(context: AppContext) -> FastMCP:
    """Create FastMCP server with all tools wired to context.

    The server lifespan starts the refresh tracker (when enabled) and closes
    provider clients on shutdown.
    """
    from fastmcp import FastMCP

    from codeatlas.mcp.middleware import ToolMiddleware
    from codeatlas.mcp.tools import navigate, restore, search, structure

    log.info("mcp_server_creating", root=str(context.root))

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
        if context.config.tracker.enabled:
            await context.tracker.start()
        try:
            yield
        finally:
            await context.aclose()

    mcp = FastMCP(
        "codeatlas",
        instructions=(
            "CodeAtlas semantic codebase navigator: meaning-based file and identifier "
            "search, clustered project overview, file skeletons and symbol usages, "
            "and restore points for file writes."
        ),
        lifespan=lifespan,
    )
    mcp.add_middleware(ToolMiddleware())

    for module in (search, navigate, structure, restore):
        module.register_tools(mcp, context)

    log.info("mcp_server_created", root=str(context.root))
    return mcp


def run_server(root: Path, *, verbose: bool = False) -> None:
    """Create and run the MCP server over stdio."""
    from codeatlas.config.loader import load_config
    from codeatlas.config.models import LoggingConfig, LogOutputConfig
    from codeatlas.core.excludes import DATA_DIR_NAME
    from codeatlas.core.logging import configure_logging
    from codeatlas.mcp.context import AppContext

    root = root.resolve()
    config = load_config(root)

    # stdout carries the protocol: console output goes to stderr,
    # full detail (tracebacks included) goes to the JSON log file
    log_file = root / DATA_DIR_NAME / SERVER_LOG_NAME
    configure_logging(
        config=LoggingConfig(
            level="DEBUG",
            outputs=[
                LogOutputConfig(
                    destination="stderr",
                    format="console",
                    level="DEBUG" if verbose else config.logging.level,
                ),
                LogOutputConfig(destination=str(log_file), format="json", level="DEBUG"),
            ],
        )
    )

    log.info(
        "mcp_server_starting",
        root=str(root),
        embedding_backend=config.embedding.backend,
        tracker=config.tracker.enabled,
        log_file=str(log_file),
    )

    context = AppContext.create(root, config)
    mcp = create_mcp_server(context)

    log.info("mcp_server_running")
    mcp.run()
