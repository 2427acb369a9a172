"""Structured logging for the stdio server.

stdout belongs to the MCP protocol, so every output here is either stderr
or a file. Each tool call gets a short request id which is bound into the
structlog context and stamped onto every event emitted while it runs,
including events from stdlib loggers routed through ``ProcessorFormatter``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from codeatlas.config.models import LoggingConfig, LogOutputConfig

REQUEST_ID_KEY = "request_id"

# Libraries that log once per HTTP request or file event
_QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "watchfiles.main",
    "mcp.server.lowlevel.server",
    "fastmcp.server.context.to_client",
)

_log_file_path: Path | None = None


def get_request_id() -> str | None:
    value = structlog.contextvars.get_contextvars().get(REQUEST_ID_KEY)
    return str(value) if value is not None else None


def set_request_id(request_id: str | None = None) -> str:
    """Bind a request id (generated when omitted) to the current context."""
    rid = request_id or uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(**{REQUEST_ID_KEY: rid})
    return rid


def clear_request_id() -> None:
    structlog.contextvars.unbind_contextvars(REQUEST_ID_KEY)


def get_log_file_path() -> Path | None:
    """First file destination of the active configuration, if any."""
    return _log_file_path


def _level(name: str | None, fallback: int) -> int:
    if not name:
        return fallback
    return logging.getLevelNamesMapping().get(name.upper(), fallback)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
    ]


def _formatter(
    output: LogOutputConfig, pre_chain: list[structlog.types.Processor]
) -> logging.Formatter:
    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        stream = sys.stdout if output.destination == "stdout" else sys.stderr
        renderer = structlog.dev.ConsoleRenderer(
            colors=output.destination == "stderr" and stream.isatty(),
            pad_event_to=0,
            pad_level=False,
        )
    return structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)


def _handler(output: LogOutputConfig) -> logging.Handler:
    if output.destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if output.destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(output.destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        config: Full configuration with one or more outputs. When given,
            ``json_format`` and ``level`` are ignored.
        json_format: Render the single stderr output as JSON lines.
        level: Level for the single stderr output.
    """
    global _log_file_path
    from codeatlas.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )

    root_level = _level(config.level, logging.INFO)
    pre_chain = _shared_processors()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration (tests, serve after CLI setup) must reach existing loggers
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    for existing in root_logger.handlers:
        existing.close()
    root_logger.handlers.clear()
    root_logger.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _log_file_path = None
    for output in config.outputs:
        if output.destination not in ("stderr", "stdout") and _log_file_path is None:
            _log_file_path = Path(output.destination)
        handler = _handler(output)
        handler.setLevel(_level(output.level, root_level))
        handler.setFormatter(_formatter(output, pre_chain))
        root_logger.addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    return logger.bind(logger=name) if name else logger  # type: ignore[no-any-return]
