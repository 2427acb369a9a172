"""Tool-call middleware.

Every tool call gets a request id, a ``tool_start`` / ``tool_completed`` log
pair with timing, and a structured error payload when it fails. Tools
already turn ``CodeAtlasError`` into payloads themselves; this layer handles
whatever escapes them so the agent never sees a raw traceback.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import structlog
from fastmcp.server.middleware import Middleware, MiddlewareContext
from fastmcp.tools.tool import ToolResult
from pydantic import ValidationError

from codeatlas.core.errors import CodeAtlasError
from codeatlas.core.logging import clear_request_id, set_request_id

if TYPE_CHECKING:
    from fastmcp.server.middleware import CallNext
    from mcp import types as mt

log = structlog.get_logger(__name__)

_MAX_LOGGED_STR = 50
_MAX_LOGGED_ITEMS = 3
_MAX_SUMMARY = 100

# Arguments logged as their size only
_SIZE_ONLY_ARGS = frozenset({"new_content"})


def _error_result(error: dict[str, Any], summary: str) -> ToolResult:
    return ToolResult(structured_content={"error": error, "summary": summary})


def _validation_details(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]


class ToolMiddleware(Middleware):
    """Request ids, timing logs and error payloads for every tool call."""

    async def on_call_tool(  # type: ignore[override]
        self,
        context: MiddlewareContext[mt.CallToolRequest],
        call_next: CallNext[mt.CallToolRequest, Any],
    ) -> Any:
        message = context.message
        tool = getattr(message, "name", "unknown")
        arguments = getattr(message, "arguments", None) or {}

        set_request_id()
        started = time.perf_counter()
        log.info("tool_start", tool=tool, **self._extract_log_params(arguments))
        try:
            return await self._run_tool(context, call_next, tool, started)
        finally:
            clear_request_id()

    async def _run_tool(
        self,
        context: MiddlewareContext[mt.CallToolRequest],
        call_next: CallNext[mt.CallToolRequest, Any],
        tool: str,
        started: float,
    ) -> Any:
        try:
            result = await call_next(context)
        except asyncio.CancelledError:
            log.info("tool_cancelled", tool=tool, duration_ms=_elapsed_ms(started))
            return _error_result(
                {"code": "CANCELLED", "message": f"Tool '{tool}' cancelled: server shutting down"},
                "error: cancelled",
            )
        except ValidationError as e:
            details = _validation_details(e)
            log.warning(
                "tool_validation_error",
                tool=tool,
                errors=details,
                duration_ms=_elapsed_ms(started),
            )
            return _error_result(
                {
                    "code": "VALIDATION_ERROR",
                    "message": f"Invalid parameters for '{tool}'",
                    "details": details,
                },
                f"error: validation failed for {tool}",
            )
        except CodeAtlasError as e:
            log.warning(
                "tool_error",
                tool=tool,
                error_code=e.code.value,
                error=e.message,
                duration_ms=_elapsed_ms(started),
            )
            return _error_result(e.to_dict(), f"error: {e.error_name}")
        except Exception as e:
            log.error(
                "tool_internal_error",
                tool=tool,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(started),
            )
            # Traceback only at DEBUG, which reaches the log file but not the console
            log.debug("tool_internal_error_traceback", tool=tool, exc_info=True)
            return _error_result(
                {
                    "code": "INTERNAL_ERROR",
                    "message": f"Error calling tool '{tool}': {e}",
                    "error_type": type(e).__name__,
                },
                f"error: internal error in {tool}",
            )

        log.info(
            "tool_completed",
            tool=tool,
            duration_ms=_elapsed_ms(started),
            **self._extract_result_summary(result),
        )
        return result

    def _extract_log_params(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Tool arguments worth logging, with long strings and lists shortened."""
        params: dict[str, Any] = {}
        for key, value in arguments.items():
            if value is None:
                continue
            if key in _SIZE_ONLY_ARGS and isinstance(value, str):
                params[f"{key}_chars"] = len(value)
            elif isinstance(value, str) and len(value) > _MAX_LOGGED_STR:
                params[key] = value[:_MAX_LOGGED_STR] + "..."
            elif isinstance(value, list) and len(value) > _MAX_LOGGED_ITEMS:
                params[key] = f"[{len(value)} items]"
            else:
                params[key] = value
        return params

    @staticmethod
    def _extract_result_summary(result: Any) -> dict[str, Any]:
        payload = result if isinstance(result, dict) else getattr(result, "structured_content", None)
        if isinstance(payload, dict) and payload.get("summary"):
            return {"summary": str(payload["summary"])[:_MAX_SUMMARY]}
        return {}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)
