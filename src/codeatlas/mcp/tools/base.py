"""Response envelopes shared by tool handlers."""

from __future__ import annotations

from typing import Any

import structlog

from codeatlas.core.errors import CodeAtlasError

log = structlog.get_logger(__name__)


def report_response(report: str) -> dict[str, Any]:
    """``{"report", "summary"}`` where summary is the first non-blank line."""
    summary = next((line.strip() for line in report.splitlines() if line.strip()), "")
    return {"report": report, "summary": summary}


def error_response(tool: str, err: CodeAtlasError) -> dict[str, Any]:
    log.warning("tool_domain_error", tool=tool, error_code=err.code.value, error=err.message)
    return {"error": err.to_dict(), "summary": f"error: {err.error_name}"}
