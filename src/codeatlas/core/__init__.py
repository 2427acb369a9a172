"""Core module exports."""

from codeatlas.core.errors import (
    CodeAtlasError,
    ConfigError,
    EmbeddingError,
    ErrorCode,
    InternalError,
    RestoreError,
)
from codeatlas.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Errors
    "CodeAtlasError",
    "ConfigError",
    "EmbeddingError",
    "ErrorCode",
    "InternalError",
    "RestoreError",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
