"""CodeAtlas error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Embedding
- 4xxx: Structure
- 5xxx: Restore
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Embedding (3xxx)
    EMBEDDING_CONTEXT_EXCEEDED = 3001
    EMBEDDING_SHRINK_EXHAUSTED = 3002
    EMBEDDING_REQUEST_FAILED = 3003
    EMBEDDING_UNAVAILABLE = 3004
    EMBEDDING_SHAPE_MISMATCH = 3005

    # Structure (4xxx)
    STRUCTURE_FILE_NOT_FOUND = 4001
    STRUCTURE_PATH_OUTSIDE_ROOT = 4002
    STRUCTURE_FILE_UNREADABLE = 4003

    # Restore (5xxx)
    RESTORE_POINT_NOT_FOUND = 5001
    RESTORE_PATH_OUTSIDE_ROOT = 5002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class CodeAtlasError(Exception):
    """Base error with structured context for MCP responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON/MCP responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CodeAtlasError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class EmbeddingError(CodeAtlasError):
    """Embedding provider errors.

    Only ``EMBEDDING_CONTEXT_EXCEEDED`` is recovered locally (batch bisection
    and input shrinking). Everything else propagates to the caller.
    """

    @property
    def is_context_length(self) -> bool:
        return self.code == ErrorCode.EMBEDDING_CONTEXT_EXCEEDED

    @classmethod
    def context_exceeded(cls, backend: str, reason: str, batch_size: int) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_CONTEXT_EXCEEDED,
            message=f"{backend}: input exceeds model context ({reason})",
            retryable=True,
            details={"backend": backend, "reason": reason, "batch_size": batch_size},
        )

    @classmethod
    def shrink_exhausted(cls, backend: str, original_chars: int, attempts: int) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_SHRINK_EXHAUSTED,
            message=(
                f"{backend}: input of {original_chars} chars still exceeds model context "
                f"after {attempts} shrink attempts"
            ),
            details={"backend": backend, "original_chars": original_chars, "attempts": attempts},
        )

    @classmethod
    def request_failed(cls, backend: str, reason: str, status: int | None = None) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_REQUEST_FAILED,
            message=f"{backend} embed failed: {reason}",
            details={"backend": backend, "reason": reason, "status": status},
        )

    @classmethod
    def unavailable(cls, backend: str, reason: str) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_UNAVAILABLE,
            message=f"{backend} is unavailable: {reason}",
            retryable=True,
            details={"backend": backend, "reason": reason},
        )

    @classmethod
    def shape_mismatch(cls, backend: str, expected: int, actual: int) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_SHAPE_MISMATCH,
            message=f"{backend} returned {actual} vectors for {expected} inputs",
            details={"backend": backend, "expected": expected, "actual": actual},
        )


class StructureError(CodeAtlasError):
    """Errors from structural views of a single path."""

    @classmethod
    def file_not_found(cls, path: str) -> "StructureError":
        return cls(
            code=ErrorCode.STRUCTURE_FILE_NOT_FOUND,
            message=f"File not found: {path}",
            details={"path": path},
        )

    @classmethod
    def path_outside_root(cls, path: str, root: str) -> "StructureError":
        return cls(
            code=ErrorCode.STRUCTURE_PATH_OUTSIDE_ROOT,
            message=f"Path {path} resolves outside the project root",
            details={"path": path, "root": root},
        )

    @classmethod
    def unreadable(cls, path: str, reason: str) -> "StructureError":
        return cls(
            code=ErrorCode.STRUCTURE_FILE_UNREADABLE,
            message=f"Cannot read {path}: {reason}",
            details={"path": path},
        )


class RestoreError(CodeAtlasError):
    """Restore point errors. These are caller mistakes and are never swallowed."""

    @classmethod
    def not_found(cls, point_id: str) -> "RestoreError":
        return cls(
            code=ErrorCode.RESTORE_POINT_NOT_FOUND,
            message=f"Restore point {point_id} not found",
            details={"point_id": point_id},
        )

    @classmethod
    def path_outside_root(cls, path: str, root: str) -> "RestoreError":
        return cls(
            code=ErrorCode.RESTORE_PATH_OUTSIDE_ROOT,
            message=f"Path {path} resolves outside the project root",
            details={"path": path, "root": root},
        )


class InternalError(CodeAtlasError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
