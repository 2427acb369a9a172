"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CODEATLAS__SECTION__KEY)
3. Repo YAML (<root>/.codeatlas/config.yaml)
4. Global YAML (~/.config/codeatlas/config.yaml)
5. Built-in defaults (this file)

Examples:
    CODEATLAS__LOGGING__LEVEL=DEBUG
    CODEATLAS__EMBEDDING__BACKEND=fastembed
    CODEATLAS__SEARCH__FILE_SEMANTIC_WEIGHT=0.6
    CODEATLAS__TRACKER__ENABLED=false
"""

import math
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Hard window for embedding batch sizes; larger batches overflow small GPUs
EMBED_BATCH_MIN = 5
EMBED_BATCH_MAX = 10
EMBED_BATCH_DEFAULT = 8

TRACKER_FILES_PER_TICK_MIN = 5
TRACKER_FILES_PER_TICK_MAX = 10
TRACKER_FILES_PER_TICK_DEFAULT = 8
TRACKER_DEBOUNCE_MS_MIN = 100
TRACKER_DEBOUNCE_MS_DEFAULT = 700


def clamp_int(value: float | None, lo: int, hi: int, default: int) -> int:
    """Clamp to [lo, hi], mapping None and non-finite values to default."""
    if value is None or not math.isfinite(value):
        return default
    return max(lo, min(hi, math.floor(value)))


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CODEATLAS__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every embedding batch.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class EmbeddingConfig(BaseModel):
    """Embedding provider configuration.

    Env vars:
        CODEATLAS__EMBEDDING__BACKEND: ollama or fastembed
        CODEATLAS__EMBEDDING__OLLAMA_URL: Ollama base URL
        CODEATLAS__EMBEDDING__OLLAMA_MODEL: Ollama embedding model
        CODEATLAS__EMBEDDING__BATCH_SIZE: Texts per provider request (clamped to 5-10)
    """

    backend: Literal["ollama", "fastembed"] = Field(
        default="ollama",
        description="Embedding backend. fastembed runs locally via ONNX without a server.",
    )
    ollama_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server used for embeddings.",
    )
    ollama_model: str = Field(
        default="nomic-embed-text",
        description="Ollama embedding model. Changing it invalidates nothing on disk; "
        "clear .codeatlas/*-cache.json when switching models.",
    )
    fastembed_model: str = Field(
        default="BAAI/bge-small-en-v1.5",
        description="fastembed model name when backend=fastembed.",
    )
    batch_size: int = Field(
        default=EMBED_BATCH_DEFAULT,
        description="Texts per provider request. Clamped to [5, 10].",
    )
    shrink_factor: float = Field(
        default=0.75,
        description="Length multiplier applied to a single oversized input per retry.",
    )
    max_shrink_retries: int = Field(
        default=6,
        description="Shrink attempts for one oversized input before failing it.",
    )
    timeout_sec: float = Field(
        default=60.0,
        description="Per-request timeout for the embedding provider.",
    )

    @field_validator("batch_size", mode="before")
    @classmethod
    def clamp_batch_size(cls, v: float | None) -> int:
        return clamp_int(
            float(v) if v is not None else None,
            EMBED_BATCH_MIN,
            EMBED_BATCH_MAX,
            EMBED_BATCH_DEFAULT,
        )

    @field_validator("shrink_factor")
    @classmethod
    def validate_shrink_factor(cls, v: float) -> float:
        if not (0.0 < v < 1.0):
            raise ValueError(f"shrink_factor must be in (0, 1), got {v}")
        return v

    @field_validator("max_shrink_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_shrink_retries must be >= 0, got {v}")
        return v


class CompletionConfig(BaseModel):
    """Text-generation provider used for cluster labels.

    Env vars:
        CODEATLAS__COMPLETION__CHAT_MODEL: Ollama chat model
    """

    ollama_url: str = Field(default="http://localhost:11434")
    chat_model: str = Field(default="llama3.2", description="Ollama chat model for labels.")
    timeout_sec: float = Field(
        default=120.0,
        description="Labeling is best-effort; on timeout labels fall back to path patterns.",
    )


class SearchConfig(BaseModel):
    """Hybrid ranking weights, index lifetimes and report defaults.

    Semantic and keyword weights are blended as a weighted average, so only
    their ratio matters. The keyword_* weights split keywordScore itself
    into general coverage, symbol-name coverage and a literal-phrase boost.

    Env vars:
        CODEATLAS__SEARCH__FILE_SEMANTIC_WEIGHT
        CODEATLAS__SEARCH__IDENTIFIER_INDEX_TTL_SEC
    """

    file_semantic_weight: float = Field(default=0.72, ge=0.0)
    file_keyword_weight: float = Field(default=0.28, ge=0.0)
    identifier_semantic_weight: float = Field(default=0.78, ge=0.0)
    identifier_keyword_weight: float = Field(default=0.22, ge=0.0)
    callsite_semantic_weight: float = Field(default=0.82, ge=0.0)
    callsite_keyword_weight: float = Field(default=0.18, ge=0.0)

    keyword_coverage_weight: float = Field(default=0.65, ge=0.0)
    keyword_symbol_weight: float = Field(default=0.20, ge=0.0)
    keyword_phrase_weight: float = Field(default=0.15, ge=0.0)

    file_index_ttl_sec: float = Field(
        default=30.0,
        ge=0.0,
        description="Seconds a built file index is reused before rebuilding.",
    )
    identifier_index_ttl_sec: float = Field(default=60.0, ge=0.0)
    text_max_chars: int = Field(
        default=2000,
        gt=0,
        description="Body budget for non-code text documents (markdown, YAML, ...).",
    )
    default_top_k: int = Field(default=5, ge=1)
    default_top_calls: int = Field(default=10, ge=1)


class NavigatorConfig(BaseModel):
    """Spectral navigator configuration."""

    max_depth: int = Field(default=3, ge=1)
    max_clusters: int = Field(default=20, ge=2)
    max_files_per_leaf: int = Field(
        default=20,
        ge=1,
        description="Clusters at or below this size are not split further.",
    )
    content_preview_chars: int = Field(default=500, ge=0)


class TrackerConfig(BaseModel):
    """Incremental refresh tracker configuration.

    Env vars:
        CODEATLAS__TRACKER__ENABLED: Watch the tree and re-embed changed files
        CODEATLAS__TRACKER__DEBOUNCE_MS: Quiet period before a flush (min 100)
        CODEATLAS__TRACKER__MAX_FILES_PER_TICK: Files re-embedded per flush (5-10)
    """

    enabled: bool = True
    debounce_ms: int = Field(default=TRACKER_DEBOUNCE_MS_DEFAULT)
    max_files_per_tick: int = Field(default=TRACKER_FILES_PER_TICK_DEFAULT)

    @field_validator("debounce_ms", mode="before")
    @classmethod
    def floor_debounce(cls, v: float | None) -> int:
        if v is None or not math.isfinite(float(v)):
            return TRACKER_DEBOUNCE_MS_DEFAULT
        return max(TRACKER_DEBOUNCE_MS_MIN, math.floor(float(v)))

    @field_validator("max_files_per_tick", mode="before")
    @classmethod
    def clamp_files_per_tick(cls, v: float | None) -> int:
        return clamp_int(
            float(v) if v is not None else None,
            TRACKER_FILES_PER_TICK_MIN,
            TRACKER_FILES_PER_TICK_MAX,
            TRACKER_FILES_PER_TICK_DEFAULT,
        )


class RestoreConfig(BaseModel):
    """Restore point store configuration."""

    max_points: int = Field(
        default=100,
        ge=1,
        description="Restore points retained in the manifest; oldest are evicted first.",
    )


class CodeAtlasConfig(BaseModel):
    """Root configuration for CodeAtlas.

    All settings can be configured via:
    1. Environment variables: CODEATLAS__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    navigator: NavigatorConfig = Field(default_factory=NavigatorConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    restore: RestoreConfig = Field(default_factory=RestoreConfig)
