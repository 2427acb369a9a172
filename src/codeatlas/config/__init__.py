"""Config module exports."""

from codeatlas.config.loader import load_config
from codeatlas.config.models import (
    CodeAtlasConfig,
    CompletionConfig,
    EmbeddingConfig,
    LoggingConfig,
    NavigatorConfig,
    RestoreConfig,
    SearchConfig,
    TrackerConfig,
)

__all__ = [
    "load_config",
    "CodeAtlasConfig",
    "CompletionConfig",
    "EmbeddingConfig",
    "LoggingConfig",
    "NavigatorConfig",
    "RestoreConfig",
    "SearchConfig",
    "TrackerConfig",
]
