"""Embedding provider adapter and content-hash disk cache."""

from codeatlas.embedding.cache import (
    FILE_CACHE_NAMESPACE,
    IDENTIFIER_CACHE_NAMESPACE,
    CacheEntry,
    DiskEmbeddingCache,
    content_hash,
)
from codeatlas.embedding.provider import (
    EmbeddingAdapter,
    EmbeddingBackend,
    FastEmbedBackend,
    OllamaEmbeddingBackend,
    clamp_batch_size,
    create_embedding_adapter,
)

__all__ = [
    "FILE_CACHE_NAMESPACE",
    "IDENTIFIER_CACHE_NAMESPACE",
    "CacheEntry",
    "DiskEmbeddingCache",
    "EmbeddingAdapter",
    "EmbeddingBackend",
    "FastEmbedBackend",
    "OllamaEmbeddingBackend",
    "clamp_batch_size",
    "content_hash",
    "create_embedding_adapter",
]
