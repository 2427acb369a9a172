"""Embedding provider adapter and concrete backends.

The adapter owns batching and recovery; backends only turn one batch of
texts into one batch of vectors and classify their failures:

- ``EmbeddingError.context_exceeded``: the input does not fit the model
  context. Recovered here by bisecting the batch and, at a single input, by
  shrinking the text.
- Anything else: propagates immediately.

Backends:
- ``OllamaEmbeddingBackend``: ``POST /api/embed`` on an Ollama server (httpx)
- ``FastEmbedBackend``: local ONNX model via fastembed, loaded lazily
"""

from __future__ import annotations

import asyncio
import math
import os
import threading
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import numpy as np
import structlog

from codeatlas.config.models import (
    EMBED_BATCH_DEFAULT,
    EMBED_BATCH_MAX,
    EMBED_BATCH_MIN,
    clamp_int,
)
from codeatlas.core.errors import EmbeddingError

if TYPE_CHECKING:
    from codeatlas.config.models import EmbeddingConfig

log = structlog.get_logger()

# Substrings servers use when an input overflows the model context
_CONTEXT_ERROR_MARKERS = (
    "context length",
    "input length",
    "maximum context",
    "too long",
    "too many tokens",
)


def clamp_batch_size(value: float | None) -> int:
    return clamp_int(value, EMBED_BATCH_MIN, EMBED_BATCH_MAX, EMBED_BATCH_DEFAULT)


def is_context_length_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _CONTEXT_ERROR_MARKERS)


class EmbeddingBackend(Protocol):
    """One provider request: texts in, same-length vector list out."""

    name: str

    async def embed_batch(self, texts: list[str]) -> list[list[float]]: ...

    async def aclose(self) -> None: ...


# ===================================================================
# Backends
# ===================================================================


class OllamaEmbeddingBackend:
    """Embeddings from an Ollama server."""

    name = "Ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout_sec: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_sec,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._model

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self._client.post(
                "/api/embed", json={"model": self._model, "input": texts}
            )
        except httpx.RequestError as e:
            raise EmbeddingError.unavailable(self.name, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            body = response.text
            if is_context_length_message(body):
                raise EmbeddingError.context_exceeded(self.name, body[:200], len(texts))
            raise EmbeddingError.request_failed(
                self.name, f"{response.status_code} {body[:200]}", status=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise EmbeddingError.request_failed(self.name, "response is not JSON") from e
        embeddings = payload.get("embeddings") if isinstance(payload, dict) else None
        if not isinstance(embeddings, list):
            raise EmbeddingError.request_failed(self.name, "response has no 'embeddings' list")
        return embeddings

    async def aclose(self) -> None:
        await self._client.aclose()


def _detect_providers() -> list[str]:
    """Detect available ONNX Runtime execution providers."""
    try:
        import onnxruntime as ort  # type: ignore[import-not-found]

        available = set(ort.get_available_providers())
    except Exception:
        return []

    providers: list[str] = []
    if "CUDAExecutionProvider" in available:
        providers.append("CUDAExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


class FastEmbedBackend:
    """Local embeddings with fastembed. The model loads on first use."""

    name = "FastEmbed"

    def __init__(self, model_name: str, *, max_length: int = 512) -> None:
        self._model_name = model_name
        self._max_length = max_length
        self._model: Any = None
        self._lock = threading.Lock()

    def _ensure_model(self) -> Any:
        """Lazy-load fastembed TextEmbedding model with GPU auto-detect."""
        with self._lock:
            if self._model is not None:
                return self._model
            try:
                from fastembed import TextEmbedding  # type: ignore[import-not-found]

                providers = _detect_providers()
                threads = max(1, (os.cpu_count() or 4) // 2)
                start = time.monotonic()
                kwargs: dict[str, Any] = {
                    "model_name": self._model_name,
                    "threads": threads,
                    "max_length": self._max_length,
                }
                if providers:
                    kwargs["providers"] = providers
                self._model = TextEmbedding(**kwargs)
            except Exception as e:
                log.warning("embedding.model_load_failed", model=self._model_name, exc_info=True)
                raise EmbeddingError.unavailable(self.name, str(e)) from e
            log.info(
                "embedding.model_loaded",
                model=self._model_name,
                providers=providers or ["CPUExecutionProvider"],
                threads=threads,
                elapsed_s=round(time.monotonic() - start, 2),
            )
            return self._model

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        model = self._ensure_model()
        return [np.asarray(vec, dtype=np.float32).tolist() for vec in model.embed(texts)]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return await asyncio.to_thread(self._embed_sync, texts)

    async def aclose(self) -> None:
        self._model = None


# ===================================================================
# Adapter
# ===================================================================


class EmbeddingAdapter:
    """Batched, order-preserving embedding with adaptive retry.

    ``embed`` returns a ``(len(texts), dim)`` float32 matrix whose row *i*
    belongs to ``texts[i]`` however the batches were split. ``embed_each``
    is the index-build variant: an input that still overflows the context
    after every shrink attempt comes back as ``None`` instead of failing
    the whole call.
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        *,
        batch_size: float | None = EMBED_BATCH_DEFAULT,
        shrink_factor: float = 0.75,
        max_shrink_retries: int = 6,
    ) -> None:
        if not (0.0 < shrink_factor < 1.0):
            raise ValueError(f"shrink_factor must be in (0, 1), got {shrink_factor}")
        self._backend = backend
        self._batch_size = clamp_batch_size(batch_size)
        self._shrink_factor = shrink_factor
        self._max_shrink_retries = max(0, max_shrink_retries)
        self._dimension: int | None = None

    @property
    def name(self) -> str:
        return self._backend.name

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def dimension(self) -> int | None:
        """Width of the last vector the backend returned; None before the first embed."""
        return self._dimension

    async def embed(self, texts: Sequence[str]) -> np.ndarray:
        rows = await self._embed_all(texts, skip_failed=False)
        if not rows:
            return np.zeros((0, 0), dtype=np.float32)
        return np.asarray(rows, dtype=np.float32)

    async def embed_one(self, text: str) -> np.ndarray:
        return (await self.embed([text]))[0]

    async def embed_each(self, texts: Sequence[str]) -> list[np.ndarray | None]:
        rows = await self._embed_all(texts, skip_failed=True)
        return [None if row is None else np.asarray(row, dtype=np.float32) for row in rows]

    async def aclose(self) -> None:
        await self._backend.aclose()

    async def _embed_all(
        self, texts: Sequence[str], *, skip_failed: bool
    ) -> list[list[float] | None]:
        rows: list[list[float] | None] = []
        for start in range(0, len(texts), self._batch_size):
            batch = list(texts[start : start + self._batch_size])
            rows.extend(await self._embed_resilient(batch, skip_failed=skip_failed))
        for row in rows:
            if row is not None:
                self._dimension = len(row)
                break
        return rows

    async def _embed_resilient(
        self, batch: list[str], *, skip_failed: bool
    ) -> list[list[float] | None]:
        try:
            vectors = await self._backend.embed_batch(batch)
        except EmbeddingError as e:
            if not e.is_context_length:
                raise
            if len(batch) == 1:
                return [await self._embed_shrinking(batch[0], skip_failed=skip_failed)]
            mid = len(batch) // 2
            log.debug("embedding.batch_bisected", size=len(batch), backend=self.name)
            left = await self._embed_resilient(batch[:mid], skip_failed=skip_failed)
            right = await self._embed_resilient(batch[mid:], skip_failed=skip_failed)
            return left + right

        if len(vectors) != len(batch):
            raise EmbeddingError.shape_mismatch(self.name, len(batch), len(vectors))
        return list(vectors)

    async def _embed_shrinking(self, text: str, *, skip_failed: bool) -> list[float] | None:
        current = text
        attempts = 0
        while attempts < self._max_shrink_retries:
            new_len = math.floor(len(current) * self._shrink_factor)
            if new_len <= 0:
                break
            current = current[:new_len]
            attempts += 1
            try:
                vectors = await self._backend.embed_batch([current])
            except EmbeddingError as e:
                if e.is_context_length:
                    continue
                raise
            if len(vectors) != 1:
                raise EmbeddingError.shape_mismatch(self.name, 1, len(vectors))
            log.debug(
                "embedding.input_shrunk",
                original_chars=len(text),
                chars=len(current),
                attempts=attempts,
            )
            return vectors[0]

        err = EmbeddingError.shrink_exhausted(self.name, len(text), attempts)
        if skip_failed:
            log.warning("embedding.input_skipped", code=err.code.value, chars=len(text))
            return None
        raise err


def create_embedding_adapter(
    config: EmbeddingConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> EmbeddingAdapter:
    """Build the adapter for the configured backend."""
    backend: EmbeddingBackend
    if config.backend == "fastembed":
        backend = FastEmbedBackend(config.fastembed_model)
    else:
        backend = OllamaEmbeddingBackend(
            config.ollama_url,
            config.ollama_model,
            timeout_sec=config.timeout_sec,
            transport=transport,
        )
    return EmbeddingAdapter(
        backend,
        batch_size=config.batch_size,
        shrink_factor=config.shrink_factor,
        max_shrink_retries=config.max_shrink_retries,
    )


__all__ = [
    "EmbeddingAdapter",
    "EmbeddingBackend",
    "FastEmbedBackend",
    "OllamaEmbeddingBackend",
    "clamp_batch_size",
    "create_embedding_adapter",
    "is_context_length_message",
]
