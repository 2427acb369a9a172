"""Best-effort natural-language labels for clusters and files.

The completion provider returns ``Completed`` or ``Unavailable``; it never
raises. Every caller here turns ``Unavailable`` or unparsable output into a
mechanical label, so clustering never fails because of labeling.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

log = structlog.get_logger()

_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)

# Single-cluster labels built from file names are cut to this length
_FILENAME_LABEL_MAX = 40


@dataclass(frozen=True, slots=True)
class Completed:
    text: str


@dataclass(frozen=True, slots=True)
class Unavailable:
    reason: str


CompletionResult = Completed | Unavailable


class CompletionProvider(Protocol):
    async def complete(self, prompt: str) -> CompletionResult: ...


class OllamaCompletionProvider:
    """Chat completions from an Ollama server (``POST /api/chat``)."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout_sec: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout_sec, transport=transport
        )

    async def complete(self, prompt: str) -> CompletionResult:
        try:
            response = await self._client.post(
                "/api/chat",
                json={
                    "model": self._model,
                    "messages": [{"role": "user", "content": prompt}],
                    "stream": False,
                },
            )
        except httpx.HTTPError as e:
            return Unavailable(str(e) or type(e).__name__)

        if response.status_code >= 400:
            return Unavailable(f"{response.status_code} {response.text[:200]}")
        try:
            content = response.json()["message"]["content"]
        except (ValueError, KeyError, TypeError):
            return Unavailable("unexpected chat response shape")
        if not isinstance(content, str):
            return Unavailable("chat response content is not text")
        return Completed(content)

    async def aclose(self) -> None:
        await self._client.aclose()


@dataclass(frozen=True, slots=True)
class ClusterSummary:
    """What the labeler sees of one sibling cluster."""

    files: list[tuple[str, str]]
    path_pattern: str | None


def _parse_json_array(text: str) -> list[Any] | None:
    match = _JSON_ARRAY.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


def _fallback_label(cluster: ClusterSummary, index: int) -> str:
    return cluster.path_pattern or f"Cluster {index + 1}"


def _label_prompt(clusters: list[ClusterSummary]) -> str:
    descriptions = []
    for i, cluster in enumerate(clusters):
        file_list = "\n  ".join(
            f"{path}: {header or 'no description'}" for path, header in cluster.files
        )
        pattern = f" (pattern: {cluster.path_pattern})" if cluster.path_pattern else ""
        descriptions.append(f"Cluster {i + 1}{pattern}:\n  {file_list}")

    return (
        "You are labeling clusters of code files. For each cluster below, produce EXACTLY "
        "one JSON array of objects, each with:\n"
        '- "overarchingTheme": a sentence about the cluster\'s theme\n'
        '- "distinguishingFeature": what makes this cluster unique vs siblings\n'
        '- "label": EXACTLY 2 words describing the cluster\n\n'
        + "\n\n".join(descriptions)
        + f"\n\nRespond with ONLY a JSON array of {len(clusters)} objects. No other text."
    )


async def label_sibling_clusters(
    provider: CompletionProvider, clusters: list[ClusterSummary]
) -> list[str]:
    """One label per sibling cluster, in order.

    A lone cluster is named mechanically without asking the provider.
    Provider labels get `` (<pattern>)`` appended when a path pattern exists.
    """
    if not clusters:
        return []
    if len(clusters) == 1:
        only = clusters[0]
        if only.path_pattern:
            return [only.path_pattern]
        names = ", ".join(path.rsplit("/", 1)[-1] for path, _ in only.files)
        return [names[:_FILENAME_LABEL_MAX]]

    result = await provider.complete(_label_prompt(clusters))
    if isinstance(result, Unavailable):
        log.debug("labeling.unavailable", reason=result.reason)
        return [_fallback_label(c, i) for i, c in enumerate(clusters)]

    parsed = _parse_json_array(result.text)
    if parsed is None:
        log.debug("labeling.unparsable", chars=len(result.text))
        return [_fallback_label(c, i) for i, c in enumerate(clusters)]

    labels: list[str] = []
    for i, cluster in enumerate(clusters):
        item = parsed[i] if i < len(parsed) else None
        raw = item.get("label") if isinstance(item, dict) else None
        if not isinstance(raw, str) or not raw.strip():
            labels.append(_fallback_label(cluster, i))
            continue
        base = raw.strip()
        labels.append(f"{base} ({cluster.path_pattern})" if cluster.path_pattern else base)
    return labels


async def describe_files(provider: CompletionProvider, files: list[tuple[str, str]]) -> list[str]:
    """Short (3-7 word) description per file; headers on any failure."""
    headers = [header for _, header in files]
    if not files:
        return []

    listing = "\n".join(f"{path}: {header}" for path, header in files)
    prompt = (
        "For each file below, produce a 3-7 word description. "
        f"Return ONLY a JSON array of strings.\n\n{listing}"
    )
    result = await provider.complete(prompt)
    if isinstance(result, Unavailable):
        log.debug("labeling.unavailable", reason=result.reason)
        return headers

    parsed = _parse_json_array(result.text)
    if parsed is None:
        return headers
    return [
        parsed[i] if i < len(parsed) and isinstance(parsed[i], str) and parsed[i] else headers[i]
        for i in range(len(files))
    ]
