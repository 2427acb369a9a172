"""Tests for navigate/labeling.py - cluster labels and file descriptions."""

from __future__ import annotations

import json

import httpx
import pytest

from codeatlas.navigate.labeling import (
    ClusterSummary,
    Completed,
    CompletionResult,
    OllamaCompletionProvider,
    Unavailable,
    describe_files,
    label_sibling_clusters,
)


class ScriptedProvider:
    """Returns a fixed result and records prompts."""

    def __init__(self, result: CompletionResult) -> None:
        self.result = result
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> CompletionResult:
        self.prompts.append(prompt)
        return self.result


AUTH = ClusterSummary(files=[("src/auth/jwt.py", "JWT helpers")], path_pattern="src/auth/*")
DB = ClusterSummary(files=[("db.py", ""), ("models.py", "ORM models")], path_pattern=None)


class TestLabelSiblingClusters:
    """Sibling labeling tests."""

    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        assert await label_sibling_clusters(ScriptedProvider(Completed("[]")), []) == []

    @pytest.mark.asyncio
    async def test_single_cluster_uses_pattern_without_provider(self) -> None:
        provider = ScriptedProvider(Completed("[]"))
        assert await label_sibling_clusters(provider, [AUTH]) == ["src/auth/*"]
        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_single_cluster_without_pattern_uses_file_names(self) -> None:
        many = ClusterSummary(
            files=[(f"pkg{i}/module_{i}.py", "") for i in range(5)], path_pattern=None
        )
        labels = await label_sibling_clusters(ScriptedProvider(Completed("[]")), [many])
        assert labels == ["module_0.py, module_1.py, module_2.py, m"]
        assert len(labels[0]) == 40

    @pytest.mark.asyncio
    async def test_provider_labels_get_pattern_suffix(self) -> None:
        reply = 'Sure! [{"label": "Auth Tokens"}, {"label": "Data Access"}] Hope it helps.'
        provider = ScriptedProvider(Completed(reply))
        labels = await label_sibling_clusters(provider, [AUTH, DB])
        assert labels == ["Auth Tokens (src/auth/*)", "Data Access"]
        assert "Cluster 1 (pattern: src/auth/*)" in provider.prompts[0]
        assert "db.py: no description" in provider.prompts[0]
        assert "JSON array of 2 objects" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_unavailable_falls_back(self) -> None:
        labels = await label_sibling_clusters(ScriptedProvider(Unavailable("offline")), [AUTH, DB])
        assert labels == ["src/auth/*", "Cluster 2"]

    @pytest.mark.asyncio
    async def test_unparsable_falls_back(self) -> None:
        labels = await label_sibling_clusters(ScriptedProvider(Completed("no json")), [AUTH, DB])
        assert labels == ["src/auth/*", "Cluster 2"]

    @pytest.mark.asyncio
    async def test_missing_entries_fall_back_individually(self) -> None:
        reply = json.dumps([{"label": "  "}])
        labels = await label_sibling_clusters(ScriptedProvider(Completed(reply)), [AUTH, DB])
        assert labels == ["src/auth/*", "Cluster 2"]


class TestDescribeFiles:
    """File description tests."""

    FILES = [("a.py", "Alpha header"), ("b.py", "Beta header")]

    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        assert await describe_files(ScriptedProvider(Completed("[]")), []) == []

    @pytest.mark.asyncio
    async def test_descriptions(self) -> None:
        reply = '["Parses alpha config files", "Renders beta charts"]'
        descriptions = await describe_files(ScriptedProvider(Completed(reply)), self.FILES)
        assert descriptions == ["Parses alpha config files", "Renders beta charts"]

    @pytest.mark.asyncio
    async def test_partial_reply_uses_headers(self) -> None:
        reply = '["Parses alpha config files", 42]'
        descriptions = await describe_files(ScriptedProvider(Completed(reply)), self.FILES)
        assert descriptions == ["Parses alpha config files", "Beta header"]

    @pytest.mark.asyncio
    async def test_unavailable_uses_headers(self) -> None:
        descriptions = await describe_files(ScriptedProvider(Unavailable("down")), self.FILES)
        assert descriptions == ["Alpha header", "Beta header"]


class TestOllamaCompletionProvider:
    """Chat client tests against a mock transport."""

    @pytest.mark.asyncio
    async def test_completed(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "[1]"}})

        provider = OllamaCompletionProvider(
            "http://ollama:11434/", "llama3", transport=httpx.MockTransport(handler)
        )
        result = await provider.complete("hello")
        await provider.aclose()

        assert result == Completed("[1]")
        assert seen[0]["model"] == "llama3"
        assert seen[0]["stream"] is False
        assert seen[0]["messages"] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="busy"))
        provider = OllamaCompletionProvider("http://ollama", "m", transport=transport)
        result = await provider.complete("hi")
        assert isinstance(result, Unavailable)
        assert result.reason.startswith("503")

    @pytest.mark.asyncio
    async def test_unexpected_shape(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"done": True}))
        provider = OllamaCompletionProvider("http://ollama", "m", transport=transport)
        assert await provider.complete("hi") == Unavailable("unexpected chat response shape")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = OllamaCompletionProvider(
            "http://ollama", "m", transport=httpx.MockTransport(handler)
        )
        result = await provider.complete("hi")
        assert result == Unavailable("connection refused")
