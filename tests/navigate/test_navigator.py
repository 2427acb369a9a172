"""Tests for navigate/navigator.py - cluster tree building and rendering."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import pytest

from codeatlas.config.models import NavigatorConfig
from codeatlas.core.errors import EmbeddingError, ErrorCode, InternalError
from codeatlas.embedding.provider import EmbeddingAdapter
from codeatlas.navigate.labeling import Completed, CompletionResult, Unavailable
from codeatlas.navigate.navigator import (
    NO_SOURCE_FILES,
    ClusterTree,
    NavFile,
    SemanticNavigator,
    format_file_line,
)


class ScriptedProvider:
    def __init__(self, result: CompletionResult) -> None:
        self.result = result
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> CompletionResult:
        self.prompts.append(prompt)
        return self.result


class FailingBackend:
    name = "Broken"

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingError.unavailable(self.name, "offline")

    async def aclose(self) -> None:
        pass


def blob_files() -> tuple[list[NavFile], np.ndarray]:
    files = [NavFile(f"a/f{i}.py", f"alpha {i}", "") for i in range(6)]
    files += [NavFile(f"b/g{i}.py", f"beta {i}", "") for i in range(6)]
    a = [[1.0, 0.0, 0.05 * i, 0.0] for i in range(6)]
    b = [[0.0, 1.0, 0.0, 0.05 * i] for i in range(6)]
    return files, np.asarray(a + b)


def write_project(root: Path, topics: dict[str, list[str]]) -> None:
    for directory, names in topics.items():
        (root / directory).mkdir(parents=True, exist_ok=True)
        for name in names:
            (root / directory / f"{name}.py").write_text(
                f'"""{directory} {name} module."""\n\n\ndef {name}_handler():\n    return None\n'
            )


class TestClusterTree:
    """Arena tree tests."""

    def test_add_links_parent(self) -> None:
        tree = ClusterTree()
        root = tree.add(parent=None, depth=0, path_pattern=None)
        leaf = tree.add(parent=root, depth=1, path_pattern="a/*", files=[0, 1], label="A")
        assert tree.nodes[root].children == [leaf]
        assert tree.nodes[leaf].parent == root
        assert tree.leaves() == [leaf]
        assert tree.leaf_files() == [0, 1]
        assert tree.max_depth() == 1

    def test_render(self) -> None:
        files = [NavFile("a.py", "Alpha", "", ["run@L1-L3"]), NavFile("b.py", "", "")]
        tree = ClusterTree()
        root = tree.add(parent=None, depth=0, path_pattern=None, label="Project")
        tree.add(parent=root, depth=1, path_pattern=None, files=[0, 1], label="Group")
        assert tree.render(files) == (
            "[Project]\n  [Group]\n    a.py - Alpha | symbols: run@L1-L3\n    b.py"
        )

    def test_format_file_line_prefers_description(self) -> None:
        file = NavFile("a.py", "Alpha header", "")
        assert format_file_line(file, "Short description") == "a.py - Short description"
        assert format_file_line(file) == "a.py - Alpha header"


class TestBuildTree:
    """Recursive partitioning tests."""

    @pytest.mark.asyncio
    async def test_two_groups_labeled(self, tmp_path: Path, fake_adapter: Any) -> None:
        reply = '[{"label": "Alpha Group"}, {"label": "Beta Group"}]'
        navigator = SemanticNavigator(
            tmp_path,
            NavigatorConfig(max_files_per_leaf=6),
            fake_adapter,
            ScriptedProvider(Completed(reply)),
        )
        files, vectors = blob_files()

        tree = await navigator.build_tree(files, vectors, max_depth=3, max_clusters=4)

        root = tree.nodes[0]
        assert root.label == "Project"
        assert [tree.nodes[c].label for c in root.children] == [
            "Alpha Group (a/*)",
            "Beta Group (b/*)",
        ]
        assert [tree.nodes[c].files for c in root.children] == [
            list(range(6)),
            list(range(6, 12)),
        ]

    @pytest.mark.asyncio
    async def test_depth_limit_stops_splitting(self, tmp_path: Path, fake_adapter: Any) -> None:
        navigator = SemanticNavigator(
            tmp_path,
            NavigatorConfig(max_files_per_leaf=2),
            fake_adapter,
            ScriptedProvider(Unavailable("offline")),
        )
        files, vectors = blob_files()

        tree = await navigator.build_tree(files, vectors, max_depth=1, max_clusters=4)

        assert tree.max_depth() == 1
        assert sorted(tree.leaf_files()) == list(range(12))
        assert [tree.nodes[c].label for c in tree.nodes[0].children] == ["a/*", "b/*"]


class TestNavigate:
    """End-to-end navigate tests."""

    @pytest.mark.asyncio
    async def test_no_source_files(self, tmp_path: Path, fake_adapter: Any) -> None:
        (tmp_path / "README.md").write_text("# Docs\n")
        navigator = SemanticNavigator(
            tmp_path, NavigatorConfig(), fake_adapter, ScriptedProvider(Unavailable("x"))
        )
        assert await navigator.navigate() == NO_SOURCE_FILES

    @pytest.mark.asyncio
    async def test_flat_listing_for_small_projects(
        self, tmp_path: Path, fake_adapter: Any
    ) -> None:
        write_project(tmp_path, {"src": ["alpha", "beta"]})
        provider = ScriptedProvider(Completed('["Handles alpha requests", "Handles beta jobs"]'))
        navigator = SemanticNavigator(tmp_path, NavigatorConfig(), fake_adapter, provider)

        report = await navigator.navigate()

        assert report.splitlines() == [
            "Semantic Navigator: 2 files",
            "",
            "  src/alpha.py - Handles alpha requests | symbols: alpha_handler@L4-L5",
            "  src/beta.py - Handles beta jobs | symbols: beta_handler@L4-L5",
        ]

    @pytest.mark.asyncio
    async def test_clustered_report_lists_every_file_once(
        self, tmp_path: Path, fake_adapter: Any
    ) -> None:
        names = {
            "auth": ["login", "logout", "token", "session", "password"],
            "billing": ["invoice", "payment", "refund", "tax", "receipt"],
        }
        write_project(tmp_path, names)
        navigator = SemanticNavigator(
            tmp_path,
            NavigatorConfig(max_files_per_leaf=3),
            fake_adapter,
            ScriptedProvider(Unavailable("offline")),
        )

        report = await navigator.navigate(max_depth=3, max_clusters=2)

        lines = report.splitlines()
        assert lines[0] == "Semantic Navigator: 10 files organized by meaning"
        assert lines[2] == "[Project]"
        for directory, stems in names.items():
            for stem in stems:
                path = f"{directory}/{stem}.py"
                assert sum(1 for line in lines if line.strip().startswith(path)) == 1

    @pytest.mark.asyncio
    async def test_tree_missing_files_is_rejected(
        self, tmp_path: Path, fake_adapter: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_project(tmp_path, {"src": [f"m{i}" for i in range(6)]})
        navigator = SemanticNavigator(
            tmp_path,
            NavigatorConfig(max_files_per_leaf=3),
            fake_adapter,
            ScriptedProvider(Unavailable("offline")),
        )

        async def partial_tree(files: list[NavFile], *_args: Any, **_kwargs: Any) -> ClusterTree:
            tree = ClusterTree()
            tree.add(parent=None, depth=0, path_pattern=None, files=[0, 1], label="Project")
            return tree

        monkeypatch.setattr(navigator, "build_tree", partial_tree)

        with pytest.raises(InternalError) as exc_info:
            await navigator.navigate()
        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_embedding_failure_message(self, tmp_path: Path) -> None:
        write_project(tmp_path, {"src": ["alpha"]})
        navigator = SemanticNavigator(
            tmp_path,
            NavigatorConfig(),
            EmbeddingAdapter(FailingBackend()),
            ScriptedProvider(Unavailable("x")),
        )
        report = await navigator.navigate()
        assert report == "Broken not available for embeddings: Broken is unavailable: offline"
