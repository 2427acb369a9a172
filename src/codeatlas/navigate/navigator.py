"""Semantic project navigator.

Embeds every code file, recursively partitions the vectors with spectral
clustering and asks a completion provider to name each sibling group. The
hierarchy lives in a ``ClusterTree`` arena: nodes reference files and
children by integer index, parents by node index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import structlog

from codeatlas.config.models import NavigatorConfig
from codeatlas.core.errors import EmbeddingError, InternalError
from codeatlas.embedding.provider import EmbeddingAdapter
from codeatlas.index.parser import (
    analyze_file,
    extract_header,
    flatten_symbols,
    format_line_range,
    is_supported_file,
)
from codeatlas.index.walker import collect_files
from codeatlas.navigate.clustering import find_path_pattern, spectral_cluster
from codeatlas.navigate.labeling import (
    ClusterSummary,
    CompletionProvider,
    describe_files,
    label_sibling_clusters,
)

log = structlog.get_logger()

NO_SOURCE_FILES = "No supported source files found in the project."
ROOT_LABEL = "Project"
SYMBOL_PREVIEW_COUNT = 3


@dataclass(frozen=True, slots=True)
class NavFile:
    relative_path: str
    header: str
    content: str
    symbol_preview: list[str] = field(default_factory=list)

    @property
    def embed_text(self) -> str:
        return f"{self.header} {self.relative_path} {self.content}"


@dataclass
class ClusterNode:
    """Leaf: non-empty ``files``, no children. Internal: children, no files."""

    label: str
    path_pattern: str | None
    files: list[int]
    children: list[int]
    parent: int | None
    depth: int

    @property
    def is_leaf(self) -> bool:
        return not self.children


class ClusterTree:
    """Flat node arena; node 0 is the root once anything is added."""

    def __init__(self) -> None:
        self.nodes: list[ClusterNode] = []

    def add(
        self,
        *,
        parent: int | None,
        depth: int,
        path_pattern: str | None,
        files: list[int] | None = None,
        label: str = "",
    ) -> int:
        node_id = len(self.nodes)
        self.nodes.append(
            ClusterNode(
                label=label,
                path_pattern=path_pattern,
                files=list(files or []),
                children=[],
                parent=parent,
                depth=depth,
            )
        )
        if parent is not None:
            self.nodes[parent].children.append(node_id)
        return node_id

    def leaves(self) -> list[int]:
        return [i for i, node in enumerate(self.nodes) if node.is_leaf]

    def leaf_files(self) -> list[int]:
        """Every file index held by a leaf, depth-first from the root."""
        if not self.nodes:
            return []
        out: list[int] = []
        stack = [0]
        while stack:
            node = self.nodes[stack.pop()]
            if node.is_leaf:
                out.extend(node.files)
            else:
                stack.extend(reversed(node.children))
        return out

    def max_depth(self) -> int:
        return max((node.depth for node in self.nodes), default=0)

    def render(self, files: list[NavFile]) -> str:
        lines: list[str] = []
        if self.nodes:
            self._render(0, 0, files, lines)
        return "\n".join(lines)

    def _render(self, node_id: int, indent: int, files: list[NavFile], lines: list[str]) -> None:
        node = self.nodes[node_id]
        pad = "  " * indent
        if node.label:
            lines.append(f"{pad}[{node.label}]")
        if node.children:
            for child in node.children:
                self._render(child, indent + 1, files, lines)
            return
        for index in node.files:
            lines.append(f"{pad}  {format_file_line(files[index])}")


def format_file_line(file: NavFile, description: str | None = None) -> str:
    text = description or file.header
    label = f" - {text}" if text else ""
    symbols = f" | symbols: {', '.join(file.symbol_preview)}" if file.symbol_preview else ""
    return f"{file.relative_path}{label}{symbols}"


class SemanticNavigator:
    """Builds and renders the meaning-based file hierarchy for one root."""

    def __init__(
        self,
        root: Path,
        config: NavigatorConfig,
        adapter: EmbeddingAdapter,
        completion: CompletionProvider,
    ) -> None:
        self._root = root.resolve()
        self._config = config
        self._adapter = adapter
        self._completion = completion

    def collect_files(self) -> list[NavFile]:
        files: list[NavFile] = []
        preview_chars = self._config.content_preview_chars
        for entry in collect_files(self._root):
            if not is_supported_file(entry.path):
                continue
            try:
                content = entry.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            header = extract_header(content.split("\n"))
            preview: list[str] = []
            try:
                analysis = analyze_file(entry.path)
            except Exception:
                log.debug("navigator.analyze_failed", path=entry.relative_path, exc_info=True)
            else:
                header = analysis.header or header
                preview = [
                    f"{sym.name}@{format_line_range(sym.line, sym.end_line)}"
                    for sym in flatten_symbols(analysis.symbols)[:SYMBOL_PREVIEW_COUNT]
                ]
            files.append(
                NavFile(
                    relative_path=entry.relative_path,
                    header=header,
                    content=content[:preview_chars],
                    symbol_preview=preview,
                )
            )
        return files

    async def navigate(self, max_depth: int | None = None, max_clusters: int | None = None) -> str:
        depth_limit = max(1, max_depth if max_depth is not None else self._config.max_depth)
        cluster_limit = max(2, max_clusters if max_clusters is not None else self._config.max_clusters)

        files = self.collect_files()
        if not files:
            return NO_SOURCE_FILES

        try:
            embedded = await self._adapter.embed_each([f.embed_text for f in files])
        except EmbeddingError as e:
            log.warning("navigator.embedding_failed", code=e.code.value, message=e.message)
            return f"{self._adapter.name} not available for embeddings: {e.message}"

        kept = [(f, vec) for f, vec in zip(files, embedded, strict=True) if vec is not None]
        if not kept:
            return NO_SOURCE_FILES
        files = [f for f, _ in kept]
        vectors = np.vstack([vec for _, vec in kept])

        if len(files) <= self._config.max_files_per_leaf:
            return await self._render_flat(files)

        tree = await self.build_tree(files, vectors, max_depth=depth_limit, max_clusters=cluster_limit)
        if sorted(tree.leaf_files()) != list(range(len(files))):
            raise InternalError.unexpected(
                "cluster tree does not cover every file exactly once", files=len(files)
            )
        log.info(
            "navigator.built",
            files=len(files),
            nodes=len(tree.nodes),
            leaves=len(tree.leaves()),
            depth=tree.max_depth(),
        )
        return (
            f"Semantic Navigator: {len(files)} files organized by meaning\n\n"
            f"{tree.render(files)}\n"
        )

    async def build_tree(
        self,
        files: list[NavFile],
        vectors: np.ndarray,
        *,
        max_depth: int,
        max_clusters: int,
    ) -> ClusterTree:
        tree = ClusterTree()
        await self._build(
            tree,
            files,
            list(range(len(files))),
            vectors,
            parent=None,
            depth=0,
            max_depth=max_depth,
            max_clusters=max_clusters,
        )
        tree.nodes[0].label = ROOT_LABEL
        return tree

    async def _build(
        self,
        tree: ClusterTree,
        files: list[NavFile],
        members: list[int],
        vectors: np.ndarray,
        *,
        parent: int | None,
        depth: int,
        max_depth: int,
        max_clusters: int,
    ) -> int:
        pattern = find_path_pattern([files[i].relative_path for i in members])
        if len(members) <= self._config.max_files_per_leaf or depth >= max_depth:
            return tree.add(parent=parent, depth=depth, path_pattern=pattern, files=members)

        clusters = spectral_cluster(vectors, max_clusters)
        if len(clusters) <= 1:
            return tree.add(parent=parent, depth=depth, path_pattern=pattern, files=members)

        node_id = tree.add(parent=parent, depth=depth, path_pattern=pattern)
        groups = [[members[i] for i in cluster] for cluster in clusters]
        summaries = [
            ClusterSummary(
                files=[(files[i].relative_path, files[i].header) for i in group],
                path_pattern=find_path_pattern([files[i].relative_path for i in group]),
            )
            for group in groups
        ]
        labels = await label_sibling_clusters(self._completion, summaries)

        for cluster, group, label in zip(clusters, groups, labels, strict=True):
            child = await self._build(
                tree,
                files,
                group,
                vectors[cluster],
                parent=node_id,
                depth=depth + 1,
                max_depth=max_depth,
                max_clusters=max_clusters,
            )
            tree.nodes[child].label = label
        return node_id

    async def _render_flat(self, files: list[NavFile]) -> str:
        descriptions = await describe_files(
            self._completion, [(f.relative_path, f.header) for f in files]
        )
        lines = [f"Semantic Navigator: {len(files)} files", ""]
        for file, description in zip(files, descriptions, strict=True):
            lines.append(f"  {format_file_line(file, description)}")
        return "\n".join(lines)
