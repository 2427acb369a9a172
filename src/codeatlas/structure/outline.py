"""Structural views built from the parser and walker alone.

- ``file_skeleton``: one file's definitions with line ranges and signatures
- ``context_tree``: directory tree annotated with headers and symbols,
  pruned to a token budget
- ``blast_radius``: every line that mentions a symbol, grouped by file

None of these touch embeddings, so they answer even when the embedding
service is down.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from codeatlas.core.errors import StructureError
from codeatlas.index.parser import (
    CodeSymbol,
    SymbolKind,
    analyze_file,
    format_line_range,
    is_supported_file,
)
from codeatlas.index.walker import collect_files, walk
from codeatlas.search.callsites import is_definition_line

log = structlog.get_logger(__name__)

UNSUPPORTED_PREVIEW_LINES = 20
NO_SYMBOLS_PREVIEW_LINES = 30

CHARS_PER_TOKEN = 4
DEFAULT_MAX_TOKENS = 20000

USAGE_CONTEXT_MAX_CHARS = 120
LOW_USAGE_THRESHOLD = 1


def resolve_in_root(root: Path, relative_path: str) -> Path:
    """Absolute path for ``relative_path``; raises if it escapes ``root``."""
    resolved_root = root.resolve()
    target = (resolved_root / relative_path).resolve()
    if not target.is_relative_to(resolved_root):
        raise StructureError.path_outside_root(relative_path, str(resolved_root))
    return target


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


# ===================================================================
# File skeleton
# ===================================================================


def _skeleton_lines(sym: CodeSymbol, indent: int) -> list[str]:
    pad = "  " * indent
    lines = [f"{pad}[{sym.kind.value}] {format_line_range(sym.line, sym.end_line)} {sym.signature}"]
    for child in sym.children:
        lines.extend(_skeleton_lines(child, indent + 1))
    return lines


def _preview(content: str, count: int) -> str:
    return "\n".join(content.split("\n")[:count])


def file_skeleton(root: Path, file_path: str) -> str:
    """Definitions of one file without their bodies.

    Unsupported languages and files with no detectable symbols fall back to
    a short preview of the first lines.

    Raises:
        StructureError: path outside the root, missing or unreadable file.
    """
    target = resolve_in_root(root, file_path)
    if not target.is_file():
        raise StructureError.file_not_found(file_path)

    try:
        content = target.read_text(encoding="utf-8")
        analysis = analyze_file(target) if is_supported_file(target) else None
    except (OSError, UnicodeDecodeError) as e:
        raise StructureError.unreadable(file_path, str(e)) from e

    if analysis is None:
        return (
            f"[Unsupported language, showing first {UNSUPPORTED_PREVIEW_LINES} lines]\n\n"
            + _preview(content, UNSUPPORTED_PREVIEW_LINES)
        )
    if not analysis.symbols:
        return (
            f"[No symbols detected, showing first {NO_SYMBOLS_PREVIEW_LINES} lines]\n\n"
            + _preview(content, NO_SYMBOLS_PREVIEW_LINES)
        )

    out = [
        f"File: {file_path} ({analysis.line_count} lines)",
        f"Symbols: {len(analysis.symbols)} top-level definitions",
        "",
    ]
    if analysis.header:
        out.extend([f"Header: {analysis.header}", ""])
    for sym in analysis.symbols:
        out.extend(_skeleton_lines(sym, 0))
        if sym.children:
            out.append("")
    return "\n".join(out).rstrip("\n")


# ===================================================================
# Context tree
# ===================================================================


@dataclass
class TreeNode:
    """Arena node; ``children`` holds indices into the owning list."""

    name: str
    is_directory: bool
    header: str = ""
    symbols: list[str] = field(default_factory=list)
    children: list[int] = field(default_factory=list)


def _tree_symbol_lines(sym: CodeSymbol, indent: int = 0) -> list[str]:
    label = sym.signature if sym.kind in (SymbolKind.FUNCTION, SymbolKind.METHOD) else sym.name
    lines = [f"{'  ' * indent}{sym.kind.value}: {label} (L{sym.line})"]
    for child in sym.children:
        lines.extend(_tree_symbol_lines(child, indent + 1))
    return lines


def build_context_tree(
    root: Path,
    *,
    target_path: str | None = None,
    depth_limit: int = 0,
    include_symbols: bool = True,
) -> list[TreeNode]:
    """Arena of tree nodes; index 0 is the start directory.

    Walk entries arrive depth-first, so an entry's parent is the most recent
    directory one level above it.
    """
    label = target_path.strip("/") if target_path else "."
    nodes = [TreeNode(name=label, is_directory=True)]
    # open_dirs[d] is the arena index of the directory holding depth-d entries
    open_dirs = [0]

    for entry in walk(root, target_path=target_path, depth_limit=depth_limit):
        del open_dirs[entry.depth + 1 :]
        parent = open_dirs[entry.depth]
        node = TreeNode(name=entry.path.name, is_directory=entry.is_directory)

        if not entry.is_directory and is_supported_file(entry.path):
            try:
                analysis = analyze_file(entry.path)
            except Exception:
                log.debug("context_tree.analyze_failed", path=entry.relative_path, exc_info=True)
            else:
                node.header = analysis.header
                if include_symbols:
                    for sym in analysis.symbols:
                        node.symbols.extend(_tree_symbol_lines(sym))

        nodes.append(node)
        index = len(nodes) - 1
        nodes[parent].children.append(index)
        if entry.is_directory:
            open_dirs.append(index)

    return nodes


def render_tree(nodes: list[TreeNode]) -> str:
    out = [f"▼ {nodes[0].name}/"]

    def render(index: int, indent: int, is_last: bool) -> None:
        node = nodes[index]
        prefix = "  " * (indent - 1) + ("└── " if is_last else "├── ")
        if node.is_directory:
            out.append(f"{prefix}▶ {node.name}/")
        else:
            out.append(f"{prefix}{node.name} ({node.header})" if node.header else prefix + node.name)
            out.extend(f"{'  ' * indent}    {line}" for line in node.symbols)
        for i, child in enumerate(node.children):
            render(child, indent + 1, i == len(node.children) - 1)

    top = nodes[0].children
    for i, child in enumerate(top):
        render(child, 1, i == len(top) - 1)
    return "\n".join(out) + "\n"


def context_tree(
    root: Path,
    *,
    target_path: str | None = None,
    depth_limit: int = 0,
    include_symbols: bool = True,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> str:
    """Rendered project tree, degraded level by level to fit ``max_tokens``.

    Level 2 shows headers and symbols, level 1 drops symbols and level 0
    drops headers too. Levels 1 and 0 are announced by a bracketed prefix.

    Raises:
        StructureError: ``target_path`` outside the root.
    """
    if target_path:
        resolve_in_root(root, target_path)
    nodes = build_context_tree(
        root, target_path=target_path, depth_limit=depth_limit, include_symbols=include_symbols
    )

    rendered = render_tree(nodes)
    if estimate_tokens(rendered) <= max_tokens:
        return rendered

    for node in nodes:
        node.symbols = []
    rendered = render_tree(nodes)
    if estimate_tokens(rendered) <= max_tokens:
        log.debug("context_tree.pruned", level=1, max_tokens=max_tokens)
        return f"[Level 1: Headers only, symbols pruned to fit {max_tokens} tokens]\n\n{rendered}"

    for node in nodes:
        node.header = ""
    log.debug("context_tree.pruned", level=0, max_tokens=max_tokens)
    return (
        f"[Level 0: File names only, project too large for {max_tokens} tokens]\n\n"
        + render_tree(nodes)
    )


# ===================================================================
# Blast radius
# ===================================================================


@dataclass(frozen=True, slots=True)
class SymbolUsage:
    file: str
    line: int
    context: str


def find_usages(root: Path, symbol_name: str, file_context: str | None = None) -> list[SymbolUsage]:
    """Whole-word mentions of ``symbol_name`` across code files, in walk order.

    Definition lines are dropped only inside ``file_context``, the file the
    caller says defines the symbol.
    """
    pattern = re.compile(rf"\b{re.escape(symbol_name)}\b")
    defining_file = file_context.strip("/").replace("\\", "/") if file_context else None
    usages: list[SymbolUsage] = []

    for entry in collect_files(root):
        if not is_supported_file(entry.path):
            continue
        try:
            lines = entry.path.read_text(encoding="utf-8").split("\n")
        except (OSError, UnicodeDecodeError):
            log.debug("blast_radius.read_failed", path=entry.relative_path)
            continue
        for i, raw in enumerate(lines):
            if not pattern.search(raw):
                continue
            if entry.relative_path == defining_file and is_definition_line(raw, symbol_name):
                continue
            usages.append(
                SymbolUsage(entry.relative_path, i + 1, raw.strip()[:USAGE_CONTEXT_MAX_CHARS])
            )
    return usages


def blast_radius(root: Path, symbol_name: str, file_context: str | None = None) -> str:
    usages = find_usages(root, symbol_name, file_context)
    if not usages:
        return f'Symbol "{symbol_name}" is not used anywhere in the codebase.'

    by_file: dict[str, list[SymbolUsage]] = {}
    for usage in usages:
        by_file.setdefault(usage.file, []).append(usage)

    out = [f'Blast radius for "{symbol_name}": {len(usages)} usages in {len(by_file)} files', ""]
    for file, file_usages in by_file.items():
        out.append(f"  {file}:")
        out.extend(f"    L{u.line}: {u.context}" for u in file_usages)

    if len(usages) <= LOW_USAGE_THRESHOLD:
        out.extend(
            [
                "",
                f"LOW USAGE: {symbol_name} is used only {len(usages)} time(s). "
                "Consider inlining it if it is short.",
            ]
        )
    return "\n".join(out)
