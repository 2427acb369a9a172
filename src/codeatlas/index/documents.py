"""Searchable documents built from walked files.

Two granularities:
- ``Document``: one per file, for whole-file search and navigation
- ``IdentifierDocument``: one per symbol, for identifier search
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from codeatlas.index.parser import (
    SymbolKind,
    analyze_file,
    flatten_symbols,
    is_supported_file,
    is_text_file,
    text_header,
)

log = structlog.get_logger()

IDENTIFIER_KEY_PREFIX = "id:"


@dataclass(frozen=True, slots=True)
class SymbolEntry:
    name: str
    kind: SymbolKind
    line: int
    end_line: int
    signature: str


@dataclass(frozen=True, slots=True)
class Document:
    """One indexed file. ``path`` is root-relative and slash-separated."""

    path: str
    header: str
    symbols: list[str] = field(default_factory=list)
    symbol_entries: list[SymbolEntry] = field(default_factory=list)
    content: str = ""


@dataclass(frozen=True, slots=True)
class IdentifierDocument:
    """One indexed symbol; ``id`` is ``path:name:line``."""

    id: str
    path: str
    header: str
    name: str
    kind: SymbolKind
    line: int
    end_line: int
    signature: str
    parent_name: str | None
    text: str

    @property
    def cache_key(self) -> str:
        return f"{IDENTIFIER_KEY_PREFIX}{self.id}"

    @property
    def keyword_text(self) -> str:
        return f"{self.name} {self.signature} {self.path} {self.header}"


def normalize_relative_path(path: str) -> str:
    """Slash-separate and strip leading ``./`` and ``/``."""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def is_indexable(path: str | Path) -> bool:
    return is_supported_file(path) or is_text_file(path)


def document_embed_text(doc: Document) -> str:
    """Embedding input for a file document; its hash keys the disk cache."""
    return f"{doc.header} {' '.join(doc.symbols)} {doc.content}"


def build_document(root: Path, relative_path: str, *, text_max_chars: int) -> Document | None:
    """Build the file-level document, or None when the file cannot be indexed."""
    rel = normalize_relative_path(relative_path)
    full_path = root / rel

    if is_supported_file(full_path):
        try:
            analysis = analyze_file(full_path)
        except Exception:
            log.debug("documents.analyze_failed", path=rel, exc_info=True)
            return None
        flat = flatten_symbols(analysis.symbols)
        return Document(
            path=rel,
            header=analysis.header,
            symbols=[sym.name for sym in flat],
            symbol_entries=[
                SymbolEntry(sym.name, sym.kind, sym.line, sym.end_line, sym.signature)
                for sym in flat
            ],
            content=" ".join(sym.signature for sym in flat),
        )

    if is_text_file(full_path):
        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            log.debug("documents.read_failed", path=rel)
            return None
        return Document(path=rel, header=text_header(content), content=content[:text_max_chars])

    return None


def build_identifier_documents(root: Path, relative_path: str) -> list[IdentifierDocument]:
    """One document per symbol (methods included) of a code file."""
    rel = normalize_relative_path(relative_path)
    full_path = root / rel
    if not is_supported_file(full_path):
        return []

    try:
        analysis = analyze_file(full_path)
    except Exception:
        log.debug("documents.analyze_failed", path=rel, exc_info=True)
        return []

    docs: list[IdentifierDocument] = []
    for sym in flatten_symbols(analysis.symbols):
        parent = sym.parent_name or ""
        docs.append(
            IdentifierDocument(
                id=f"{rel}:{sym.name}:{sym.line}",
                path=rel,
                header=analysis.header,
                name=sym.name,
                kind=sym.kind,
                line=sym.line,
                end_line=sym.end_line,
                signature=sym.signature,
                parent_name=sym.parent_name,
                text=(
                    f"{sym.name} {sym.kind.value} {sym.signature} {rel} "
                    f"{analysis.header} {parent}"
                ),
            )
        )
    return docs
