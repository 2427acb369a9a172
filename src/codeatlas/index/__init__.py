"""Index module - walking, symbol extraction and document building.

- ``walker``: gitignore-aware tree walk
- ``parser``: lexical multi-language symbol extraction
- ``documents``: file-level and identifier-level search documents
"""

from codeatlas.index.documents import (
    Document,
    IdentifierDocument,
    SymbolEntry,
    build_document,
    build_identifier_documents,
    document_embed_text,
    is_indexable,
    normalize_relative_path,
)
from codeatlas.index.ignore import IgnoreChecker
from codeatlas.index.parser import (
    CodeSymbol,
    FileAnalysis,
    FlatSymbol,
    SymbolKind,
    analyze_file,
    flatten_symbols,
    format_line_range,
    is_supported_file,
    is_text_file,
    text_header,
)
from codeatlas.index.walker import WalkEntry, collect_files, walk

__all__ = [
    "CodeSymbol",
    "Document",
    "FileAnalysis",
    "FlatSymbol",
    "IdentifierDocument",
    "IgnoreChecker",
    "SymbolEntry",
    "SymbolKind",
    "WalkEntry",
    "analyze_file",
    "build_document",
    "build_identifier_documents",
    "collect_files",
    "document_embed_text",
    "flatten_symbols",
    "format_line_range",
    "is_indexable",
    "is_supported_file",
    "is_text_file",
    "normalize_relative_path",
    "text_header",
    "walk",
]
