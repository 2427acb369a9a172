"""Lexical multi-language symbol extraction.

Regex patterns per language family pick out definitions; end lines come from
brace balance (C-like languages) or indentation (Python). The result is a
shallow tree: top-level symbols with methods as children.

Non-code text files (markdown, YAML, JSON, TOML, env, lock files) are not
parsed here; they only get a two-line header via ``text_header``.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path


class SymbolKind(Enum):
    """Closed set of symbol kinds produced by the parser."""

    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    STRUCT = "struct"
    ENUM = "enum"
    INTERFACE = "interface"
    TYPE = "type"
    TRAIT = "trait"
    CONST = "const"
    VARIABLE = "variable"
    EXPORT = "export"

    @classmethod
    def parse(cls, text: str) -> SymbolKind | None:
        """Map a user-supplied kind name (any case) to a kind, or None."""
        try:
            return cls(text.strip().lower())
        except ValueError:
            return None

    @property
    def is_callable(self) -> bool:
        """Whether uses of this symbol look like ``name(``."""
        return _CALLABLE[self]


# One entry per kind; tests assert the table stays exhaustive
_CALLABLE: dict[SymbolKind, bool] = {
    SymbolKind.FUNCTION: True,
    SymbolKind.METHOD: True,
    SymbolKind.CLASS: False,
    SymbolKind.STRUCT: False,
    SymbolKind.ENUM: False,
    SymbolKind.INTERFACE: False,
    SymbolKind.TYPE: False,
    SymbolKind.TRAIT: False,
    SymbolKind.CONST: False,
    SymbolKind.VARIABLE: False,
    SymbolKind.EXPORT: False,
}

# Definition keyword -> kind, shared by the generic and C-family parsers
_KEYWORD_KINDS: dict[str, SymbolKind] = {
    "fn": SymbolKind.FUNCTION,
    "func": SymbolKind.FUNCTION,
    "function": SymbolKind.FUNCTION,
    "def": SymbolKind.FUNCTION,
    "fun": SymbolKind.FUNCTION,
    "class": SymbolKind.CLASS,
    "module": SymbolKind.CLASS,
    "object": SymbolKind.CLASS,
    "struct": SymbolKind.STRUCT,
    "union": SymbolKind.STRUCT,
    "enum": SymbolKind.ENUM,
    "interface": SymbolKind.INTERFACE,
    "protocol": SymbolKind.INTERFACE,
    "type": SymbolKind.TYPE,
    "typealias": SymbolKind.TYPE,
    "trait": SymbolKind.TRAIT,
}


@dataclass
class CodeSymbol:
    name: str
    kind: SymbolKind
    line: int
    end_line: int
    signature: str
    children: list[CodeSymbol] = field(default_factory=list)


@dataclass
class FileAnalysis:
    path: str
    header: str
    symbols: list[CodeSymbol]
    line_count: int


@dataclass(frozen=True, slots=True)
class FlatSymbol:
    """A symbol with its enclosing symbol's name, for identifier indexing."""

    name: str
    kind: SymbolKind
    line: int
    end_line: int
    signature: str
    parent_name: str | None = None


# ===================================================================
# File type detection
# ===================================================================

LANG_MAP: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".cs": "csharp",
    ".kt": "kotlin",
    ".scala": "scala",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".rb": "ruby",
    ".swift": "swift",
    ".lua": "lua",
    ".zig": "zig",
    ".php": "php",
}

TEXT_EXTENSIONS: frozenset[str] = frozenset(
    (".md", ".mdx", ".yaml", ".yml", ".json", ".toml", ".lock")
)

_TEXT_FILENAMES: frozenset[str] = frozenset(("package-lock.json", "Cargo.lock", "poetry.lock"))

# Header lines are cut to this many characters
_HEADER_LINE_MAX = 120


def detect_language(path: str | Path) -> str | None:
    return LANG_MAP.get(Path(path).suffix.lower())


def is_supported_file(path: str | Path) -> bool:
    """Code files the structural parser understands."""
    return detect_language(path) is not None


def is_text_file(path: str | Path) -> bool:
    """Non-code artifacts indexed by header and truncated body only."""
    name = Path(path).name
    if name == ".env" or name.startswith(".env."):
        return True
    if name in _TEXT_FILENAMES:
        return True
    return Path(path).suffix.lower() in TEXT_EXTENSIONS


def text_header(content: str) -> str:
    """First two non-blank lines, each truncated."""
    lines: list[str] = []
    for raw in content.splitlines():
        stripped = raw.strip()
        if stripped:
            lines.append(stripped[:_HEADER_LINE_MAX])
            if len(lines) == 2:
                break
    return " | ".join(lines)


# ===================================================================
# Header extraction for code files
# ===================================================================

_PREAMBLE_PREFIXES = (
    "import ",
    "from ",
    "use ",
    "package ",
    "require(",
    '"use strict"',
    "'use strict'",
)


def extract_header(lines: list[str]) -> str:
    """Leading comment or docstring text (at most two lines) in the first 10 lines."""
    header: list[str] = []
    block_end: str | None = None

    for raw in lines[:10]:
        line = raw.strip()
        if not line:
            continue

        if block_end is not None:
            if block_end in line:
                text = line.split(block_end, 1)[0]
                block_end = None
            else:
                text = line
            text = text.lstrip("*").strip()
        elif line.startswith("/*"):
            body = line[2:].lstrip("*")
            if "*/" in body:
                body = body.split("*/", 1)[0]
            else:
                block_end = "*/"
            text = body.strip()
        elif line.startswith(('"""', "'''")):
            quote, body = line[:3], line[3:]
            if quote in body:
                body = body.split(quote, 1)[0]
            else:
                block_end = quote
            text = body.strip()
        elif line.startswith("#!"):
            continue
        elif line.startswith("//") or line.startswith("--") or re.match(r"^#(\s|#|$)", line):
            text = line.lstrip("/#-").strip()
        elif line.startswith(_PREAMBLE_PREFIXES):
            continue
        else:
            break

        if text and not text.startswith("!"):
            header.append(text[:_HEADER_LINE_MAX])
            if len(header) >= 2:
                break

    return " | ".join(header)


# ===================================================================
# End-line detection
# ===================================================================

# Lines scanned for an opening brace before treating a definition as one-line
_BRACE_LOOKAHEAD = 20


def _brace_end(lines: list[str], start: int) -> int:
    """1-based end line of a brace-delimited definition starting at index ``start``."""
    depth = 0
    opened = False
    for i in range(start, len(lines)):
        line = lines[i]
        for ch in line:
            if ch == "{":
                depth += 1
                opened = True
            elif ch == "}":
                depth -= 1
        if opened and depth <= 0:
            return i + 1
        if not opened:
            if line.rstrip().endswith(";"):
                return i + 1
            if i - start >= _BRACE_LOOKAHEAD:
                return start + 1
    return len(lines) if opened else start + 1


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def _indent_end(lines: list[str], start: int) -> int:
    """1-based end line of an indentation-delimited block (Python)."""
    base = _indent_of(lines[start])
    last = start
    for i in range(start + 1, len(lines)):
        if not lines[i].strip():
            continue
        if _indent_of(lines[i]) <= base:
            break
        last = i
    return last + 1


def _member_indent(lines: list[str], start: int, end_line: int) -> int | None:
    """Indentation of the first non-blank line inside a class body."""
    for i in range(start + 1, min(end_line, len(lines))):
        if lines[i].strip() and lines[i].strip() not in ("{", "}"):
            return _indent_of(lines[i])
    return None


def _signature(line: str) -> str:
    return re.sub(r"\s*[{:]?\s*$", "", line.strip())


# ===================================================================
# Language parsers
# ===================================================================

_TS_PATTERNS: list[tuple[re.Pattern[str], SymbolKind]] = [
    (
        re.compile(
            r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s+(\w+)\s*(<[^>]*>)?\s*\(([^)]*)\)"
            r"(?:\s*:\s*([^\n{]+))?"
        ),
        SymbolKind.FUNCTION,
    ),
    (
        re.compile(
            r"^(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(\w+)(?:\s+extends\s+\w+)?"
            r"(?:\s+implements\s+[\w,\s]+)?"
        ),
        SymbolKind.CLASS,
    ),
    (re.compile(r"^(?:export\s+)?(?:const\s+)?enum\s+(\w+)"), SymbolKind.ENUM),
    (re.compile(r"^(?:export\s+)?interface\s+(\w+)(?:\s+extends\s+[\w,\s<>]+)?"), SymbolKind.INTERFACE),
    (re.compile(r"^(?:export\s+)?type\s+(\w+)\s*(?:<[^>]*>)?\s*="), SymbolKind.TYPE),
    (
        re.compile(
            r"^(?:export\s+)?const\s+(\w+)\s*(?::\s*[^=]+)?=\s*(?:async\s+)?"
            r"(?:\([^)]*\)|\w+)\s*(?::\s*[^=]+)?=>"
        ),
        SymbolKind.FUNCTION,
    ),
    (re.compile(r"^(?:export\s+)?const\s+(\w+)\s*(?::\s*[^=]+)?\s*="), SymbolKind.CONST),
    (re.compile(r"^(?:export\s+)?(?:let|var)\s+(\w+)\s*(?::\s*[^=]+)?\s*="), SymbolKind.VARIABLE),
    (re.compile(r"^export\s+(?:default\s+)?\{?\s*(\w+)"), SymbolKind.EXPORT),
]

_TS_METHOD = re.compile(
    r"^(?:(?:public|private|protected|static|async|readonly|override|abstract)\s+)*"
    r"(?:get\s+|set\s+)?\*?(\w+)\s*(?:<[^>]*>)?\s*\(([^)]*)\)(?:\s*:\s*([^\n{]+))?"
)

_CONTROL_WORDS = frozenset(
    (
        "if",
        "for",
        "while",
        "switch",
        "return",
        "throw",
        "new",
        "delete",
        "catch",
        "else",
        "do",
        "await",
        "super",
        "typeof",
        "function",
    )
)

_PY_DEF = re.compile(r"^(?:async\s+)?def\s+(\w+)\s*\(")
_PY_CLASS = re.compile(r"^class\s+(\w+)(?:\(([^)]*)\))?")
_PY_CONST = re.compile(r"^([A-Z][A-Z0-9_]*)\s*(?::\s*[^=]+)?=(?!=)")

_RS_PATTERNS: list[tuple[re.Pattern[str], SymbolKind]] = [
    (
        re.compile(
            r"^(?:pub(?:\([^)]*\))?\s+)?(?:const\s+)?(?:async\s+)?(?:unsafe\s+)?fn\s+(\w+)"
        ),
        SymbolKind.FUNCTION,
    ),
    (re.compile(r"^(?:pub(?:\([^)]*\))?\s+)?struct\s+(\w+)"), SymbolKind.STRUCT),
    (re.compile(r"^(?:pub(?:\([^)]*\))?\s+)?enum\s+(\w+)"), SymbolKind.ENUM),
    (re.compile(r"^(?:pub(?:\([^)]*\))?\s+)?(?:unsafe\s+)?trait\s+(\w+)"), SymbolKind.TRAIT),
    (re.compile(r"^(?:pub(?:\([^)]*\))?\s+)?type\s+(\w+)"), SymbolKind.TYPE),
    (re.compile(r"^(?:pub(?:\([^)]*\))?\s+)?(?:const|static)\s+(\w+)"), SymbolKind.CONST),
    (re.compile(r"^impl(?:<[^>]*>)?\s+(?:\w+(?:<[^>]*>)?\s+for\s+)?(\w+)"), SymbolKind.CLASS),
]

_GO_PATTERNS: list[tuple[re.Pattern[str], SymbolKind]] = [
    (re.compile(r"^func\s+\(\w+\s+\*?\w+(?:\[[^\]]*\])?\)\s+(\w+)\s*\("), SymbolKind.METHOD),
    (re.compile(r"^func\s+(\w+)\s*(?:\[[^\]]*\])?\s*\("), SymbolKind.FUNCTION),
    (re.compile(r"^type\s+(\w+)\s+struct\b"), SymbolKind.STRUCT),
    (re.compile(r"^type\s+(\w+)\s+interface\b"), SymbolKind.INTERFACE),
    (re.compile(r"^type\s+(\w+)\s"), SymbolKind.TYPE),
    (re.compile(r"^const\s+(\w+)\s"), SymbolKind.CONST),
    (re.compile(r"^var\s+(\w+)\s"), SymbolKind.VARIABLE),
]

_JAVA_TYPE = re.compile(
    r"^(?:(?:public|private|protected|internal|static|abstract|final|sealed|partial)\s+)*"
    r"(class|interface|enum|record|struct)\s+(\w+)"
)
_JAVA_METHOD = re.compile(
    r"^(?:(?:public|private|protected|internal|static|abstract|final|override|virtual|async|"
    r"synchronized)\s+)*(\w+(?:<[^>]*>)?(?:\[\])?)\s+(\w+)\s*\("
)

_GENERIC_PATTERNS: list[re.Pattern[str]] = [
    re.compile(
        r"^(?:pub(?:\([^)]*\))?\s+)?(?:export\s+)?(?:local\s+)?(?:async\s+)?"
        r"(fn|func|function|def|fun)\s+(?:[\w.]+[.:])?(\w+)"
    ),
    re.compile(
        r"^(?:pub\s+)?(?:export\s+)?(?:(?:public|private|final|abstract|open|data|sealed)\s+)*"
        r"(class|struct|module|object)\s+(\w+)"
    ),
    re.compile(r"^(?:pub\s+)?(?:export\s+)?(enum|interface|protocol|type|typealias|trait)\s+(\w+)"),
]

_C_TYPE = re.compile(r"^(?:typedef\s+)?(struct|class|enum|union)\s+(\w+)")
_C_FUNCTION = re.compile(r"^([A-Za-z_][\w:<>,\*&]*(?:\s+[\w:<>,\*&]+)*)\s+[\*&]*(\w+)\s*\(([^;]*)$")


def _match_table(
    line: str, table: list[tuple[re.Pattern[str], SymbolKind]]
) -> tuple[str, SymbolKind] | None:
    for pattern, kind in table:
        match = pattern.match(line)
        if match and match.group(1):
            return match.group(1), kind
    return None


def _parse_typescript(lines: list[str]) -> list[CodeSymbol]:
    symbols: list[CodeSymbol] = []
    current_class: CodeSymbol | None = None
    member_indent: int | None = None

    for i, raw in enumerate(lines):
        trimmed = raw.lstrip()
        indent = len(raw) - len(trimmed)

        if current_class is not None and i + 1 > current_class.end_line:
            current_class = None

        if indent == 0:
            found = _match_table(trimmed, _TS_PATTERNS)
            if found:
                name, kind = found
                sym = CodeSymbol(name, kind, i + 1, _brace_end(lines, i), _signature(trimmed))
                symbols.append(sym)
                if kind == SymbolKind.CLASS:
                    current_class = sym
                    member_indent = _member_indent(lines, i, sym.end_line)
                else:
                    current_class = None
                continue

        if current_class is not None and indent > 0 and indent == member_indent:
            match = _TS_METHOD.match(trimmed)
            if (
                match
                and match.group(1) not in _CONTROL_WORDS
                and not trimmed.rstrip().endswith(";")
            ):
                current_class.children.append(
                    CodeSymbol(
                        match.group(1),
                        SymbolKind.METHOD,
                        i + 1,
                        _brace_end(lines, i),
                        _signature(trimmed),
                    )
                )
    return symbols


def _parse_python(lines: list[str]) -> list[CodeSymbol]:
    symbols: list[CodeSymbol] = []
    current_class: CodeSymbol | None = None
    member_indent: int | None = None

    for i, raw in enumerate(lines):
        trimmed = raw.lstrip()
        if not trimmed:
            continue
        indent = len(raw) - len(trimmed)

        if indent == 0:
            current_class = None
            if match := _PY_CLASS.match(trimmed):
                sym = CodeSymbol(
                    match.group(1), SymbolKind.CLASS, i + 1, _indent_end(lines, i), _signature(trimmed)
                )
                symbols.append(sym)
                current_class = sym
                member_indent = _member_indent(lines, i, sym.end_line)
            elif match := _PY_DEF.match(trimmed):
                symbols.append(
                    CodeSymbol(
                        match.group(1),
                        SymbolKind.FUNCTION,
                        i + 1,
                        _indent_end(lines, i),
                        _signature(trimmed),
                    )
                )
            elif match := _PY_CONST.match(trimmed):
                symbols.append(
                    CodeSymbol(match.group(1), SymbolKind.CONST, i + 1, i + 1, trimmed.rstrip())
                )
        elif current_class is not None and indent == member_indent:
            if match := _PY_DEF.match(trimmed):
                current_class.children.append(
                    CodeSymbol(
                        match.group(1),
                        SymbolKind.METHOD,
                        i + 1,
                        _indent_end(lines, i),
                        _signature(trimmed),
                    )
                )
    return symbols


def _parse_table_language(
    table: list[tuple[re.Pattern[str], SymbolKind]],
) -> Callable[[list[str]], list[CodeSymbol]]:
    """Parser for languages whose definitions start at column 0 (Rust, Go)."""

    def parse(lines: list[str]) -> list[CodeSymbol]:
        symbols: list[CodeSymbol] = []
        for i, raw in enumerate(lines):
            if raw[:1].isspace():
                continue
            found = _match_table(raw, table)
            if found:
                name, kind = found
                symbols.append(
                    CodeSymbol(name, kind, i + 1, _brace_end(lines, i), _signature(raw))
                )
        return symbols

    return parse


def _parse_java(lines: list[str]) -> list[CodeSymbol]:
    symbols: list[CodeSymbol] = []
    current_class: CodeSymbol | None = None
    member_indent: int | None = None

    for i, raw in enumerate(lines):
        trimmed = raw.lstrip()
        if not trimmed:
            continue
        indent = len(raw) - len(trimmed)

        if current_class is not None and i + 1 > current_class.end_line:
            current_class = None

        if match := _JAVA_TYPE.match(trimmed):
            if current_class is None or indent == 0:
                keyword, name = match.group(1), match.group(2)
                kind = _KEYWORD_KINDS.get(keyword, SymbolKind.CLASS)
                sym = CodeSymbol(name, kind, i + 1, _brace_end(lines, i), _signature(trimmed))
                symbols.append(sym)
                current_class = sym
                member_indent = _member_indent(lines, i, sym.end_line)
                continue

        if current_class is not None and indent == member_indent:
            match = _JAVA_METHOD.match(trimmed)
            if (
                match
                and match.group(1) not in _CONTROL_WORDS
                and match.group(2) not in _CONTROL_WORDS
                and not trimmed.rstrip().endswith(";")
            ):
                current_class.children.append(
                    CodeSymbol(
                        match.group(2),
                        SymbolKind.METHOD,
                        i + 1,
                        _brace_end(lines, i),
                        _signature(trimmed),
                    )
                )
    return symbols


def _parse_c(lines: list[str]) -> list[CodeSymbol]:
    symbols: list[CodeSymbol] = []
    for i, raw in enumerate(lines):
        if not raw or raw[:1].isspace() or raw.startswith(("#", "//", "/*", "}")):
            continue
        if match := _C_TYPE.match(raw):
            kind = _KEYWORD_KINDS[match.group(1)]
            symbols.append(
                CodeSymbol(match.group(2), kind, i + 1, _brace_end(lines, i), _signature(raw))
            )
            continue
        match = _C_FUNCTION.match(raw.rstrip())
        if match and match.group(1).split()[0] not in _CONTROL_WORDS:
            symbols.append(
                CodeSymbol(
                    match.group(2),
                    SymbolKind.FUNCTION,
                    i + 1,
                    _brace_end(lines, i),
                    _signature(raw),
                )
            )
    return symbols


def _parse_generic(lines: list[str], *, braces: bool = True) -> list[CodeSymbol]:
    symbols: list[CodeSymbol] = []
    for i, raw in enumerate(lines):
        trimmed = raw.lstrip()
        for pattern in _GENERIC_PATTERNS:
            match = pattern.match(trimmed)
            if match:
                kind = _KEYWORD_KINDS.get(match.group(1), SymbolKind.FUNCTION)
                end_line = _brace_end(lines, i) if braces else i + 1
                symbols.append(
                    CodeSymbol(match.group(2), kind, i + 1, end_line, _signature(trimmed))
                )
                break
    return symbols


_PARSERS: dict[str, Callable[[list[str]], list[CodeSymbol]]] = {
    "typescript": _parse_typescript,
    "javascript": _parse_typescript,
    "python": _parse_python,
    "rust": _parse_table_language(_RS_PATTERNS),
    "go": _parse_table_language(_GO_PATTERNS),
    "java": _parse_java,
    "csharp": _parse_java,
    "c": _parse_c,
    "cpp": _parse_c,
    # keyword-terminated blocks (end), no brace balance
    "ruby": partial(_parse_generic, braces=False),
    "lua": partial(_parse_generic, braces=False),
}


# ===================================================================
# Public API
# ===================================================================


def parse_source(content: str, language: str | None) -> list[CodeSymbol]:
    lines = content.split("\n")
    parser = _PARSERS.get(language or "", _parse_generic)
    return parser(lines)


def analyze_file(path: str | Path) -> FileAnalysis:
    """Read and parse one code file.

    Raises:
        OSError / UnicodeDecodeError: unreadable file; callers skip it.
    """
    file_path = Path(path)
    content = file_path.read_text(encoding="utf-8")
    lines = content.split("\n")
    return FileAnalysis(
        path=str(file_path),
        header=extract_header(lines),
        symbols=parse_source(content, detect_language(file_path)),
        line_count=len(lines),
    )


def flatten_symbols(symbols: list[CodeSymbol], parent_name: str | None = None) -> list[FlatSymbol]:
    """Depth-first flattening; children carry the enclosing symbol's name."""
    flat: list[FlatSymbol] = []
    for sym in symbols:
        flat.append(
            FlatSymbol(
                name=sym.name,
                kind=sym.kind,
                line=sym.line,
                end_line=sym.end_line,
                signature=sym.signature,
                parent_name=parent_name,
            )
        )
        flat.extend(flatten_symbols(sym.children, sym.name))
    return flat


def format_line_range(line: int, end_line: int) -> str:
    return f"L{line}-L{end_line}" if end_line > line else f"L{line}"
