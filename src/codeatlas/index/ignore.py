"""Ignore pattern matching for tree walks.

Tiers:
- HARDCODED_DIRS: always pruned (VCS internals, .codeatlas)
- DEFAULT_PRUNABLE_DIRS: pruned unless the root .gitignore re-includes them
  with ``!name``
- root .gitignore patterns: fnmatch globs, ``dir/`` matches contents,
  ``!pattern`` negates
"""

from __future__ import annotations

import fnmatch
from pathlib import Path, PurePosixPath

from codeatlas.core.excludes import DEFAULT_PRUNABLE_DIRS, is_hardcoded_dir


class IgnoreChecker:
    """Decides which directories to prune and which paths to skip."""

    def __init__(self, root: Path, extra_patterns: list[str] | None = None) -> None:
        self._root = root
        self._patterns: list[str] = []
        self._negated_dirs: set[str] = set()
        self._load_ignore_file(root / ".gitignore")
        if extra_patterns:
            self._patterns.extend(extra_patterns)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def should_prune_dir(self, dirname: str) -> bool:
        """Check if a directory (by name) should be skipped during traversal."""
        if is_hardcoded_dir(dirname):
            return True
        if dirname in DEFAULT_PRUNABLE_DIRS:
            return dirname not in self._negated_dirs
        return False

    def is_excluded_rel(self, rel_path: str) -> bool:
        """Check a slash-separated root-relative path against the patterns."""
        rel_posix = rel_path.replace("\\", "/")
        path_obj = PurePosixPath(rel_posix)
        excluded = False

        # Later patterns win, like git
        for pattern in self._patterns:
            negated = pattern.startswith("!")
            body = pattern[1:] if negated else pattern
            if self._matches(rel_posix, path_obj, body):
                excluded = not negated
        return excluded

    @staticmethod
    def _matches(rel_posix: str, path_obj: PurePosixPath, pattern: str) -> bool:
        if fnmatch.fnmatch(rel_posix, pattern):
            return True
        stem = pattern.rstrip("*").rstrip("/") or pattern
        # Patterns without a slash match any path component, like git
        unanchored = "/" not in stem
        if unanchored and fnmatch.fnmatch(path_obj.name, stem):
            return True
        for parent in path_obj.parents:
            parent_str = parent.as_posix()
            if parent_str == ".":
                continue
            if fnmatch.fnmatch(parent_str, stem):
                return True
            if unanchored and fnmatch.fnmatch(parent.name, stem):
                return True
        return False

    def _load_ignore_file(self, path: Path) -> None:
        """Load patterns from an ignore file, tracking ``!dir`` opt-ins."""
        try:
            content = path.read_text()
        except OSError:
            return

        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            is_negation = line.startswith("!")
            if is_negation:
                line = line[1:]
                dir_name = line.strip("/")
                if dir_name and "/" not in dir_name and "*" not in dir_name:
                    self._negated_dirs.add(dir_name)

            line = line.lstrip("/")
            # Directory patterns (ending in /) match all contents
            pattern = f"{line}**" if line.endswith("/") else line
            self._patterns.append(f"!{pattern}" if is_negation else pattern)
