"""Canonical exclude sets shared by the walker and the refresh tracker.

Tier 0 (HARDCODED_DIRS): never traversed, not overridable.
Tier 1 (DEFAULT_PRUNABLE_DIRS): dependency, cache and build output
directories, pruned unless a root .gitignore re-includes them with !name.
"""

from __future__ import annotations

DATA_DIR_NAME = ".codeatlas"

HARDCODED_DIRS: frozenset[str] = frozenset(
    (
        # VCS internals
        ".git",
        ".svn",
        ".hg",
        # Our own data (caches, backups, logs)
        DATA_DIR_NAME,
    )
)

DEFAULT_PRUNABLE_DIRS: frozenset[str] = frozenset(
    (
        # JavaScript/Node.js
        "node_modules",
        ".next",
        ".nuxt",
        ".turbo",
        ".parcel-cache",
        # Python
        "__pycache__",
        # Build outputs
        "dist",
        "build",
        "target",
        "coverage",
        ".cache",
        # OS noise
        ".DS_Store",
    )
)

PRUNABLE_DIRS: frozenset[str] = HARDCODED_DIRS | DEFAULT_PRUNABLE_DIRS

# Relative-path prefixes whose changes never trigger a re-embed
TRACKER_IGNORE_PREFIXES: tuple[str, ...] = (
    f"{DATA_DIR_NAME}/",
    ".git/",
    "node_modules/",
    "build/",
    "dist/",
    "landing/.next/",
)


def is_hardcoded_dir(dirname: str) -> bool:
    return dirname in HARDCODED_DIRS


def is_default_prunable(dirname: str) -> bool:
    return dirname in DEFAULT_PRUNABLE_DIRS
