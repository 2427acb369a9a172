"""Gitignore-aware recursive directory walker with depth control."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import structlog

from codeatlas.index.ignore import IgnoreChecker

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class WalkEntry:
    """One walked path. ``relative_path`` is slash-separated and root-relative."""

    path: Path
    relative_path: str
    is_directory: bool
    depth: int


def _is_env_file(name: str) -> bool:
    return name == ".env" or name.startswith(".env.")


def _skip_hidden(name: str, is_dir: bool) -> bool:
    # .env files are indexable text artifacts; other dot-entries are not
    if not name.startswith("."):
        return False
    return is_dir or not _is_env_file(name)


def walk(
    root_dir: Path,
    *,
    target_path: str | None = None,
    depth_limit: int = 0,
) -> list[WalkEntry]:
    """Walk ``root_dir`` (or ``target_path`` inside it) honoring ignore rules.

    Args:
        root_dir: Project root; relative paths are computed against it.
        target_path: Optional subdirectory (relative to root) to start from.
        depth_limit: Maximum depth to descend; 0 means unlimited.

    Returns:
        Entries in traversal order, sorted by name within each directory.
        A missing start directory yields an empty list.
    """
    root = root_dir.resolve()
    start = (root / target_path).resolve() if target_path else root
    if not start.is_dir():
        return []

    checker = IgnoreChecker(root)
    results: list[WalkEntry] = []
    _walk_dir(start, root, checker, 0, depth_limit, results)
    return results


def _walk_dir(
    directory: Path,
    root: Path,
    checker: IgnoreChecker,
    depth: int,
    depth_limit: int,
    results: list[WalkEntry],
) -> None:
    if depth_limit > 0 and depth > depth_limit:
        return

    try:
        with os.scandir(directory) as it:
            children = sorted(it, key=lambda e: e.name)
    except OSError:
        log.debug("walker.unreadable_dir", path=str(directory))
        return

    for child in children:
        try:
            is_dir = child.is_dir(follow_symlinks=False)
        except OSError:
            continue
        name = child.name
        if is_dir and checker.should_prune_dir(name):
            continue
        if _skip_hidden(name, is_dir):
            continue

        full_path = Path(child.path)
        rel_path = full_path.relative_to(root).as_posix()
        if checker.is_excluded_rel(rel_path):
            continue

        results.append(WalkEntry(full_path, rel_path, is_dir, depth))
        if is_dir:
            _walk_dir(full_path, root, checker, depth + 1, depth_limit, results)


def collect_files(root_dir: Path) -> list[WalkEntry]:
    """All non-directory entries under the root."""
    return [entry for entry in walk(root_dir) if not entry.is_directory]
