"""Tests for core/excludes.py module."""

from __future__ import annotations

from codeatlas.core.excludes import (
    DATA_DIR_NAME,
    HARDCODED_DIRS,
    PRUNABLE_DIRS,
    TRACKER_IGNORE_PREFIXES,
    is_default_prunable,
    is_hardcoded_dir,
)


class TestExcludeSets:
    """Tests for the exclude constants."""

    def test_data_dir_is_hardcoded(self) -> None:
        assert DATA_DIR_NAME == ".codeatlas"
        assert DATA_DIR_NAME in HARDCODED_DIRS
        assert is_hardcoded_dir(".git")

    def test_prunable_is_superset_of_hardcoded(self) -> None:
        assert HARDCODED_DIRS <= PRUNABLE_DIRS

    def test_dependency_dirs_are_default_prunable(self) -> None:
        assert is_default_prunable("node_modules")
        assert is_default_prunable("__pycache__")
        assert not is_default_prunable("src")

    def test_all_lowercase(self) -> None:
        """All dir entries except OS noise are lowercase for consistent matching."""
        for entry in PRUNABLE_DIRS - {".DS_Store"}:
            assert entry == entry.lower()


class TestTrackerIgnorePrefixes:
    """Tests for TRACKER_IGNORE_PREFIXES."""

    def test_prefixes_end_with_slash(self) -> None:
        for prefix in TRACKER_IGNORE_PREFIXES:
            assert prefix.endswith("/")

    def test_contains_data_dir_and_vcs(self) -> None:
        assert ".codeatlas/" in TRACKER_IGNORE_PREFIXES
        assert ".git/" in TRACKER_IGNORE_PREFIXES
        assert "landing/.next/" in TRACKER_IGNORE_PREFIXES
