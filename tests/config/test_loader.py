"""Tests for config/loader.py module.

Covers:
- _load_yaml() function
- _deep_merge() function
- load_config() precedence: defaults < global yaml < repo yaml < env < kwargs
"""

from __future__ import annotations

from pathlib import Path

import pytest

from codeatlas.config import loader
from codeatlas.config.loader import _deep_merge, _load_yaml, load_config
from codeatlas.core.errors import ConfigError


@pytest.fixture(autouse=True)
def no_global_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point the global config at a path that does not exist."""
    monkeypatch.setattr(loader, "GLOBAL_CONFIG_PATH", tmp_path / "missing-global.yaml")


def _write_repo_config(root: Path, text: str) -> None:
    data_dir = root / ".codeatlas"
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "config.yaml").write_text(text)


class TestLoadYaml:
    """Tests for _load_yaml function."""

    def test_returns_empty_dict_for_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_loads_valid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("search:\n  default_top_k: 7\n")

        assert _load_yaml(yaml_file) == {"search": {"default_top_k": 7}}

    def test_returns_empty_for_yaml_null(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "null.yaml"
        yaml_file.write_text("null\n")

        assert _load_yaml(yaml_file) == {}

    def test_raises_config_error_for_invalid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("logging:\n  level:\n    - invalid: [unclosed")

        with pytest.raises(ConfigError):
            _load_yaml(yaml_file)

    def test_raises_config_error_for_non_mapping(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            _load_yaml(yaml_file)


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_override_wins(self) -> None:
        assert _deep_merge({"a": 1}, {"a": 2}) == {"a": 2}

    def test_nested_dicts_merge(self) -> None:
        base = {"search": {"default_top_k": 5, "text_max_chars": 2000}}
        override = {"search": {"default_top_k": 9}}

        assert _deep_merge(base, override) == {
            "search": {"default_top_k": 9, "text_max_chars": 2000}
        }

    def test_does_not_mutate_base(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}


class TestLoadConfig:
    """Tests for load_config precedence and validation."""

    def test_defaults_without_files(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)

        assert config.embedding.backend == "ollama"
        assert config.embedding.batch_size == 8
        assert config.search.file_semantic_weight == pytest.approx(0.72)
        assert config.navigator.max_files_per_leaf == 20
        assert config.tracker.debounce_ms == 700
        assert config.restore.max_points == 100

    def test_repo_yaml_applies(self, tmp_path: Path) -> None:
        _write_repo_config(tmp_path, "navigator:\n  max_depth: 5\n")

        assert load_config(tmp_path).navigator.max_depth == 5

    def test_env_overrides_repo_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_repo_config(tmp_path, "search:\n  default_top_k: 3\n")
        monkeypatch.setenv("CODEATLAS__SEARCH__DEFAULT_TOP_K", "11")

        assert load_config(tmp_path).search.default_top_k == 11

    def test_kwargs_override_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEATLAS__TRACKER__ENABLED", "true")

        config = load_config(tmp_path, tracker={"enabled": False})

        assert config.tracker.enabled is False

    def test_global_yaml_below_repo_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        global_file = tmp_path / "global.yaml"
        global_file.write_text("navigator:\n  max_depth: 2\n  max_clusters: 4\n")
        monkeypatch.setattr(loader, "GLOBAL_CONFIG_PATH", global_file)
        _write_repo_config(tmp_path, "navigator:\n  max_depth: 6\n")

        config = load_config(tmp_path)

        assert config.navigator.max_depth == 6
        assert config.navigator.max_clusters == 4

    def test_invalid_value_raises_config_error(self, tmp_path: Path) -> None:
        _write_repo_config(tmp_path, "search:\n  default_top_k: 0\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)
        assert "default_top_k" in exc_info.value.message
