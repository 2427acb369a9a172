"""Tests for the codeatlas CLI."""

from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from codeatlas.cli.main import cli


class TestCli:
    """CLI entry point tests."""

    def test_help(self) -> None:
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "serve" in result.output

    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_serve_root(self, tmp_path: Path) -> None:
        with patch("codeatlas.mcp.server.run_server") as run_server:
            result = CliRunner().invoke(cli, ["serve", str(tmp_path)])
        assert result.exit_code == 0, result.output
        run_server.assert_called_once_with(tmp_path.resolve(), verbose=False)

    def test_serve_verbose_from_group(self, tmp_path: Path) -> None:
        with patch("codeatlas.mcp.server.run_server") as run_server:
            result = CliRunner().invoke(cli, ["-v", "serve", str(tmp_path)])
        assert result.exit_code == 0, result.output
        run_server.assert_called_once_with(tmp_path.resolve(), verbose=True)

    def test_serve_defaults_to_cwd(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path) as cwd, patch(
            "codeatlas.mcp.server.run_server"
        ) as run_server:
            result = runner.invoke(cli, ["serve"])
        assert result.exit_code == 0, result.output
        run_server.assert_called_once_with(Path(cwd).resolve(), verbose=False)

    def test_serve_missing_root(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["serve", str(tmp_path / "missing")])
        assert result.exit_code != 0
