"""CLI module for CodeAtlas."""

from codeatlas.cli.main import cli

__all__ = ["cli"]
