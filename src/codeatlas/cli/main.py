"""CodeAtlas CLI - codeatlas command."""

import click

from codeatlas.cli.serve import serve_command
from codeatlas.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="codeatlas")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """CodeAtlas - Semantic codebase navigator for AI coding agents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(serve_command, name="serve")


if __name__ == "__main__":
    cli()
