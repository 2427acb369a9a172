"""codeatlas serve command - run the MCP server over stdio."""

from pathlib import Path

import click


@click.command()
@click.argument(
    "root",
    default=None,
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("-v", "--verbose", is_flag=True, help="Log DEBUG to stderr as well as the log file")
@click.pass_context
def serve_command(ctx: click.Context, root: Path | None, verbose: bool) -> None:
    """Serve ROOT (default: current directory) to an MCP client over stdio.

    Logs go to stderr and ROOT/.codeatlas/mcp-server.log; stdout is reserved
    for the protocol.
    """
    from codeatlas.mcp.server import run_server

    verbose = verbose or bool((ctx.obj or {}).get("verbose"))
    run_server((root or Path.cwd()).resolve(), verbose=verbose)
