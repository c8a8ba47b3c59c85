"""Migrascope CLI - migrascope command."""

import click

from migrascope.cli.index import index_command
from migrascope.cli.match import match_command
from migrascope.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="migrascope")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Migrascope - find the code a schema migration will break."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(index_command, name="index")
cli.add_command(match_command, name="match")


if __name__ == "__main__":
    cli()
