"""migrascope match command - list entities changed by migrations."""

import json
from pathlib import Path

import click

from migrascope.core.errors import MigrascopeError
from migrascope.index.models import changes_to_dict
from migrascope.matcher import match_migrations


@click.command()
@click.argument(
    "migrations", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False)
)
@click.option("--indent", type=int, default=2, show_default=True, help="JSON indentation")
def match_command(migrations: tuple[str, ...], indent: int) -> None:
    """Print the tables and views each of MIGRATIONS alters or drops."""
    try:
        result = match_migrations(migrations)
    except MigrascopeError as e:
        raise click.ClickException(str(e)) from e

    click.echo(json.dumps(changes_to_dict(result), indent=indent))
