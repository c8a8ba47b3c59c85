"""migrascope index command - list entity references in source files."""

from pathlib import Path
from typing import TextIO

import click

from migrascope.config import load_config
from migrascope.core.errors import MigrascopeError
from migrascope.core.logging import configure_logging, set_run_id
from migrascope.index.files import index_files, write_jsonl


@click.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option(
    "--root",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository root. Record paths are relative to it and .migrascope.yaml is read from it.",
)
@click.option(
    "--output",
    "-o",
    type=click.File("w"),
    default="-",
    help="Write JSON lines here instead of stdout.",
)
@click.pass_context
def index_command(
    ctx: click.Context, files: tuple[Path, ...], root: Path, output: TextIO
) -> None:
    """Index FILES and print one JSON record per entity reference."""
    repo_root = root.resolve()
    try:
        config = load_config(repo_root)
        if not ctx.obj.get("verbose"):
            configure_logging(config=config.logging)
        set_run_id()
        records = index_files(config, repo_root, [f.resolve() for f in files])
        count = write_jsonl(records, output)
    except MigrascopeError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Indexed {count} references in {len(files)} files", err=True)
