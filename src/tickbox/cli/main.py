# src/tickbox/cli/main.py

from __future__ import annotations

import logging
from pathlib import Path

import click
from click.shell_completion import get_completion_class

from ..config import get_settings
from ..logging_setup import level_from_verbosity, setup_logging
from .commands import get_state, handle_store_errors, show, step, task

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", count=True, help="Louder console logging (repeatable)")
@click.option("-q", "--quiet", is_flag=True, help="Only errors on the console")
@click.option(
    "-d",
    "--db",
    "dbfile",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Use this database file instead of the configured one",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, quiet: bool, dbfile: Path | None) -> None:
    """A personal task manager backed by a local SQLite file."""
    obj = ctx.ensure_object(dict)
    settings = obj.get("SETTINGS") or get_settings()
    if dbfile is not None:
        settings = settings.with_db_path(dbfile)
    obj["SETTINGS"] = settings

    setup_logging(
        log_dir=settings.data_dir if settings.log_to_file else None,
        console_level=level_from_verbosity(settings.log_level, verbose, quiet),
    )
    logger.debug("tickbox starting db=%s", settings.db_path)


@cli.group()
def database() -> None:
    """Manage the task database."""


@database.command("init")
@click.option("-f", "--force", is_flag=True, help="Drop existing tables first (destroys all data)")
@click.pass_context
@handle_store_errors
def database_init(ctx: click.Context, force: bool) -> None:
    """Create the schema and seed priorities and statuses."""
    state = get_state(ctx)
    if force:
        logger.warning("Forcing database initialization, existing data will be lost")
    state.task_store.initialize(destructive=force)
    click.echo(f"Database initialized at {state.settings.db_path}")


@cli.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]))
def completion(shell: str) -> None:
    """Print the shell completion script."""
    comp_cls = get_completion_class(shell)
    if comp_cls is None:
        raise click.ClickException(f"unsupported shell {shell}")
    click.echo(comp_cls(cli, {}, "tickbox", "_TICKBOX_COMPLETE").source())


cli.add_command(task)
cli.add_command(step)
cli.add_command(show)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
