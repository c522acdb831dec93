"""Command-line interface for hourglass."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import typer

from . import commands
from .clock import Clock, SystemClock
from .config import Settings
from .errors import CommandSyntaxError, HourglassError
from .storage import Storage, open_storage

logger = logging.getLogger(__name__)

app = typer.Typer(help="hourglass is a tool for time tracking.")


@dataclass(slots=True)
class AppState:
    settings: Settings
    clock: Clock


@app.callback(no_args_is_help=True)
def main(
    ctx: typer.Context,
    sql: bool = typer.Option(False, "--sql", help="Use the SQLite backend (default)."),
    csv: bool = typer.Option(False, "--csv", help="Use the CSV backend."),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the activity store.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if sql and csv:
        raise typer.BadParameter("--sql and --csv are mutually exclusive")
    backend = "csv" if csv else ("sql" if sql else None)
    try:
        settings = Settings.from_options(backend=backend, path=db_path, log_statements=verbose)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    ctx.obj = AppState(settings=settings, clock=SystemClock())


def _run(ctx: typer.Context, command: Callable[[Clock, Storage], str]) -> None:
    state: AppState = ctx.obj
    try:
        db = open_storage(state.settings)
        db.migrate()
        output = command(state.clock, db)
    except CommandSyntaxError as exc:
        typer.echo(str(exc), err=True)
        typer.echo(ctx.get_help(), err=True)
        raise typer.Exit(code=1)
    except (HourglassError, OSError, sqlite3.Error) as exc:
        logger.debug("Command %s failed", ctx.info_name, exc_info=True)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(output)


@app.command()
def start(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the activity."),
    project: str = typer.Argument("", help="Project the activity belongs to."),
    tags: Optional[list[str]] = typer.Argument(None, help="Tags, one per argument."),
) -> None:
    """Start a new activity."""
    _run(ctx, lambda clock, db: commands.start(clock, db, name, project, tags or []))


@app.command()
def stop(ctx: typer.Context) -> None:
    """Stop all running activities."""
    _run(ctx, commands.stop)


@app.command("list")
def list_(
    ctx: typer.Context,
    mode: str = typer.Argument("day", help="One of: day, week, all."),
) -> None:
    """List activities for today, this week or all time."""
    _run(ctx, lambda clock, db: commands.list_activities(clock, db, mode))


@app.command()
def status(ctx: typer.Context) -> None:
    """Show today's activities and project totals."""
    _run(ctx, commands.status)


@app.command()
def edit(
    ctx: typer.Context,
    activity_id: str = typer.Argument(..., metavar="ID"),
    field: str = typer.Argument(..., help="One of: name, project, tags, start, end."),
    values: Optional[list[str]] = typer.Argument(None, help="New value(s) for the field."),
) -> None:
    """Edit one field of an activity.

    Each tag is a separate argument. Dates are YYYY-MM-DD HH:MM, optionally
    followed by a UTC offset such as +0200.
    """
    _run(
        ctx,
        lambda clock, db: commands.edit(
            clock, db, commands.parse_id(activity_id), field, values or []
        ),
    )


@app.command()
def restart(ctx: typer.Context, activity_id: str = typer.Argument(..., metavar="ID")) -> None:
    """Start a new activity with the same name, project and tags as another."""
    _run(ctx, lambda clock, db: commands.restart(clock, db, commands.parse_id(activity_id)))


@app.command()
def delete(ctx: typer.Context, activity_id: str = typer.Argument(..., metavar="ID")) -> None:
    """Delete an activity."""
    _run(ctx, lambda clock, db: commands.delete(clock, db, commands.parse_id(activity_id)))
