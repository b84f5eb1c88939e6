"""Command-line interface for the focus flow tools."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer

from .backend import SqliteBackend
from .config import DashboardSettings
from .paths import get_db_path
from .server_runner import run_dashboard

app = typer.Typer(help="Focus timelines and app transition graphs from activity data.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _parse_day(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise typer.BadParameter("Expected a date in YYYY-MM-DD format.") from exc


@app.command()
def timeline(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to show. Defaults to today.",
    ),
    session_id: Optional[int] = typer.Option(
        None,
        "--session",
        help="Show a single session instead of a whole day.",
    ),
    vertical: bool = typer.Option(
        False,
        "--vertical",
        help="Lay the grid out column by column.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the activity SQLite database.",
    ),
) -> None:
    """Print the chronological focus intervals."""
    from .reporting import FlowPrinter
    from .views import TimelineFlowView

    day = _parse_day(date)
    view = TimelineFlowView(SqliteBackend(db_path or get_db_path()))
    graph = asyncio.run(
        view.load(
            day=day,
            session_id=session_id,
            orientation="vertical" if vertical else "horizontal",
        )
    )
    if view.error:
        typer.echo(f"Failed to load timeline: {view.error}", err=True)
        raise typer.Exit(code=1)
    title = f"session {session_id}" if session_id is not None else day.isoformat()
    FlowPrinter().print_timeline(graph, title)


@app.command()
def apps(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    session: bool = typer.Option(
        False,
        "--session",
        help="Summarize the most recent session instead of a day.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the activity SQLite database.",
    ),
) -> None:
    """Print which applications transitioned to which."""
    from .reporting import FlowPrinter
    from .views import AppFlowView

    day = _parse_day(date)
    view = AppFlowView(SqliteBackend(db_path or get_db_path()))
    graph = asyncio.run(view.load(day=day, session=session))
    if view.error:
        typer.echo(f"Failed to load app flow: {view.error}", err=True)
        raise typer.Exit(code=1)
    title = "the latest session" if session else day.isoformat()
    FlowPrinter().print_app_graph(graph, view.stats, title)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the activity SQLite database."
    ),
    orientation: str = typer.Option(
        "horizontal",
        "--orientation",
        help="Default timeline grid order: horizontal or vertical.",
    ),
    max_nodes_per_row: int = typer.Option(
        4,
        "--max-nodes-per-row",
        min=1,
        help="Apps per row in the transition graph.",
    ),
    realtime: bool = typer.Option(
        True,
        "--realtime/--no-realtime",
        help="Refresh the app graph when transition notifications arrive.",
    ),
) -> None:
    """Serve the flow graphs and icons over HTTP."""
    try:
        settings = DashboardSettings.from_options(
            orientation=orientation,
            max_nodes_per_row=max_nodes_per_row,
            realtime=realtime,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--orientation") from exc
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
    )
