"""
Root Typer application for the dockboard CLI.

Commands::

    dockboard serve                    REST API + SSE (uvicorn)
    dockboard pull IMAGE               tracked image pull with progress bar
    dockboard compose PROFILE ACTION   tracked compose up/down with live output
    dockboard profiles                 list configured compose profiles
"""

from __future__ import annotations

import typer
from typer import Typer

from dockboard.cli.operations import compose, pull
from dockboard.cli.serve import serve
from dockboard.cli.utils import console
from dockboard.core.settings import DockboardSettings

app = Typer(
    name="dockboard",
    help="dockboard — Docker dashboard with tracked pulls and compose runs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from dockboard import __version__

        typer.echo(f"dockboard {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """dockboard CLI — serve the dashboard API, pull images, run compose profiles."""


@app.command("profiles")
def profiles() -> None:
    """List configured compose profiles and their container keywords."""
    settings = DockboardSettings()
    for name in settings.profiles:
        keywords = ", ".join(settings.profile_keywords.get(name, []))
        console.print(f"[bold]{name}[/bold]  [dim]{keywords}[/dim]")


app.command("serve")(serve)
app.command("pull")(pull)
app.command("compose")(compose)
