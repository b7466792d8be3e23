"""
CLI: ``dockboard pull`` and ``dockboard compose`` — tracked operations
run in-process.

Both commands start an operation through :class:`OperationTracker`, follow
its events until the terminal one, and exit non-zero unless it completed.
Ctrl-C cancels the operation (``CANCELLED``, exit 130) instead of leaving
a pull or compose run behind.

Usage::

    dockboard pull nginx:latest
    dockboard compose app up
    dockboard compose stream down --project-root /srv/onprem
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import typer
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from dockboard.cli.utils import console, err_console, load_settings, report_outcome
from dockboard.core.errors import DockboardError
from dockboard.core.settings import DockboardSettings
from dockboard.runtime.client import EngineClient
from dockboard.tracker.events import EVENT_OUTPUT, OperationEvent
from dockboard.tracker.models import OperationStatus
from dockboard.tracker.service import OperationTracker

EventRenderer = Callable[[OperationEvent], None]


def build_tracker(settings: DockboardSettings) -> OperationTracker:
    return OperationTracker(settings, EngineClient(settings))


async def follow(
    tracker: OperationTracker,
    start: Callable[[OperationTracker], OperationStatus],
    render: EventRenderer,
) -> OperationStatus | None:
    """Start an operation, render its events, cancel it if we are cancelled."""
    started = start(tracker)
    try:
        async for event in tracker.events(started.id):
            if event is not None:
                render(event)
    except asyncio.CancelledError:
        tracker.cancel(started.id)
        await tracker.wait(started.id)
        raise
    return await tracker.wait(started.id)


async def _run(
    settings: DockboardSettings,
    start: Callable[[OperationTracker], OperationStatus],
    render: EventRenderer,
) -> OperationStatus | None:
    tracker = build_tracker(settings)
    try:
        return await follow(tracker, start, render)
    finally:
        await tracker.shutdown()
        if tracker.engine is not None:
            await tracker.engine.aclose()


def _execute(
    settings: DockboardSettings,
    start: Callable[[OperationTracker], OperationStatus],
    render: EventRenderer,
) -> None:
    try:
        final = asyncio.run(_run(settings, start, render))
    except KeyboardInterrupt:
        err_console.print("[magenta]Cancelled[/magenta]")
        raise typer.Exit(code=130) from None
    except DockboardError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({exc.code}): {exc.message}")
        raise typer.Exit(code=1) from exc
    code = report_outcome(final)
    if code:
        raise typer.Exit(code=code)


# ── Commands ─────────────────────────────────────────────────────────────


def pull(
    image: str = typer.Argument(..., help="Image reference, e.g. nginx:latest"),
) -> None:
    """Pull an image with a live progress bar."""
    settings = load_settings()

    with Progress(
        TextColumn("[bold blue]{task.fields[image]}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Starting", total=100, image=image)

        def render(event: OperationEvent) -> None:
            progress.update(
                task_id,
                completed=event.status.get("percent", 0),
                description=event.status.get("detail") or event.message,
            )

        _execute(settings, lambda t: t.start_pull(image), render)


def compose(
    profile: str = typer.Argument(..., help="Compose profile"),
    action: str = typer.Argument(..., help="up or down"),
    project_root: str | None = typer.Option(
        None, "--project-root", "-C", help="Directory holding the compose project"
    ),
) -> None:
    """Run ``docker compose --profile PROFILE up|down`` and stream its output."""
    settings = load_settings(project_root)

    def render(event: OperationEvent) -> None:
        if event.type == EVENT_OUTPUT and event.record is not None:
            console.print(event.message, markup=False, highlight=False)

    _execute(settings, lambda t: t.start_compose(profile, action), render)
