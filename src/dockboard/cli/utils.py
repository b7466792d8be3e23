"""
CLI utility helpers: consoles, settings and outcome reporting.
"""

from __future__ import annotations

from rich.console import Console

from dockboard.core.logging import configure_logging
from dockboard.core.settings import DockboardSettings
from dockboard.tracker.models import OperationPhase, OperationStatus

console = Console()
err_console = Console(stderr=True)


def load_settings(project_root: str | None = None) -> DockboardSettings:
    """Settings for a CLI run; logs go to stderr-friendly console output."""
    overrides = {"project_root": project_root} if project_root else {}
    settings = DockboardSettings(**overrides)
    configure_logging(level="WARNING", json_format=False)
    return settings


def report_outcome(status: OperationStatus | None) -> int:
    """Print the final line for an operation and return the exit code."""
    if status is None:
        err_console.print("[bold red]Error[/bold red]: operation record disappeared")
        return 1
    if status.phase == OperationPhase.COMPLETED:
        console.print(f"[bold green]✓[/bold green] {status.subject}: {status.detail or 'completed'}")
        return 0
    if status.phase == OperationPhase.CANCELLED:
        err_console.print(f"[magenta]Cancelled[/magenta]: {status.subject}")
        return 130
    err_console.print(f"[bold red]Error[/bold red] ({status.subject}): {status.error or status.detail}")
    return 1
