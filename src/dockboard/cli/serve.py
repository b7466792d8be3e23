"""
CLI: ``dockboard serve`` — start the API server.
"""

from __future__ import annotations

import typer

from dockboard.cli.utils import console
from dockboard.core.logging import configure_logging
from dockboard.core.settings import get_settings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Start the dockboard REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    level = (log_level or settings.log_level).upper()
    configure_logging(level=level, json_format=settings.json_logs)

    console.print(f"[bold green]Starting dockboard API[/bold green] on {host}:{port}")
    uvicorn.run(
        "dockboard.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=level.lower(),
    )
