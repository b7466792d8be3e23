"""
FastAPI dependency injection — process singletons held on ``app.state``.

Usage in routers::

    from dockboard.api.deps import Engine, Settings, Tracker

    @router.get("/images")
    async def list_images(engine: Engine):
        ...

Manifesto:
    Dependency injection keeps routers thin. The settings, the Engine
    client and the operation tracker are created once per process; routes
    only ever receive them.

Tags:
    dockboard, api, dependency-injection, singletons

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from dockboard.core.errors import RuntimeUnavailable
from dockboard.core.settings import DockboardSettings, get_settings
from dockboard.runtime.client import EngineClient
from dockboard.tracker.service import OperationTracker

# ── Runtime singletons (created in the app lifespan) ─────────────────────


def get_engine(request: Request) -> EngineClient:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise RuntimeUnavailable("Container runtime client is not initialised")
    return engine


def get_tracker(request: Request) -> OperationTracker:
    tracker = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise RuntimeUnavailable("Operation tracker is not initialised")
    return tracker


# ── Convenience type aliases ─────────────────────────────────────────────

Settings = Annotated[DockboardSettings, Depends(get_settings)]
Engine = Annotated[EngineClient, Depends(get_engine)]
Tracker = Annotated[OperationTracker, Depends(get_tracker)]

__all__ = ["Engine", "Settings", "Tracker", "get_engine", "get_settings", "get_tracker"]
