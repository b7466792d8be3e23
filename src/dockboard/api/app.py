"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers, and lifespan
events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root — middleware, routers,
    the Engine client and the operation tracker are wired here so the rest
    of the codebase never touches ``FastAPI`` directly.

Tags:
    dockboard, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dockboard import __version__
from dockboard.api.deps import get_settings
from dockboard.api.middleware.errors import dockboard_error_handler, unhandled_exception_handler
from dockboard.api.middleware.request_id import RequestIDMiddleware
from dockboard.api.middleware.timing import TimingMiddleware
from dockboard.api.routers.health import Probe, create_health_router
from dockboard.core.errors import DockboardError, RuntimeUnavailable
from dockboard.core.logging import get_logger
from dockboard.core.settings import DockboardSettings
from dockboard.runtime.client import EngineClient
from dockboard.tracker.service import OperationTracker

log = get_logger("dockboard.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — build the runtime singletons, tear them down."""
    settings: DockboardSettings = app.state.settings
    log.info("dockboard API starting", version=app.version, docker_host=settings.docker_host)

    owns_engine = app.state.engine is None
    if owns_engine:
        app.state.engine = EngineClient(settings)
    if app.state.tracker is None:
        app.state.tracker = OperationTracker(settings, app.state.engine)

    try:
        yield
    finally:
        await app.state.tracker.shutdown()
        if owns_engine:
            await app.state.engine.aclose()
            app.state.engine = None
        log.info("dockboard API shutting down")


def create_app(
    settings: DockboardSettings | None = None,
    *,
    tracker: OperationTracker | None = None,
    engine: EngineClient | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : DockboardSettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    tracker, engine :
        Pre-built collaborators (tests inject fakes). Missing ones are
        created in the lifespan.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    # Stash collaborators on app state for dependencies and the lifespan
    app.state.settings = settings
    app.state.engine = engine
    app.state.tracker = tracker

    # Override DI so endpoints use the provided settings
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(TimingMiddleware, slow_ms=settings.slow_request_ms)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(DockboardError, dockboard_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from dockboard.api.routers import compose, config, containers, images, operations, volumes

    async def _docker() -> dict[str, Any]:
        engine = app.state.engine
        if engine is None:
            raise RuntimeUnavailable("Container runtime client is not initialised")
        info = await engine.version()
        return {"version": info.get("Version"), "api_version": info.get("ApiVersion")}

    async def _tracker() -> dict[str, Any]:
        tracker = app.state.tracker
        if tracker is None:
            raise RuntimeUnavailable("Operation tracker is not running")
        return {"operations": len(tracker.registry), "active": tracker.launcher.active_count}

    # Health endpoints at root level (no prefix) for container healthchecks
    app.include_router(
        create_health_router(
            "dockboard",
            version=settings.api_version,
            probes=[Probe("docker", _docker), Probe("tracker", _tracker, required=False)],
        ),
        tags=["health"],
    )

    prefix = settings.api_prefix
    app.include_router(containers.router, prefix=prefix, tags=["containers"])
    app.include_router(images.router, prefix=prefix, tags=["images"])
    app.include_router(volumes.router, prefix=prefix, tags=["volumes"])
    app.include_router(compose.router, prefix=prefix, tags=["compose"])
    app.include_router(operations.router, prefix=prefix, tags=["operations"])
    app.include_router(config.router, prefix=prefix, tags=["config"])

    @app.get("/", tags=["meta"])
    async def root() -> dict[str, Any]:
        """Service banner."""
        return {
            "message": "dockboard API",
            "version": __version__,
            "profiles": list(settings.profiles),
        }

    return app
