"""
Containers router — list, inspect, stats, logs and control actions.

Endpoints:
    GET  /profiles                       Allowed compose profiles
    GET  /containers?profile=            Project containers (optionally one profile)
    POST /containers/stats/aggregate     Summed stats for ``containerIds``
    GET  /containers/{id}                Inspect summary
    GET  /containers/{id}/stats          One-shot stats summary
    GET  /containers/{id}/logs?tail=100  Plain-text logs with timestamps
    POST /containers/{id}/{action}       start | stop | restart | remove

Tags:
    dockboard, api, containers

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from dockboard.api.deps import Engine, Settings
from dockboard.api.schemas.common import ActionResponse
from dockboard.core.errors import DockboardError, ValidationFailed
from dockboard.core.logging import get_logger
from dockboard.runtime.profiles import (
    container_details,
    container_summary,
    filter_by_profile,
    validate_profile,
)
from dockboard.runtime.stats import aggregate_stats, summarize_stats

logger = get_logger(__name__)

router = APIRouter()


class AggregateStatsRequest(BaseModel):
    container_ids: list[str] = Field(alias="containerIds")


@router.get("/profiles")
async def list_profiles(settings: Settings) -> dict[str, list[str]]:
    return {"profiles": list(settings.profiles)}


@router.get("/containers")
async def list_containers(
    engine: Engine,
    settings: Settings,
    profile: str | None = Query(None, description="Limit to one compose profile"),
) -> dict[str, Any]:
    if profile is not None:
        validate_profile(settings, profile)
    raw = await engine.list_containers(all=True)
    containers = [container_summary(c) for c in filter_by_profile(raw, settings, profile)]
    return {"containers": containers, "count": len(containers)}


@router.post("/containers/stats/aggregate")
async def aggregate_container_stats(body: AggregateStatsRequest, engine: Engine) -> dict[str, Any]:
    """Sum stats across containers; ones that fail to answer are skipped."""
    if not body.container_ids:
        raise ValidationFailed("containerIds must be a non-empty array")

    async def _one(container_id: str) -> dict[str, Any] | None:
        try:
            return summarize_stats(await engine.container_stats(container_id))
        except DockboardError as exc:
            logger.warning("container_stats_failed", container_id=container_id, error=exc.message)
            return None

    results = await asyncio.gather(*[_one(cid) for cid in body.container_ids])
    return aggregate_stats([r for r in results if r is not None])


@router.get("/containers/{container_id}")
async def get_container(container_id: str, engine: Engine) -> dict[str, Any]:
    return container_details(await engine.inspect_container(container_id))


@router.get("/containers/{container_id}/stats")
async def get_container_stats(container_id: str, engine: Engine) -> dict[str, Any]:
    return summarize_stats(await engine.container_stats(container_id))


@router.get("/containers/{container_id}/logs", response_class=PlainTextResponse)
async def get_container_logs(
    container_id: str,
    engine: Engine,
    tail: int = Query(100, ge=0, le=10000),
) -> PlainTextResponse:
    return PlainTextResponse(await engine.container_logs(container_id, tail=tail))


@router.post("/containers/{container_id}/{action}", response_model=ActionResponse)
async def container_action(container_id: str, action: str, engine: Engine) -> ActionResponse:
    await engine.container_action(container_id, action)
    return ActionResponse(message=f"Container {action} executed successfully")
