"""
Volumes router.

Endpoints:
    GET    /volumes          All volumes
    GET    /volumes/{name}   One volume
    DELETE /volumes/{name}   Remove a volume

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from dockboard.api.deps import Engine
from dockboard.api.schemas.common import ActionResponse
from dockboard.runtime.profiles import volume_summary

router = APIRouter(prefix="/volumes")


@router.get("")
async def list_volumes(engine: Engine) -> dict[str, Any]:
    volumes = [volume_summary(v) for v in await engine.list_volumes()]
    return {"volumes": volumes, "count": len(volumes)}


@router.get("/{name}")
async def get_volume(name: str, engine: Engine) -> dict[str, Any]:
    return volume_summary(await engine.inspect_volume(name))


@router.delete("/{name}", response_model=ActionResponse)
async def delete_volume(name: str, engine: Engine) -> ActionResponse:
    await engine.remove_volume(name)
    return ActionResponse(message=f"Volume {name} deleted successfully")
