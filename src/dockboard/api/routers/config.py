"""
Config router — edit the project's ``.env`` and mediamtx YAML.

Endpoints:
    GET /config/env        ``{"content": "..."}`` (empty when the file is missing)
    PUT /config/env        Replace the env file
    PUT /config/host-ip    Point HOST_IP / SSE_ALLOW_ORIGINS / BASE_URL / HOMEPAGE_URL at ``ip``
    GET /config/mediamtx   ``{"content": "..."}`` (404 when missing)
    PUT /config/mediamtx   Replace the YAML (400 when it does not parse)

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from dockboard.api.deps import Settings
from dockboard.api.schemas.common import ActionResponse
from dockboard.runtime import config_files

router = APIRouter(prefix="/config")


class FileContent(BaseModel):
    content: str = Field(description="Full file text")


class HostIpRequest(BaseModel):
    ip: str = Field(description="IPv4 address of this host")


@router.get("/env", response_model=FileContent)
async def read_env(settings: Settings) -> FileContent:
    return FileContent(content=config_files.read_env_file(settings))


@router.put("/env", response_model=ActionResponse)
async def write_env(body: FileContent, settings: Settings) -> ActionResponse:
    config_files.write_env_file(settings, body.content)
    return ActionResponse(message=".env file updated successfully")


@router.put("/host-ip", response_model=ActionResponse)
async def update_host_ip(body: HostIpRequest, settings: Settings) -> ActionResponse:
    config_files.update_host_ip(settings, body.ip)
    return ActionResponse(message=f"HOST_IP updated to {body.ip.strip()}")


@router.get("/mediamtx", response_model=FileContent)
async def read_mediamtx(settings: Settings) -> FileContent:
    return FileContent(content=config_files.read_mediamtx(settings))


@router.put("/mediamtx", response_model=ActionResponse)
async def write_mediamtx(body: FileContent, settings: Settings) -> ActionResponse:
    config_files.write_mediamtx(settings, body.content)
    return ActionResponse(message="mediamtx.yml updated successfully")
