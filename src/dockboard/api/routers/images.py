"""
Images router — list/remove images and tracked registry pulls.

Endpoints:
    GET    /images                            Local images
    POST   /images/pull                       Start a pull → 202 ``{operationId}``
    GET    /images/pull/{operation_id}        Poll a pull (404 once reaped)
    POST   /images/pull/{operation_id}/cancel Cancel a pull
    DELETE /images/{image_id}                 Remove an image

Pull identifiers embed the image reference, so they may contain ``/``.

Tags:
    dockboard, api, images, pull

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from dockboard.api.deps import Engine, Tracker
from dockboard.api.routers.operations import cancel_operation, get_operation
from dockboard.api.schemas.common import ActionResponse
from dockboard.api.schemas.operations import CancelResponse, OperationStarted, OperationStatusSchema
from dockboard.runtime.profiles import image_summary

router = APIRouter()


class PullRequest(BaseModel):
    image: str = Field(min_length=1, description="Image reference, e.g. 'nginx:latest'")


@router.get("/images")
async def list_images(engine: Engine) -> dict[str, Any]:
    images = [image_summary(i) for i in await engine.list_images()]
    return {"images": images, "count": len(images)}


@router.post(
    "/images/pull",
    response_model=OperationStarted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_pull(body: PullRequest, tracker: Tracker) -> OperationStarted:
    started = tracker.start_pull(body.image)
    return OperationStarted(operation_id=started.id, phase=started.phase.value)


@router.get("/images/pull/{operation_id:path}", response_model=OperationStatusSchema)
async def get_pull(operation_id: str, tracker: Tracker) -> OperationStatusSchema:
    return await get_operation(operation_id, tracker)


@router.post("/images/pull/{operation_id:path}/cancel", response_model=CancelResponse)
async def cancel_pull(operation_id: str, tracker: Tracker) -> CancelResponse:
    return await cancel_operation(operation_id, tracker)


@router.delete("/images/{image_id:path}", response_model=ActionResponse)
async def delete_image(image_id: str, engine: Engine) -> ActionResponse:
    await engine.remove_image(image_id)
    return ActionResponse(message=f"Image {image_id} deleted successfully")
