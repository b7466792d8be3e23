"""
Operations router — poll, cancel and stream any tracked operation.

Endpoints:
    GET  /operations                 All records still held by the registry
    GET  /operations/{id}            Snapshot (404 when unknown or reaped)
    POST /operations/{id}/cancel     Cancel (404 when unknown)
    GET  /operations/{id}/events     Server-Sent Events until terminal

SSE frames are ``data: {json}`` lines carrying an ``OperationEvent``
(``type`` ∈ start | output | error | complete). A ``: heartbeat`` comment
is sent every 30 s of silence. The stream closes after the terminal event.

Manifesto:
    Polling and pushing are two transports over one status machine. The
    event stream starts from the registry snapshot, so a client that
    connects late (or after the end) still converges on the same state a
    poller would see.

Tags:
    dockboard, api, operations, sse, streaming

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from dockboard.api.deps import Tracker
from dockboard.api.schemas.operations import CancelResponse, OperationList, OperationStatusSchema
from dockboard.core.errors import OperationNotFound
from dockboard.core.logging import get_logger
from dockboard.tracker.cancellation import CancelOutcome
from dockboard.tracker.service import OperationTracker

logger = get_logger(__name__)

router = APIRouter(prefix="/operations")

HEARTBEAT_SECONDS = 30.0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ------------------------------------------------------------------ #
# Shared handlers (also mounted under /images/pull)
# ------------------------------------------------------------------ #


async def get_operation(operation_id: str, tracker: OperationTracker) -> OperationStatusSchema:
    current = tracker.status(operation_id)
    if current is None:
        raise OperationNotFound(operation_id)
    return OperationStatusSchema.from_status(current)


async def cancel_operation(operation_id: str, tracker: OperationTracker) -> CancelResponse:
    result = tracker.cancel(operation_id)
    if result.outcome == CancelOutcome.NOT_FOUND:
        raise OperationNotFound(operation_id)
    return CancelResponse.from_result(result)


def event_stream(tracker: OperationTracker, operation_id: str) -> StreamingResponse:
    """SSE response relaying one operation's events."""

    async def generate() -> AsyncIterator[str]:
        async for event in tracker.events(operation_id, heartbeat=HEARTBEAT_SECONDS):
            if event is None:
                yield ": heartbeat\n\n"
                continue
            yield f"data: {json.dumps(event.to_dict(), default=str)}\n\n"
        logger.debug("sse_stream_closed", operation_id=operation_id)

    return StreamingResponse(generate(), media_type="text/event-stream", headers=SSE_HEADERS)


# ------------------------------------------------------------------ #
# Routes
# ------------------------------------------------------------------ #


@router.get("", response_model=OperationList)
async def list_operations(tracker: Tracker) -> OperationList:
    operations = [OperationStatusSchema.from_status(s) for s in tracker.list()]
    return OperationList(operations=operations, count=len(operations))


# Identifiers may contain "/" (image references), so the suffixed routes
# are declared before the bare one.


@router.post("/{operation_id:path}/cancel", response_model=CancelResponse)
async def cancel(operation_id: str, tracker: Tracker) -> CancelResponse:
    return await cancel_operation(operation_id, tracker)


@router.get("/{operation_id:path}/events")
async def stream_operation(operation_id: str, tracker: Tracker) -> StreamingResponse:
    if tracker.status(operation_id) is None:
        raise OperationNotFound(operation_id)
    return event_stream(tracker, operation_id)


@router.get("/{operation_id:path}", response_model=OperationStatusSchema)
async def read_operation(operation_id: str, tracker: Tracker) -> OperationStatusSchema:
    return await get_operation(operation_id, tracker)
