"""
Compose router — tracked ``docker compose --profile <p> up|down``.

Endpoints:
    POST /compose/{profile}/{action}            Start → 202 ``{operationId}``
    GET  /compose/{profile}/{action}/progress   Start and stream it as SSE

The ``progress`` endpoint is what the dashboard's compose dialog opens with
an ``EventSource``: it starts a fresh run (or, with ``?operation_id=``,
attaches to one already started by ``POST``) and relays its events.
Without ``operation_id`` the GET has a side effect: it starts a run.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from fastapi.responses import StreamingResponse

from dockboard.api.deps import Tracker
from dockboard.api.routers.operations import event_stream
from dockboard.api.schemas.operations import OperationStarted
from dockboard.core.errors import OperationNotFound, ValidationFailed

router = APIRouter(prefix="/compose")


@router.post(
    "/{profile}/{action}",
    response_model=OperationStarted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_compose(profile: str, action: str, tracker: Tracker) -> OperationStarted:
    started = tracker.start_compose(profile, action)
    return OperationStarted(operation_id=started.id, phase=started.phase.value)


@router.get("/{profile}/{action}/progress")
async def compose_progress(
    profile: str,
    action: str,
    tracker: Tracker,
    operation_id: str | None = Query(None, description="Attach to an already started run"),
) -> StreamingResponse:
    """Stream a compose run as server-sent events.

    Not a safe, read-only GET: without ``operation_id`` every request
    starts a new ``docker compose`` run. Clients that must not trigger a
    run should ``POST`` first and pass the returned ``operation_id``.
    """
    if operation_id is None:
        operation_id = tracker.start_compose(profile, action).id
    else:
        current = tracker.status(operation_id)
        if current is None:
            raise OperationNotFound(operation_id)
        if current.subject != profile or current.action != action:
            raise ValidationFailed(
                f"Operation '{operation_id}' is not a '{profile} {action}' run"
            )
    return event_stream(tracker, operation_id)
