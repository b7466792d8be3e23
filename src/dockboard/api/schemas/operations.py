"""
Operation schemas — what pollers, starters and cancellers receive.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dockboard.tracker.cancellation import CancelOutcome, CancelResult
from dockboard.tracker.models import OperationStatus


class OperationStatusSchema(BaseModel):
    """Point-in-time snapshot of a tracked operation.

    UI Hints:
        Poll every 300 ms until ``phase`` is ``completed``, ``error`` or
        ``cancelled``. Show ``percent`` as a progress bar and ``detail``
        as the status line.
    """

    id: str
    kind: str
    subject: str
    action: str | None = None
    phase: str = Field(description="starting | running | completed | error | cancelled")
    percent: int = Field(ge=0, le=100)
    detail: str = ""
    log: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None
    created_at: str
    updated_at: str
    finished_at: str | None = None

    @classmethod
    def from_status(cls, status: OperationStatus) -> OperationStatusSchema:
        return cls(**status.to_dict())


class OperationStarted(BaseModel):
    """Returned by every endpoint that starts an operation (HTTP 202)."""

    model_config = ConfigDict(populate_by_name=True)

    operation_id: str = Field(serialization_alias="operationId")
    phase: str = "starting"


class CancelResponse(BaseModel):
    accepted: bool
    outcome: str
    message: str
    status: OperationStatusSchema | None = None

    @classmethod
    def from_result(cls, result: CancelResult) -> CancelResponse:
        return cls(
            accepted=result.outcome != CancelOutcome.NOT_FOUND,
            outcome=result.outcome.value,
            message=result.message,
            status=OperationStatusSchema.from_status(result.status) if result.status else None,
        )


class OperationList(BaseModel):
    operations: list[OperationStatusSchema]
    count: int
