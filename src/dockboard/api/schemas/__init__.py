"""Pydantic request/response schemas for the dockboard API."""

from dockboard.api.schemas.common import ActionResponse, ErrorDetail, ProblemDetail
from dockboard.api.schemas.operations import (
    CancelResponse,
    OperationList,
    OperationStarted,
    OperationStatusSchema,
)

__all__ = [
    "ActionResponse",
    "CancelResponse",
    "ErrorDetail",
    "OperationList",
    "OperationStarted",
    "OperationStatusSchema",
    "ProblemDetail",
]
