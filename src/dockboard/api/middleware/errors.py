"""
Error-handling middleware — maps dockboard errors to RFC 7807 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from dockboard.api.schemas.common import ErrorDetail, ProblemDetail
from dockboard.core.errors import DockboardError
from dockboard.core.logging import get_logger

logger = get_logger(__name__)

# ── Error code → HTTP status mapping ─────────────────────────────────────

ERROR_CODE_TO_STATUS: dict[str, int] = {
    "NOT_FOUND": 404,
    "VALIDATION_FAILED": 400,
    "UNAVAILABLE": 503,
    "LAUNCH_FAILED": 502,
    "STREAM_FAILED": 502,
    "INTERNAL": 500,
}

_TITLES: dict[int, str] = {
    400: "Bad Request",
    404: "Not Found",
    409: "Conflict",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


def status_for_error(exc: DockboardError) -> int:
    """Resolve an error to an HTTP status; Engine errors keep the Engine's status."""
    return ERROR_CODE_TO_STATUS.get(exc.code, exc.status_code)


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    code: str = "INTERNAL",
    errors: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance,
        code=code,
    )
    if errors:
        body.errors = [ErrorDetail(**e) for e in errors]
    return JSONResponse(
        status_code=status,
        content=body.model_dump(),
        media_type="application/problem+json",
    )


async def dockboard_error_handler(request: Request, exc: DockboardError) -> JSONResponse:
    """Render any :class:`DockboardError` raised by a route."""
    status = status_for_error(exc)
    if status >= 500:
        logger.warning("request_failed", path=request.url.path, **exc.to_dict())
    return problem_response(
        status=status,
        title=_TITLES.get(status, "Error"),
        detail=exc.message,
        instance=str(request.url),
        code=exc.code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — returns 500 with ProblemDetail."""
    logger.exception("unhandled_exception", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url),
    )
