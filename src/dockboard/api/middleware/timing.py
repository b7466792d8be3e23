"""Timing middleware — ``X-Process-Time-Ms`` header and slow-request log.

Engine calls sit behind most endpoints, so a slow daemon shows up here
first. Event streams are left out of the slow log: for them the figure is
time to first byte, and the stream itself lives as long as the operation.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from dockboard.core.logging import get_logger

logger = get_logger(__name__)


def is_event_stream(response: Response) -> bool:
    return response.headers.get("content-type", "").startswith("text/event-stream")


class TimingMiddleware(BaseHTTPMiddleware):
    """Expose processing time and log requests slower than ``slow_ms``."""

    def __init__(self, app: ASGIApp, slow_ms: float = 1000.0) -> None:
        super().__init__(app)
        self.slow_ms = slow_ms

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Process-Time-Ms"] = str(elapsed_ms)

        if elapsed_ms >= self.slow_ms and not is_event_stream(response):
            logger.warning(
                "slow_request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
            )
        return response
