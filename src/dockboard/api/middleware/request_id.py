"""Request-ID middleware — injects ``X-Request-ID`` on every request.

The id is also bound into the structlog context for the duration of the
request, so every log line a handler emits carries ``request_id``.

Tags:
    dockboard, api, middleware, request-id, correlation
"""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from dockboard.core.logging import LogContext


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request/response cycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        async with LogContext(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
