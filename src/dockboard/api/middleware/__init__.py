"""HTTP middleware and exception handlers for the dockboard API."""

from dockboard.api.middleware.errors import (
    dockboard_error_handler,
    problem_response,
    unhandled_exception_handler,
)
from dockboard.api.middleware.request_id import RequestIDMiddleware
from dockboard.api.middleware.timing import TimingMiddleware

__all__ = [
    "RequestIDMiddleware",
    "TimingMiddleware",
    "dockboard_error_handler",
    "problem_response",
    "unhandled_exception_handler",
]
