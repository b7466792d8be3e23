"""
Common API schemas — RFC 7807 errors and small shared envelopes.

Every non-2xx response is a :class:`ProblemDetail`. Success bodies are
plain JSON objects shaped like the dashboard client expects
(``{"containers": [...], "count": n}``, ``{"success": true, "message": ...}``).

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ── RFC 7807 Problem Detail ─────────────────────────────────────────────


class ErrorDetail(BaseModel):
    """Structured error detail for field-level or nested errors."""

    code: str = Field(description="Machine-readable error code (e.g., 'REQUIRED', 'INVALID_FORMAT')")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Error Codes:
        - ``NOT_FOUND`` (404): container, image, volume, file or operation missing
        - ``VALIDATION_FAILED`` (400): unknown profile/action, bad IP, bad YAML
        - ``UNAVAILABLE`` (503): Docker Engine unreachable
        - ``RUNTIME_ERROR`` (Engine status): Engine refused the request
        - ``INTERNAL`` (500): unexpected server error

    Example:
        {
            "type": "about:blank",
            "title": "Not Found",
            "status": 404,
            "detail": "Operation 'nginx:latest-1718000000000000000' not found",
            "instance": "/api/images/pull/nginx:latest-1718000000000000000",
            "code": "NOT_FOUND",
            "errors": []
        }
    """

    type: str = Field(default="about:blank", description="Error type URI (usually 'about:blank')")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code (e.g., 400, 404, 500)")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")
    code: str = Field(default="INTERNAL", description="Machine-readable error code")
    errors: list[ErrorDetail] = Field(
        default_factory=list,
        description="List of field-level or nested error details",
    )


# ── Success envelopes ────────────────────────────────────────────────────


class ActionResponse(BaseModel):
    """Outcome of a side-effecting call (container action, delete, config write)."""

    success: bool = True
    message: str = ""
