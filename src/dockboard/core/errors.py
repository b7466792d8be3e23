"""
Structured error types for dockboard.

A small typed hierarchy with machine-readable codes. The API layer maps
``code`` to an HTTP status and renders an RFC 7807 ``ProblemDetail``; the
tracker records launch and stream failures into an operation's ``error``
field instead of raising them to callers.

Architecture:
    ::

        DockboardError (code=INTERNAL)
          ├── NotFoundError          NOT_FOUND          404
          │     └── OperationNotFound
          ├── ValidationFailed       VALIDATION_FAILED  400
          ├── LaunchFailure          LAUNCH_FAILED      (recorded, not raised)
          ├── StreamFailure          STREAM_FAILED      (recorded, not raised)
          ├── RuntimeUnavailable     UNAVAILABLE        503
          └── RuntimeRequestError    RUNTIME_ERROR      status from Engine

        InvalidTransitionError(ValueError)  illegal phase transition

Guardrails:
    ❌ DON'T: raise ``NotFoundError`` for an unknown operation id from the
       tracker. Unknown ids are a normal outcome (``None`` / ``NOT_FOUND``).
    ✅ DO: raise it at the HTTP edge where a 404 is the answer.

    ❌ DON'T: retry ``LaunchFailure`` / ``StreamFailure`` automatically.
    ✅ DO: let the caller start a fresh operation.

Tags:
    error-handling, exception-hierarchy, dockboard
"""

from __future__ import annotations

from typing import Any


class DockboardError(Exception):
    """Base exception for all dockboard errors.

    Subclasses set ``default_code``; ``status_code`` is only meaningful at
    the HTTP boundary.
    """

    default_code: str = "INTERNAL"
    default_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status
        self.details = details or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r})"


class NotFoundError(DockboardError):
    """A container, image, volume, file or operation does not exist."""

    default_code = "NOT_FOUND"
    default_status = 404


class OperationNotFound(NotFoundError):
    """Unknown or already reaped operation identifier."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(
            f"Operation '{operation_id}' not found",
            details={"operation_id": operation_id},
        )
        self.operation_id = operation_id


class ValidationFailed(DockboardError):
    """Caller input was rejected (unknown profile, bad action, bad IP)."""

    default_code = "VALIDATION_FAILED"
    default_status = 400


class LaunchFailure(DockboardError):
    """The external operation could not even start."""

    default_code = "LAUNCH_FAILED"


class StreamFailure(DockboardError):
    """The external operation failed after its stream opened."""

    default_code = "STREAM_FAILED"


class RuntimeUnavailable(DockboardError):
    """The container runtime could not be reached."""

    default_code = "UNAVAILABLE"
    default_status = 503


class RuntimeRequestError(DockboardError):
    """The container runtime answered with an error status."""

    default_code = "RUNTIME_ERROR"


class InvalidTransitionError(ValueError):
    """Raised when an illegal phase transition is attempted.

    Transition validation is deliberately strict. Terminal phases have no
    outgoing transitions.
    """

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid OperationPhase transition: {current} → {target}")


__all__ = [
    "DockboardError",
    "NotFoundError",
    "OperationNotFound",
    "ValidationFailed",
    "LaunchFailure",
    "StreamFailure",
    "RuntimeUnavailable",
    "RuntimeRequestError",
    "InvalidTransitionError",
]
