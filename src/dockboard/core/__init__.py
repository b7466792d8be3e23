"""
Core primitives shared by every dockboard layer: settings, logging, errors.

Tags:
    dockboard, core
"""

from dockboard.core.errors import (
    DockboardError,
    InvalidTransitionError,
    LaunchFailure,
    NotFoundError,
    OperationNotFound,
    RuntimeRequestError,
    RuntimeUnavailable,
    StreamFailure,
    ValidationFailed,
)
from dockboard.core.logging import LogContext, configure_logging, get_logger
from dockboard.core.settings import DockboardSettings, get_settings

__all__ = [
    "DockboardError",
    "InvalidTransitionError",
    "LaunchFailure",
    "NotFoundError",
    "OperationNotFound",
    "RuntimeRequestError",
    "RuntimeUnavailable",
    "StreamFailure",
    "ValidationFailed",
    "LogContext",
    "configure_logging",
    "get_logger",
    "DockboardSettings",
    "get_settings",
]
