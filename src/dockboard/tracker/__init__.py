"""
Asynchronous long-running-operation tracker.

Image pulls and compose runs take seconds to minutes. The tracker starts
them in the background, folds their streamed output into status records
that any client can poll, pushes the same changes to subscribers, lets a
user cancel, and forgets finished records after a retention window.

Tags:
    dockboard, tracker
"""

from dockboard.tracker.adapter import (
    JsonLinesDecoder,
    StreamAdapter,
    TextLinesDecoder,
    describe_record,
    infer_percent,
)
from dockboard.tracker.cancellation import (
    CANCELLED_BY_USER,
    CancellationController,
    CancelOutcome,
    CancelResult,
)
from dockboard.tracker.events import EventHub, OperationEvent
from dockboard.tracker.launcher import OperationLauncher
from dockboard.tracker.models import (
    OperationKind,
    OperationPhase,
    OperationStatus,
    validate_transition,
)
from dockboard.tracker.reaper import Reaper
from dockboard.tracker.registry import OperationRegistry
from dockboard.tracker.service import OperationTracker
from dockboard.tracker.sources import OperationSource, ProcessSource, PullSource

__all__ = [
    "CANCELLED_BY_USER",
    "CancelOutcome",
    "CancelResult",
    "CancellationController",
    "EventHub",
    "JsonLinesDecoder",
    "OperationEvent",
    "OperationKind",
    "OperationLauncher",
    "OperationPhase",
    "OperationRegistry",
    "OperationSource",
    "OperationStatus",
    "OperationTracker",
    "ProcessSource",
    "PullSource",
    "Reaper",
    "StreamAdapter",
    "TextLinesDecoder",
    "describe_record",
    "infer_percent",
    "validate_transition",
]
