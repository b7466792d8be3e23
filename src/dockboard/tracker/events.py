"""
Operation events - push delivery of progress to subscribers.

The polling surface reads the registry; the push surface (SSE, the CLI's
live progress bar) subscribes here instead. Every status change made by
the stream adapter, the launcher's nudge or the cancellation controller
is also published as an :class:`OperationEvent` to a bounded queue per
subscriber.

Event types::

    start     operation registered (also sent as the first frame to late subscribers)
    output    one decoded record was applied
    error     operation entered ERROR or CANCELLED (terminal)
    complete  operation entered COMPLETED (terminal)

Manifesto:
    A slow SSE client must never stall the stream consumer. Publishing is
    ``put_nowait``; a full queue drops the event with a warning and the
    client can always resynchronise from the registry snapshot.

Tags:
    dockboard, tracker, events, sse, asyncio

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dockboard.core.logging import get_logger
from dockboard.tracker.models import OperationPhase, OperationStatus, utcnow

logger = get_logger(__name__)

EVENT_START = "start"
EVENT_OUTPUT = "output"
EVENT_ERROR = "error"
EVENT_COMPLETE = "complete"

TERMINAL_EVENTS = frozenset({EVENT_ERROR, EVENT_COMPLETE})


@dataclass(frozen=True)
class OperationEvent:
    """One push notification about an operation."""

    type: str
    operation_id: str
    message: str
    status: dict[str, Any]
    record: dict[str, Any] | None = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    # ── Constructors ─────────────────────────────────────────────────

    @classmethod
    def start(cls, status: OperationStatus) -> OperationEvent:
        return cls(EVENT_START, status.id, status.detail or "Starting", _summary(status))

    @classmethod
    def output(cls, status: OperationStatus, record: dict[str, Any] | None = None) -> OperationEvent:
        message = status.detail
        if record is not None and isinstance(record.get("status"), str):
            message = record["status"]
        return cls(EVENT_OUTPUT, status.id, message, _summary(status), record=record)

    @classmethod
    def failed(cls, status: OperationStatus) -> OperationEvent:
        return cls(EVENT_ERROR, status.id, status.error or "Operation failed", _summary(status))

    @classmethod
    def complete(cls, status: OperationStatus) -> OperationEvent:
        return cls(EVENT_COMPLETE, status.id, status.detail or "Completed", _summary(status))

    @classmethod
    def snapshot(cls, status: OperationStatus) -> OperationEvent:
        """Event matching the current state, for a subscriber that joins late."""
        if status.phase == OperationPhase.COMPLETED:
            return cls.complete(status)
        if status.is_terminal:
            return cls.failed(status)
        return cls.start(status)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "event_id": self.event_id,
            "type": self.type,
            "operation_id": self.operation_id,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
        }
        if self.record is not None:
            data["record"] = self.record
        # browser dialogs read the line / error / outcome from these keys
        if self.type == EVENT_OUTPUT:
            data["data"] = self.message
        elif self.type == EVENT_ERROR:
            data["error"] = self.message
        elif self.type == EVENT_COMPLETE:
            data["success"] = True
        return data


def _summary(status: OperationStatus) -> dict[str, Any]:
    data = status.to_dict()
    data.pop("log")
    return data


class EventHub:
    """Fan-out of operation events to per-subscriber bounded queues.

    Must only be used from the event loop thread.
    """

    def __init__(self, max_queue: int = 256) -> None:
        self._max_queue = max_queue
        self._subscribers: dict[str, set[asyncio.Queue[OperationEvent]]] = defaultdict(set)

    def subscribe(self, op_id: str) -> asyncio.Queue[OperationEvent]:
        queue: asyncio.Queue[OperationEvent] = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers[op_id].add(queue)
        return queue

    def unsubscribe(self, op_id: str, queue: asyncio.Queue[OperationEvent]) -> None:
        queues = self._subscribers.get(op_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[op_id]

    def publish(self, event: OperationEvent) -> int:
        """Deliver to every subscriber of ``event.operation_id``. Returns deliveries."""
        delivered = 0
        for queue in tuple(self._subscribers.get(event.operation_id, ())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "event_dropped",
                    operation_id=event.operation_id,
                    event_type=event.type,
                )
        return delivered

    def subscriber_count(self, op_id: str | None = None) -> int:
        if op_id is not None:
            return len(self._subscribers.get(op_id, ()))
        return sum(len(queues) for queues in self._subscribers.values())
