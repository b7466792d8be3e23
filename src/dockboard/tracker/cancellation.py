"""
Cancellation Controller - user-initiated stop of a live operation.

The flip to ``CANCELLED`` happens inside one atomic registry update, so a
stream consumer that is about to apply its next chunk sees the cancelled
record and drops the chunk. Terminating the underlying source is best
effort and happens after the flip; a failure there is logged, never
surfaced, and never reverts the record.

Outcomes::

    NOT_FOUND          unknown or already reaped id
    ALREADY_TERMINAL   completed / error / cancelled; nothing changes
    CANCELLED          record flipped, source asked to stop

Tags:
    dockboard, tracker, cancellation
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from dockboard.core.logging import get_logger
from dockboard.tracker.events import EventHub, OperationEvent
from dockboard.tracker.models import OperationPhase, OperationStatus
from dockboard.tracker.reaper import Reaper
from dockboard.tracker.registry import OperationRegistry

logger = get_logger(__name__)

CANCELLED_BY_USER = "Cancelled by user"


class CancelOutcome(str, Enum):
    CANCELLED = "cancelled"
    ALREADY_TERMINAL = "already_terminal"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CancelResult:
    """What a cancel request did, plus the record as it now stands."""

    outcome: CancelOutcome
    message: str
    status: OperationStatus | None = None

    @property
    def found(self) -> bool:
        return self.outcome != CancelOutcome.NOT_FOUND


class CancellationController:
    """Flip a live record to ``CANCELLED`` and stop its source."""

    def __init__(
        self,
        registry: OperationRegistry,
        hub: EventHub,
        reaper: Reaper,
        stop: Callable[[str], None],
    ) -> None:
        self._registry = registry
        self._hub = hub
        self._reaper = reaper
        self._stop = stop

    def cancel(self, op_id: str) -> CancelResult:
        flipped = False

        def _flip(current: OperationStatus) -> OperationStatus:
            nonlocal flipped
            if current.is_terminal:
                return current
            flipped = True
            return current.advance(
                phase=OperationPhase.CANCELLED,
                error=CANCELLED_BY_USER,
                detail=CANCELLED_BY_USER,
            )

        status = self._registry.update(op_id, _flip)
        if status is None:
            return CancelResult(CancelOutcome.NOT_FOUND, f"Operation '{op_id}' not found")
        if not flipped:
            return CancelResult(
                CancelOutcome.ALREADY_TERMINAL,
                f"Operation already {status.phase.value}",
                status,
            )

        logger.info("operation_cancelled", operation_id=op_id, subject=status.subject)
        self._hub.publish(OperationEvent.failed(status))
        try:
            self._stop(op_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("source_terminate_failed", operation_id=op_id, error=str(exc))
        self._reaper.schedule_for(op_id, OperationPhase.CANCELLED)
        return CancelResult(CancelOutcome.CANCELLED, CANCELLED_BY_USER, status)
