"""
Reaper - delete terminal records after their retention window.

Each terminal record gets exactly one pending deletion, a ``call_later``
timer on the running event loop. Scheduling again for the same id only
ever shortens the deadline: a cancellation (60 s) that races a completion
(300 s) ends up with the 60 s timer, never the other way round.

Tags:
    dockboard, tracker, retention, asyncio
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from dockboard.core.logging import get_logger
from dockboard.tracker.models import OperationPhase
from dockboard.tracker.registry import OperationRegistry

logger = get_logger(__name__)


class Reaper:
    """Timed removal of terminal operation records."""

    def __init__(
        self,
        registry: OperationRegistry,
        *,
        completed_retention: float = 300.0,
        cancelled_retention: float = 60.0,
        on_reap: Callable[[str], None] | None = None,
    ) -> None:
        self._registry = registry
        self.completed_retention = completed_retention
        self.cancelled_retention = cancelled_retention
        self._on_reap = on_reap
        self._pending: dict[str, tuple[float, asyncio.TimerHandle]] = {}

    def retention_for(self, phase: OperationPhase) -> float:
        if phase == OperationPhase.CANCELLED:
            return self.cancelled_retention
        return self.completed_retention

    def schedule(self, op_id: str, delay: float) -> bool:
        """Arrange deletion of ``op_id`` in ``delay`` seconds.

        Returns False when an earlier (or equal) deletion is already pending.
        Must be called from the event loop thread.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + delay
        existing = self._pending.get(op_id)
        if existing is not None:
            if existing[0] <= deadline:
                return False
            existing[1].cancel()
        handle = loop.call_later(delay, self._reap, op_id)
        self._pending[op_id] = (deadline, handle)
        logger.debug("reap_scheduled", operation_id=op_id, delay=delay)
        return True

    def schedule_for(self, op_id: str, phase: OperationPhase) -> bool:
        return self.schedule(op_id, self.retention_for(phase))

    def is_scheduled(self, op_id: str) -> bool:
        return op_id in self._pending

    @property
    def pending(self) -> int:
        return len(self._pending)

    def cancel_all(self) -> None:
        """Drop every pending timer (records are left in place)."""
        for _, handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    def _reap(self, op_id: str) -> None:
        self._pending.pop(op_id, None)
        if self._registry.delete(op_id):
            logger.info("operation_reaped", operation_id=op_id)
            if self._on_reap is not None:
                self._on_reap(op_id)
